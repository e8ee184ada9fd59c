"""Per-container WebSocket sessions.

One Session exists per open WebSocket. It multiplexes the log, stats and
terminal topics of a single container plus fire-and-forget deployments
over that connection. The SessionManager owns every session's lifecycle:
it starts and stops topic adapters on demand and tears everything down
when the connection goes away.
"""

import asyncio
import functools
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Awaitable, Callable, Dict, Optional, Set, Union

import structlog

from ..config import settings
from ..models.deployment import DeploymentOutcome, DeploymentStatus
from ..models.errors import AdapterError, DockfleetException, ProtocolError
from ..models.messages import (
    ClientMessage,
    ConnectedEvent,
    DeployComposeMessage,
    DeployContainerMessage,
    DeploymentCompleteEvent,
    ErrorEvent,
    PingEvent,
    PongMessage,
    ServerMessage,
    SubscribedEvent,
    SubscribeMessage,
    TerminalInputMessage,
    TerminalResizeMessage,
    Topic,
    UnsubscribedEvent,
    UnsubscribeMessage,
    decode_client_message,
)
from ..utils.id_generator import generate_connection_id
from .deployment import DeploymentPipeline
from .engine.client import EngineClient
from .interfaces import TransportInterface
from .registry import ConnectionRegistry
from .streams import LogAdapter, StatAdapter, StreamAdapter, TerminalAdapter

logger = structlog.get_logger(__name__)

EngineFactory = Callable[[str], Awaitable[EngineClient]]

# Close code for a connection that could not be set up server-side
CLOSE_INTERNAL_ERROR = 1011


@dataclass
class AdapterHandle:
    """The running adapter of one subscribed topic."""

    topic: Topic
    adapter: StreamAdapter
    exec_id: Optional[str] = None
    timer: Optional[asyncio.Task] = None


class Session:
    """State of one WebSocket connection bound to a container."""

    def __init__(
        self,
        connection_id: str,
        container_id: str,
        host: str,
        engine: EngineClient,
        transport: TransportInterface,
    ):
        self.connection_id = connection_id
        self.container_id = container_id
        self.host = host
        self.engine = engine
        self.transport = transport
        self.subscriptions: Set[Topic] = set()
        self.handles: Dict[Topic, AdapterHandle] = {}
        self.deployments: Set[asyncio.Task] = set()
        self.heartbeat_task: Optional[asyncio.Task] = None
        self.last_pong: Optional[datetime] = None
        self.lock = asyncio.Lock()
        self.closed = False

    async def send(self, message: ServerMessage) -> bool:
        """Send an event to the client. Failures on a dead connection are dropped."""
        try:
            await self.transport.send_text(message.to_json())
            return True
        except Exception as e:
            logger.debug(
                "Dropping message for closed connection",
                connection_id=self.connection_id,
                message_type=message.type,
                error=str(e),
            )
            return False


class SessionManager:
    """Creates, drives and tears down sessions."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        engine_factory: Optional[EngineFactory] = None,
        heartbeat_interval: Optional[float] = None,
    ):
        self.registry = registry
        self._engine_factory = engine_factory or EngineClient.connect
        self.heartbeat_interval = heartbeat_interval or settings.heartbeat_interval_seconds
        self._handlers: Dict[type, Callable[[Session, ClientMessage], Awaitable[None]]] = {
            SubscribeMessage: self._handle_subscribe,
            UnsubscribeMessage: self._handle_unsubscribe,
            TerminalInputMessage: self._handle_terminal_input,
            TerminalResizeMessage: self._handle_terminal_resize,
            PongMessage: self._handle_pong,
            DeployContainerMessage: self._handle_deploy_container,
            DeployComposeMessage: self._handle_deploy_compose,
        }

    @property
    def handled_message_types(self) -> Set[type]:
        return set(self._handlers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, container_id: str, host: str, transport: TransportInterface) -> Optional[Session]:
        """Open a session for an accepted connection.

        Returns None when the host's engine could not be reached; the client
        has then been told why and the transport is closed.
        """
        try:
            engine = await self._engine_factory(host)
        except DockfleetException as e:
            logger.warning("Rejecting connection", container_id=container_id, host=host, error=e.message)
            try:
                await transport.send_text(ErrorEvent(error=e.message).to_json())
                await transport.close(code=CLOSE_INTERNAL_ERROR, reason="Engine unreachable")
            except Exception as close_error:
                logger.debug("Failed to notify rejected connection", error=str(close_error))
            return None

        session = Session(generate_connection_id(container_id), container_id, host, engine, transport)
        self.registry.register(session)
        await session.send(ConnectedEvent(container_id=container_id, connection_id=session.connection_id))
        session.heartbeat_task = asyncio.create_task(
            self._heartbeat(session), name=f"heartbeat-{session.connection_id}"
        )

        logger.info(
            "Session opened",
            connection_id=session.connection_id,
            container_id=container_id,
            host=host,
            active_sessions=len(self.registry),
        )
        return session

    async def disconnect(self, session: Session) -> None:
        """Tear a session down completely. Safe to call more than once."""
        if session.closed:
            return
        session.closed = True

        if session.heartbeat_task is not None:
            session.heartbeat_task.cancel()
            try:
                await session.heartbeat_task
            except asyncio.CancelledError:
                pass
            session.heartbeat_task = None

        async with session.lock:
            handles = list(session.handles.values())
            session.handles.clear()
            session.subscriptions.clear()

        for handle in handles:
            await handle.adapter.stop()

        deployments = list(session.deployments)
        for task in deployments:
            task.cancel()
        if deployments:
            await asyncio.gather(*deployments, return_exceptions=True)
        session.deployments.clear()

        try:
            await session.engine.close()
        except Exception as e:
            logger.warning("Error closing engine client", connection_id=session.connection_id, error=str(e))

        self.registry.unregister(session.connection_id)
        logger.info(
            "Session closed",
            connection_id=session.connection_id,
            container_id=session.container_id,
            stopped_adapters=len(handles),
            cancelled_deployments=len(deployments),
            active_sessions=len(self.registry),
        )

    async def shutdown(self) -> None:
        """Close every live session."""
        sessions = self.registry.sessions()
        if sessions:
            logger.info("Closing sessions", count=len(sessions))
        for session in sessions:
            await self.disconnect(session)

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def handle_raw(self, session: Session, raw: Union[str, bytes]) -> None:
        """Decode one inbound frame and act on it."""
        try:
            message = decode_client_message(raw)
        except ProtocolError as e:
            logger.debug("Rejected inbound frame", connection_id=session.connection_id, error=e.message)
            if e.topic == Topic.DEPLOYMENT.value:
                await session.send(
                    DeploymentCompleteEvent(data=DeploymentOutcome(status=DeploymentStatus.ERROR, error=e.message))
                )
            else:
                await session.send(ErrorEvent(error=e.message))
            return
        await self.handle_message(session, message)

    async def handle_message(self, session: Session, message: ClientMessage) -> None:
        handler = self._handlers.get(type(message))
        if handler is None:
            raise ProtocolError(f"Unsupported message type: {type(message).__name__}")
        async with session.lock:
            if session.closed:
                return
            await handler(session, message)

    async def _handle_subscribe(self, session: Session, message: SubscribeMessage) -> None:
        topic = message.topic
        if topic in session.subscriptions:
            logger.debug("Already subscribed", connection_id=session.connection_id, topic=topic.value)
            return

        if topic == Topic.DEPLOYMENT:
            session.subscriptions.add(topic)
            await session.send(SubscribedEvent(topic=topic))
            return

        adapter = self._create_adapter(session, message)
        try:
            await adapter.open()
        except DockfleetException as e:
            await adapter.stop()
            logger.warning(
                "Subscription failed",
                connection_id=session.connection_id,
                topic=topic.value,
                error=e.message,
            )
            await session.send(ErrorEvent(topic=topic, error=e.message))
            return

        await adapter.subscribe(session.send)
        adapter.on_finished = functools.partial(self._release, session)
        handle = AdapterHandle(topic=topic, adapter=adapter, exec_id=getattr(adapter, "exec_id", None))
        session.handles[topic] = handle
        session.subscriptions.add(topic)

        await session.send(SubscribedEvent(topic=topic))
        adapter.start()
        handle.timer = getattr(adapter, "timer", None)
        logger.info("Subscribed", connection_id=session.connection_id, topic=topic.value)

    async def _handle_unsubscribe(self, session: Session, message: UnsubscribeMessage) -> None:
        topic = message.topic
        if topic not in session.subscriptions:
            logger.debug("Not subscribed", connection_id=session.connection_id, topic=topic.value)
            return

        handle = session.handles.pop(topic, None)
        if handle is not None:
            await handle.adapter.stop()
        session.subscriptions.discard(topic)
        await session.send(UnsubscribedEvent(topic=topic))
        logger.info("Unsubscribed", connection_id=session.connection_id, topic=topic.value)

    def _terminal(self, session: Session) -> Optional[TerminalAdapter]:
        handle = session.handles.get(Topic.TERMINAL)
        return handle.adapter if handle is not None else None

    async def _handle_terminal_input(self, session: Session, message: TerminalInputMessage) -> None:
        terminal = self._terminal(session)
        if terminal is None:
            await session.send(ErrorEvent(topic=Topic.TERMINAL, error="No active terminal session"))
            return
        try:
            await terminal.write(message.data)
        except AdapterError as e:
            await session.send(ErrorEvent(topic=Topic.TERMINAL, error=e.message))

    async def _handle_terminal_resize(self, session: Session, message: TerminalResizeMessage) -> None:
        terminal = self._terminal(session)
        if terminal is None:
            await session.send(ErrorEvent(topic=Topic.TERMINAL, error="No active terminal session"))
            return
        try:
            await terminal.resize(message.rows, message.cols)
        except AdapterError as e:
            await session.send(ErrorEvent(topic=Topic.TERMINAL, error=e.message))

    async def _handle_pong(self, session: Session, message: PongMessage) -> None:
        session.last_pong = datetime.now(UTC)

    async def _handle_deploy_container(self, session: Session, message: DeployContainerMessage) -> None:
        pipeline = DeploymentPipeline(session.engine, session.send)
        self._track_deployment(session, pipeline.deploy_container(message.spec), "container")

    async def _handle_deploy_compose(self, session: Session, message: DeployComposeMessage) -> None:
        pipeline = DeploymentPipeline(session.engine, session.send)
        self._track_deployment(session, pipeline.deploy_compose(message.plan), "compose")

    def _track_deployment(self, session: Session, coro, kind: str) -> None:
        task = asyncio.create_task(coro, name=f"deploy-{kind}-{session.connection_id}")
        session.deployments.add(task)
        task.add_done_callback(session.deployments.discard)
        logger.info("Deployment started", connection_id=session.connection_id, kind=kind, host=session.host)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_adapter(self, session: Session, message: SubscribeMessage) -> StreamAdapter:
        if message.topic == Topic.LOGS:
            return LogAdapter(
                session.container_id,
                session.engine,
                tail=message.options.tail,
                timestamps=message.options.timestamps,
            )
        if message.topic == Topic.STATS:
            return StatAdapter(session.container_id, session.engine)
        return TerminalAdapter(session.container_id, session.engine)

    async def _release(self, session: Session, adapter: StreamAdapter) -> None:
        """Drop the handle of an adapter whose stream ended on its own."""
        async with session.lock:
            handle = session.handles.get(adapter.topic)
            if handle is None or handle.adapter is not adapter:
                return
            del session.handles[adapter.topic]
            session.subscriptions.discard(adapter.topic)
        await adapter.stop()
        await session.send(UnsubscribedEvent(topic=adapter.topic))
        logger.debug("Released finished adapter", connection_id=session.connection_id, topic=adapter.topic.value)

    async def _heartbeat(self, session: Session) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            await session.send(PingEvent())
