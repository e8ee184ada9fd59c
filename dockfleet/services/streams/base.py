"""Base class for topic stream adapters."""

import asyncio
from typing import Awaitable, Callable, List, Optional

import structlog

from ...models.messages import ErrorEvent, ServerMessage, Topic

logger = structlog.get_logger(__name__)

Sink = Callable[[ServerMessage], Awaitable[None]]
FinishedCallback = Callable[["StreamAdapter"], Awaitable[None]]


class StreamAdapter:
    """Turns one engine stream into protocol events for its subscribers.

    Lifecycle: ``open()`` acquires the engine stream and raises on failure,
    ``start()`` launches the pump task, ``stop()`` tears everything down.
    Once ``stop()`` has returned no further event reaches a subscriber.
    """

    topic: Topic
    # Whether the end of the stream releases the adapter (and its handle)
    releases_on_end = True

    def __init__(self, container_id: str):
        self.container_id = container_id
        self.on_finished: Optional[FinishedCallback] = None
        self._subscribers: List[Sink] = []
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def open(self) -> None:
        """Acquire the underlying stream.

        Raises:
            AdapterError: the stream could not be opened.
        """
        raise NotImplementedError

    def start(self) -> None:
        """Launch the pump task."""
        if self._task is None and not self._stopped:
            self._task = asyncio.create_task(self._run(), name=f"{self.topic.value}-{self.container_id[:12]}")

    async def subscribe(self, sink: Sink) -> None:
        """Add a subscriber."""
        if sink not in self._subscribers:
            self._subscribers.append(sink)

    async def stop(self) -> None:
        """Stop the pump and release the stream. Idempotent."""
        if self._stopped:
            return
        self._stopped = True

        current = asyncio.current_task()
        for task in self._tasks():
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug("Adapter task failed while stopping", topic=self.topic.value, error=str(e))

        try:
            await self._close()
        except Exception as e:
            logger.warning("Error closing stream", topic=self.topic.value, container_id=self.container_id, error=str(e))
        self._subscribers.clear()
        logger.debug("Adapter stopped", topic=self.topic.value, container_id=self.container_id)

    def _tasks(self) -> List[Optional[asyncio.Task]]:
        return [self._task]

    async def _publish(self, event: ServerMessage) -> None:
        if self._stopped:
            return
        for sink in list(self._subscribers):
            await sink(event)

    async def _pump(self) -> None:
        raise NotImplementedError

    async def _close(self) -> None:
        raise NotImplementedError

    async def _run(self) -> None:
        try:
            await self._pump()
            logger.info("Stream ended", topic=self.topic.value, container_id=self.container_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._stopped:
                return
            logger.warning(
                "Stream failed",
                topic=self.topic.value,
                container_id=self.container_id,
                error=str(e),
            )
            await self._publish(ErrorEvent(topic=self.topic, error=f"{self.topic.value} stream error: {e}"))

        if self.releases_on_end and not self._stopped and self.on_finished is not None:
            await self.on_finished(self)
