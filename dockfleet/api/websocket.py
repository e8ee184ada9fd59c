"""Per-container WebSocket endpoint."""

from typing import Optional

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ..dependencies.services import SessionManagerDep
from ..services.interfaces import TransportInterface

logger = structlog.get_logger(__name__)
router = APIRouter()


class WebSocketTransport(TransportInterface):
    """Transport over an accepted FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE, reason: str = "") -> None:
        try:
            await self.websocket.close(code=code, reason=reason)
        except RuntimeError as e:
            # Already closed by the peer
            logger.debug("WebSocket already closed", error=str(e))


@router.websocket("/api/docker/ws/{container_id}")
async def container_socket(
    websocket: WebSocket,
    container_id: str,
    manager: SessionManagerDep,
    host: Optional[str] = Query(None, description="Address of the host running the container"),
):
    """Multiplexed logs, stats, terminal and deployment channel for one container."""
    if not host:
        logger.warning("Rejecting WebSocket without host", container_id=container_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing host parameter")
        return

    await websocket.accept()
    session = await manager.connect(container_id, host, WebSocketTransport(websocket))
    if session is None:
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await manager.handle_raw(session, raw)
    except WebSocketDisconnect:
        pass
    finally:
        logger.info("WebSocket disconnected", connection_id=session.connection_id, container_id=container_id)
        await manager.disconnect(session)
