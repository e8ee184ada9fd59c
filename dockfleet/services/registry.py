"""Registry of live WebSocket sessions."""

from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

import structlog

if TYPE_CHECKING:
    from .session import Session

logger = structlog.get_logger(__name__)


class ConnectionRegistry:
    """Live sessions keyed by connection id.

    Owned by the application lifespan and handed to the SessionManager;
    nothing else holds sessions.
    """

    def __init__(self):
        self._sessions: Dict[str, "Session"] = {}

    def register(self, session: "Session") -> None:
        if session.connection_id in self._sessions:
            raise ValueError(f"Connection {session.connection_id} is already registered")
        self._sessions[session.connection_id] = session
        logger.debug("Session registered", connection_id=session.connection_id, active=len(self._sessions))

    def unregister(self, connection_id: str) -> Optional["Session"]:
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            logger.debug("Session unregistered", connection_id=connection_id, active=len(self._sessions))
        return session

    def get(self, connection_id: str) -> Optional["Session"]:
        return self._sessions.get(connection_id)

    def sessions(self) -> List["Session"]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._sessions

    def __iter__(self) -> Iterator["Session"]:
        return iter(list(self._sessions.values()))
