"""Service dependency injection for dockfleet.

Long-lived services are created once in the application lifespan and
stored on ``app.state``; these dependencies hand them to routes.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection

from ..models.errors import ServiceUnavailableError
from ..services.interfaces import HostInventoryInterface
from ..services.session import SessionManager


def get_session_manager(connection: HTTPConnection) -> SessionManager:
    """Get the session manager (works for HTTP and WebSocket routes)."""
    manager = getattr(connection.app.state, "session_manager", None)
    if manager is None:
        raise ServiceUnavailableError("sessions")
    return manager


def get_inventory(connection: HTTPConnection) -> HostInventoryInterface:
    """Get the host inventory."""
    inventory = getattr(connection.app.state, "inventory", None)
    if inventory is None:
        raise ServiceUnavailableError("inventory")
    return inventory


# Type aliases for dependency injection
SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]
InventoryDep = Annotated[HostInventoryInterface, Depends(get_inventory)]
