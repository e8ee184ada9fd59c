"""Dependencies package for dockfleet."""

from .services import (
    InventoryDep,
    SessionManagerDep,
    get_inventory,
    get_session_manager,
)

__all__ = [
    "InventoryDep",
    "SessionManagerDep",
    "get_inventory",
    "get_session_manager",
]
