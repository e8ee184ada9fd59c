"""Services module for dockfleet."""

from .deployment import DeploymentPipeline
from .engine import EngineClient
from .interfaces import HostInventoryInterface, TransportInterface
from .inventory import HostStore, StaticHostInventory, WarpDeviceInventory, create_inventory
from .registry import ConnectionRegistry
from .session import AdapterHandle, Session, SessionManager

__all__ = [
    "DeploymentPipeline",
    "EngineClient",
    "HostInventoryInterface",
    "TransportInterface",
    "HostStore",
    "StaticHostInventory",
    "WarpDeviceInventory",
    "create_inventory",
    "ConnectionRegistry",
    "AdapterHandle",
    "Session",
    "SessionManager",
]
