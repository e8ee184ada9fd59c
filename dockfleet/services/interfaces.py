"""Service interfaces for dockfleet."""

from abc import ABC, abstractmethod
from typing import List

from ..models import HostInfo


class TransportInterface(ABC):
    """Outbound side of one client connection."""

    @abstractmethod
    async def send_text(self, data: str) -> None:
        """Send one text frame. May raise once the connection is gone."""
        pass

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection with a close code."""
        pass


class HostInventoryInterface(ABC):
    """Source of the container hosts this service can reach."""

    @abstractmethod
    async def list_hosts(self) -> List[HostInfo]:
        """List known hosts with their current reachability."""
        pass

    @abstractmethod
    async def check_reachable(self, address: str) -> bool:
        """Whether the engine on ``address`` answers its ping endpoint."""
        pass
