"""Host inventory models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class HostStatus(str, Enum):
    """Reachability of a host's engine."""

    ONLINE = "Online"
    OFFLINE = "Offline"


class HostInfo(BaseModel):
    """A container host as reported by the inventory."""

    id: str = Field(..., description="Inventory identifier of the host")
    name: str = Field(..., description="Display name")
    address: str = Field(..., description="Overlay-network address of the host")
    online: bool = Field(default=False, description="Whether the engine answered the last probe")
    last_seen: Optional[datetime] = Field(default=None, description="Last time the engine answered")


class HostMetadata(BaseModel):
    """In-memory bookkeeping for one host."""

    host_id: str
    status: HostStatus = HostStatus.OFFLINE
    last_seen: Optional[datetime] = None
