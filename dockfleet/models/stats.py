"""Resource usage models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class MetricsSnapshot(BaseModel):
    """One point-in-time resource usage reading for a container."""

    cpu_percent: float = Field(default=0.0, ge=0, description="CPU utilisation across all online CPUs")
    memory_usage: int = Field(default=0, description="Memory in use (bytes)")
    memory_limit: int = Field(default=0, description="Memory limit (bytes)")
    network_rx: int = Field(default=0, description="Bytes received on all interfaces")
    network_tx: int = Field(default=0, description="Bytes sent on all interfaces")
    block_read: int = Field(default=0, description="Bytes read from block devices")
    block_write: int = Field(default=0, description="Bytes written to block devices")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
