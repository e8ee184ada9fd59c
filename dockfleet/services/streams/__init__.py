"""Per-topic stream adapters."""

from .base import Sink, StreamAdapter
from .logs import LogAccumulator, LogAdapter
from .stats import StatAdapter, compute_cpu_percent, compute_snapshot
from .terminal import TerminalAdapter

__all__ = [
    "Sink",
    "StreamAdapter",
    "LogAccumulator",
    "LogAdapter",
    "StatAdapter",
    "compute_cpu_percent",
    "compute_snapshot",
    "TerminalAdapter",
]
