"""Container resource statistics adapter."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import structlog

from ...config import settings
from ...models.errors import AdapterError, EngineError
from ...models.messages import StatsEvent, Topic
from ...models.stats import MetricsSnapshot
from ..engine.client import ChunkStream, EngineClient
from ..engine.framing import RecordSplitter
from .base import StreamAdapter

logger = structlog.get_logger(__name__)


def _cpu_totals(record: Dict[str, Any]) -> tuple[int, int]:
    cpu_stats = record.get("cpu_stats") or {}
    total_usage = (cpu_stats.get("cpu_usage") or {}).get("total_usage") or 0
    system_usage = cpu_stats.get("system_cpu_usage") or 0
    return total_usage, system_usage


def _online_cpus(record: Dict[str, Any]) -> int:
    cpu_stats = record.get("cpu_stats") or {}
    online = cpu_stats.get("online_cpus")
    if online:
        return online
    percpu = (cpu_stats.get("cpu_usage") or {}).get("percpu_usage")
    if percpu:
        return len(percpu)
    return 1


def compute_cpu_percent(record: Dict[str, Any], previous: Optional[Dict[str, Any]]) -> float:
    """CPU usage between two consecutive records, as a percentage of one CPU.

    The first record of a stream has nothing to compare against and yields 0.
    """
    if previous is None:
        return 0.0
    total, system = _cpu_totals(record)
    prev_total, prev_system = _cpu_totals(previous)
    cpu_delta = total - prev_total
    system_delta = system - prev_system
    if system_delta <= 0 or cpu_delta < 0:
        return 0.0
    return round((cpu_delta / system_delta) * _online_cpus(record) * 100.0, 2)


def _block_io(record: Dict[str, Any]) -> tuple[int, int]:
    entries: List[Dict[str, Any]] = (record.get("blkio_stats") or {}).get("io_service_bytes_recursive") or []
    read = write = 0
    for entry in entries:
        op = str(entry.get("op", "")).lower()
        if op == "read":
            read += entry.get("value") or 0
        elif op == "write":
            write += entry.get("value") or 0
    return read, write


def compute_snapshot(record: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> MetricsSnapshot:
    """Reduce one raw stats record to a MetricsSnapshot."""
    memory = record.get("memory_stats") or {}
    networks = record.get("networks") or {}
    block_read, block_write = _block_io(record)
    return MetricsSnapshot(
        cpu_percent=compute_cpu_percent(record, previous),
        memory_usage=memory.get("usage") or 0,
        memory_limit=memory.get("limit") or 0,
        network_rx=sum((iface.get("rx_bytes") or 0) for iface in networks.values()),
        network_tx=sum((iface.get("tx_bytes") or 0) for iface in networks.values()),
        block_read=block_read,
        block_write=block_write,
    )


class StatAdapter(StreamAdapter):
    """Emits one MetricsSnapshot per stats record.

    Streams the engine's stats feed by default. With a positive
    ``poll_interval`` a timer fetches one-shot records instead.
    """

    topic = Topic.STATS

    def __init__(self, container_id: str, engine: EngineClient, poll_interval: Optional[float] = None):
        super().__init__(container_id)
        self._engine = engine
        self.poll_interval = settings.stats_poll_interval_seconds if poll_interval is None else poll_interval
        self._stream: Optional[ChunkStream] = None
        self._splitter = RecordSplitter()
        self._previous: Optional[Dict[str, Any]] = None
        self._first_record: Optional[Dict[str, Any]] = None

    @property
    def polling(self) -> bool:
        return self.poll_interval > 0

    @property
    def timer(self) -> Optional[asyncio.Task]:
        """The polling task, when running in poll mode."""
        return self._task if self.polling else None

    async def open(self) -> None:
        try:
            if self.polling:
                self._first_record = await self._engine.fetch_stats(self.container_id)
            else:
                self._stream = await self._engine.open_stats_stream(self.container_id)
        except EngineError as e:
            raise AdapterError(self.topic.value, f"Failed to open stats stream: {e.message}")
        logger.info("Stats stream opened", container_id=self.container_id, poll_interval=self.poll_interval)

    async def _emit(self, record: Dict[str, Any]) -> None:
        snapshot = compute_snapshot(record, self._previous)
        self._previous = record
        await self._publish(StatsEvent(data=snapshot))

    async def _emit_raw(self, raw: bytes) -> None:
        try:
            record = json.loads(raw)
        except ValueError as e:
            logger.warning("Skipping malformed stats record", container_id=self.container_id, error=str(e))
            return
        await self._emit(record)

    async def _pump(self) -> None:
        if self.polling:
            await self._poll()
            return

        async for chunk in self._stream:
            for raw in self._splitter.feed(chunk):
                await self._emit_raw(raw)
        tail = self._splitter.flush()
        if tail is not None:
            await self._emit_raw(tail)

    async def _poll(self) -> None:
        record = self._first_record
        while True:
            await self._emit(record)
            await asyncio.sleep(self.poll_interval)
            record = await self._engine.fetch_stats(self.container_id)

    async def _close(self) -> None:
        if self._stream is not None:
            await self._stream.aclose()
        self._previous = None
