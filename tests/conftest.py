"""Pytest configuration and shared fixtures."""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

# Keep the test run independent of the developer's environment
os.environ["INVENTORY_SOURCE"] = "static"
os.environ["INVENTORY_STATIC_HOSTS"] = "10.0.0.5,10.0.0.6"
os.environ["LOG_FORMAT"] = "console"

from dockfleet.services.interfaces import TransportInterface  # noqa: E402


class FakeChunkStream:
    """Stand-in for an engine ChunkStream.

    Yields the given chunks, then either raises ``error``, ends, or (with
    ``hold_open``) blocks until closed like a live follow-mode stream.
    """

    def __init__(self, chunks=(), error: Optional[Exception] = None, hold_open: bool = False):
        self.chunks = list(chunks)
        self.error = error
        self.hold_open = hold_open
        self.close_calls = 0
        self._released = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.hold_open:
            await self._released.wait()

    def __aiter__(self):
        return self._iterate()

    async def aclose(self) -> None:
        self.close_calls += 1
        self._released.set()


class FakeExecSocket:
    """Stand-in for an attached TTY exec socket."""

    supports_resize = True

    def __init__(self, chunks=(), exec_id: str = "exec-1"):
        self.exec_id = exec_id
        self.written: List[bytes] = []
        self.resized: List[Tuple[int, int]] = []
        self.close_calls = 0
        self.read_error: Optional[Exception] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        for chunk in chunks:
            self._queue.put_nowait(chunk)

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def feed(self, chunk: bytes) -> None:
        self._queue.put_nowait(chunk)

    def finish(self) -> None:
        """Simulate the shell exiting."""
        self._queue.put_nowait(b"")

    def fail(self, error: Exception) -> None:
        self.read_error = error
        self._queue.put_nowait(None)

    async def read(self) -> bytes:
        chunk = await self._queue.get()
        if chunk is None:
            raise self.read_error
        return chunk

    async def write(self, data: bytes) -> None:
        self.written.append(data)

    async def resize(self, rows: int, cols: int) -> None:
        self.resized.append((rows, cols))

    async def aclose(self) -> None:
        self.close_calls += 1


class RecordingTransport(TransportInterface):
    """Transport that keeps every frame it was asked to send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []
        self.closed_with: Optional[Tuple[int, str]] = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("WebSocket is not connected")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [message for message in self.sent if message["type"] == message_type]


class EventSink:
    """Subscriber that records the events an adapter publishes."""

    def __init__(self):
        self.events = []

    async def __call__(self, event) -> None:
        self.events.append(event)

    def of_type(self, message_type: str) -> list:
        return [event for event in self.events if event.type == message_type]


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def chunk_stream():
    """Factory for fake engine streams."""
    return FakeChunkStream


@pytest.fixture
def exec_socket():
    """Factory for fake exec sockets."""
    return FakeExecSocket


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def sink():
    return EventSink()


@pytest.fixture
def make_sink():
    """Factory for additional subscribers."""
    return EventSink


@pytest.fixture
def waiter():
    return wait_until


@pytest.fixture
def mock_engine():
    """Engine client double; streams stay open until closed."""
    engine = MagicMock()
    engine.host = "10.0.0.5"
    engine.open_log_stream = AsyncMock(side_effect=lambda *args, **kwargs: FakeChunkStream(hold_open=True))
    engine.open_stats_stream = AsyncMock(side_effect=lambda *args, **kwargs: FakeChunkStream(hold_open=True))
    engine.fetch_stats = AsyncMock(return_value={})
    engine.probe_command = AsyncMock(return_value=0)
    engine.open_exec = AsyncMock(side_effect=lambda *args, **kwargs: FakeExecSocket())
    engine.create_network = AsyncMock(return_value="net-id")
    engine.create_volume = AsyncMock(return_value="vol-name")
    engine.create_container = AsyncMock(return_value="container-id")
    engine.start_container = AsyncMock()
    engine.connect_network = AsyncMock()
    engine.close = AsyncMock()
    return engine
