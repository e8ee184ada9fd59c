"""Follow-mode container log adapter."""

import codecs
from typing import Optional

import structlog

from ...config import settings
from ...models.errors import AdapterError, EngineError
from ...models.messages import LogsEvent, Topic
from ..engine.client import ChunkStream, EngineClient
from ..engine.framing import FrameDemuxer
from .base import Sink, StreamAdapter

logger = structlog.get_logger(__name__)


class LogAccumulator:
    """Everything the log stream delivered so far, as text."""

    def __init__(self, max_chars: int = 0):
        self.max_chars = max_chars
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def append(self, text: str) -> str:
        """Append text and return the cumulative (possibly front-trimmed) value."""
        self._text += text
        if self.max_chars and len(self._text) > self.max_chars:
            self._text = self._text[-self.max_chars :]
        return self._text

    def clear(self) -> None:
        self._text = ""

    def __len__(self) -> int:
        return len(self._text)


class LogAdapter(StreamAdapter):
    """Pushes the cumulative log text of a container on every new chunk."""

    topic = Topic.LOGS

    def __init__(
        self,
        container_id: str,
        engine: EngineClient,
        tail: Optional[int] = None,
        timestamps: Optional[bool] = None,
        max_chars: Optional[int] = None,
    ):
        super().__init__(container_id)
        self._engine = engine
        self.tail = settings.log_default_tail if tail is None else tail
        self.timestamps = settings.log_default_timestamps if timestamps is None else timestamps
        self.accumulator = LogAccumulator(settings.log_history_max_chars if max_chars is None else max_chars)
        self._demuxer = FrameDemuxer()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stream: Optional[ChunkStream] = None

    async def open(self) -> None:
        try:
            self._stream = await self._engine.open_log_stream(self.container_id, self.tail, self.timestamps)
        except EngineError as e:
            raise AdapterError(self.topic.value, f"Failed to open log stream: {e.message}")
        logger.info(
            "Log stream opened",
            container_id=self.container_id,
            tail=self.tail,
            timestamps=self.timestamps,
        )

    async def subscribe(self, sink: Sink) -> None:
        """Add a subscriber and hand it the history accumulated so far."""
        await super().subscribe(sink)
        if self.accumulator.text and not self.stopped:
            await sink(LogsEvent(data=self.accumulator.text))

    async def _emit(self, text: str) -> None:
        if not text:
            return
        cumulative = self.accumulator.append(text)
        await self._publish(LogsEvent(data=cumulative))

    async def _pump(self) -> None:
        async for chunk in self._stream:
            await self._emit(self._decoder.decode(self._demuxer.feed(chunk)))
        await self._emit(self._decoder.decode(self._demuxer.flush(), final=True))

    async def _close(self) -> None:
        if self._stream is not None:
            await self._stream.aclose()
        self.accumulator.clear()
