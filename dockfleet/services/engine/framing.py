"""Incremental decoders for engine byte streams.

Two wire shapes show up on the engine's streaming endpoints:

- Attach/log streams of containers without a TTY are multiplexed: every
  payload is preceded by an 8-byte header ``[stream, 0, 0, 0, size(4, BE)]``
  where stream is 0 (stdin), 1 (stdout) or 2 (stderr). TTY containers send
  the raw bytes with no header at all.
- Stats and pull-progress feeds are newline-delimited JSON, cut into
  chunks wherever the transport feels like it.

Both decoders are fed arbitrary chunks and keep whatever is incomplete for
the next call.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

STREAM_HEADER_SIZE = 8


class StreamType(IntEnum):
    """Stream identifier carried in a multiplexed frame header."""

    STDIN = 0
    STDOUT = 1
    STDERR = 2


@dataclass
class Frame:
    """One demultiplexed payload."""

    stream: Optional[StreamType]
    payload: bytes


def _looks_like_header(data: bytes) -> bool:
    return data[0] in (StreamType.STDIN, StreamType.STDOUT, StreamType.STDERR) and data[1:4] == b"\x00\x00\x00"


class FrameDemuxer:
    """Strips multiplexing headers from a log/attach byte stream."""

    def __init__(self):
        self._buffer = bytearray()
        # None until enough bytes arrived to tell framed from raw (TTY) streams
        self._multiplexed: Optional[bool] = None

    @property
    def multiplexed(self) -> Optional[bool]:
        return self._multiplexed

    def feed_frames(self, chunk: bytes) -> List[Frame]:
        """Consume a chunk and return every frame it completed."""
        self._buffer.extend(chunk)

        if self._multiplexed is None:
            if len(self._buffer) < 4:
                return []
            self._multiplexed = _looks_like_header(self._buffer)

        if not self._multiplexed:
            payload = bytes(self._buffer)
            self._buffer.clear()
            return [Frame(stream=None, payload=payload)] if payload else []

        frames = []
        while len(self._buffer) >= STREAM_HEADER_SIZE:
            if not _looks_like_header(self._buffer):
                # Lost sync; hand the remainder through untouched
                self._multiplexed = False
                frames.append(Frame(stream=None, payload=bytes(self._buffer)))
                self._buffer.clear()
                break
            size = int.from_bytes(self._buffer[4:8], "big")
            end = STREAM_HEADER_SIZE + size
            if len(self._buffer) < end:
                break
            frames.append(Frame(stream=StreamType(self._buffer[0]), payload=bytes(self._buffer[STREAM_HEADER_SIZE:end])))
            del self._buffer[:end]
        return frames

    def feed(self, chunk: bytes) -> bytes:
        """Consume a chunk and return the framing-free payload bytes, in order."""
        return b"".join(frame.payload for frame in self.feed_frames(chunk))

    def flush(self) -> bytes:
        """Return bytes still buffered when the stream ends.

        A short unframed stream may never reach the detection threshold; a
        truncated frame is returned without its header.
        """
        if not self._buffer:
            return b""
        data = bytes(self._buffer)
        self._buffer.clear()
        if self._multiplexed and len(data) >= STREAM_HEADER_SIZE:
            return data[STREAM_HEADER_SIZE:]
        return data


class RecordSplitter:
    """Reassembles newline-delimited records from arbitrary chunks."""

    def __init__(self, delimiter: bytes = b"\n"):
        self._delimiter = delimiter
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[bytes]:
        """Consume a chunk and return every complete, non-blank record."""
        self._buffer.extend(chunk)
        *records, tail = self._buffer.split(self._delimiter)
        self._buffer = bytearray(tail)
        return [bytes(record) for record in records if record.strip()]

    def flush(self) -> Optional[bytes]:
        """Return the trailing record left when the stream ends, if non-blank."""
        data = bytes(self._buffer).strip()
        self._buffer.clear()
        return data or None
