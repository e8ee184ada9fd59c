"""Container engine access."""

from .client import ChunkStream, EngineClient, ExecSocket
from .framing import FrameDemuxer, RecordSplitter, StreamType

__all__ = [
    "ChunkStream",
    "EngineClient",
    "ExecSocket",
    "FrameDemuxer",
    "RecordSplitter",
    "StreamType",
]
