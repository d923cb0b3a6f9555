"""
Streaming-specific dataclasses for SSE chat completions.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class FrameKind(Enum):
    """Classification of one newline-terminated SSE line."""
    DATA = "data"
    DONE = "done"
    COMMENT = "comment"
    BLANK = "blank"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SSEFrame:
    """One SSE line after classification."""
    kind: FrameKind
    raw: str
    payload: str | None = None


@dataclass
class StreamStats:
    """Per-session counters for monitoring."""
    data_frames: int = 0
    deltas: int = 0
    comments: int = 0
    ignored_lines: int = 0
    deferred_frames: int = 0
    dropped_frames: int = 0
    bytes_received: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
