"""
SSE parser for token-streamed chat completions.

Turns raw body bytes into accumulated assistant text. Network reads may end
mid-character, mid-line or mid-JSON; nothing is emitted until a line is
complete and its payload parses.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Callable
from typing import Any

from .models import FrameKind, SSEFrame, StreamStats

logger = logging.getLogger(__name__)

# Constants
DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

DeltaExtractor = Callable[[Any], str | None]


def extract_delta_content(parsed: Any) -> str | None:
    """Return `choices[0].delta.content` from a chunk, or None if absent."""
    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def classify_line(line: str) -> SSEFrame:
    """Classify one SSE line (already stripped of its line terminator)."""
    if line.startswith(":"):
        return SSEFrame(kind=FrameKind.COMMENT, raw=line)
    if not line.strip():
        return SSEFrame(kind=FrameKind.BLANK, raw=line)
    if not line.startswith(DATA_PREFIX):
        return SSEFrame(kind=FrameKind.IGNORED, raw=line)

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return SSEFrame(kind=FrameKind.DONE, raw=line, payload=payload)
    return SSEFrame(kind=FrameKind.DATA, raw=line, payload=payload)


class SSELineBuffer:
    """Decoded text waiting for its newline, fed one network read at a time."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.pending = ""

    def feed(self, data: bytes) -> None:
        """Decode a read and append it; a split multi-byte char is held back."""
        self.pending += self._decoder.decode(data)

    def pop_line(self) -> str | None:
        """Remove and return the next complete line, without `\\n` or `\\r`."""
        index = self.pending.find("\n")
        if index == -1:
            return None
        line = self.pending[:index]
        self.pending = self.pending[index + 1:]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def push_back(self, line: str) -> None:
        """Return a line to the front of the buffer."""
        self.pending = line + "\n" + self.pending

    def has_line(self) -> bool:
        return "\n" in self.pending

    def flush(self) -> str:
        """Finish decoding and hand back whatever never got a newline."""
        self.pending += self._decoder.decode(b"", final=True)
        remainder, self.pending = self.pending, ""
        return remainder


class SSEStreamParser:
    """
    Incremental SSE parser with deferred-frame recovery and statistics.

    Each call to `feed` processes one network read and returns the accumulated
    assistant text after every delta found in it, in frame order.
    """

    def __init__(
        self,
        extract_delta: DeltaExtractor = extract_delta_content,
        encoding: str = "utf-8",
    ):
        self.extract_delta = extract_delta
        self.buffer = SSELineBuffer(encoding)
        self.accumulated = ""
        self.done = False
        self.stats = StreamStats()
        self._deferred: str | None = None

    def feed(self, data: bytes) -> list[str]:
        """Process one read. Returns accumulated strings, one per delta."""
        if self.done:
            return []
        self.stats.bytes_received += len(data)
        self.buffer.feed(data)
        return self._drain()

    def finish(self, drain: bool = True) -> list[str]:
        """
        Mark end-of-stream and return accumulated strings for any complete
        lines still buffered. With no more data coming, a line that does not
        parse is dropped instead of deferred. Unterminated text is dropped.
        Pass `drain=False` to discard the buffer without emitting.
        """
        emitted = self._drain(final=True) if drain and not self.done else []
        remainder = self.buffer.flush()
        if remainder.strip() and not self.done:
            logger.debug(
                f"Dropping {len(remainder)} unterminated characters at end of stream"
            )
            self.stats.dropped_frames += 1
        self._deferred = None
        self.done = True
        return emitted

    def _drain(self, final: bool = False) -> list[str]:
        emitted: list[str] = []

        while (line := self.buffer.pop_line()) is not None:
            frame = classify_line(line)

            if frame.kind is FrameKind.COMMENT:
                self.stats.comments += 1
                continue
            if frame.kind is FrameKind.BLANK:
                continue
            if frame.kind is FrameKind.IGNORED:
                self.stats.ignored_lines += 1
                continue
            if frame.kind is FrameKind.DONE:
                self.done = True
                break

            try:
                parsed = json.loads(frame.payload or "")
            except json.JSONDecodeError:
                if final or (line == self._deferred and self.buffer.has_line()):
                    # Still unparseable and nothing can complete it.
                    logger.warning(f"Dropping unparseable SSE frame: {line[:80]!r}")
                    self.stats.dropped_frames += 1
                    self._deferred = None
                    continue
                if line != self._deferred:
                    self.stats.deferred_frames += 1
                self._deferred = line
                self.buffer.push_back(line)
                break

            self._deferred = None
            self.stats.data_frames += 1

            content = self.extract_delta(parsed)
            if not content:
                continue

            self.accumulated += content
            self.stats.deltas += 1
            emitted.append(self.accumulated)

        return emitted

    def get_stats(self) -> dict[str, int]:
        """Get streaming statistics for monitoring."""
        return self.stats.as_dict()
