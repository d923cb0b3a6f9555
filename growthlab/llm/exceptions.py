"""
Error handling for assistant chat streams.

This module provides the error hierarchy raised by the chat transport:
- Endpoint and status context on every error
- Rate limit (429) and quota (402) distinction for user-facing copy
- Mid-stream failures separated from request failures
"""

from __future__ import annotations

from typing import Any


class ChatError(Exception):
    """Base chat error with request context."""

    def __init__(
        self,
        message: str,
        endpoint: str = "unknown",
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_data = response_data or {}

    @property
    def user_message(self) -> str | None:
        """The `error` field of the endpoint's JSON body, if it sent one."""
        value = self.response_data.get("error")
        return value if isinstance(value, str) and value else None


class ChatTransportError(ChatError):
    """Network failure, non-success status or a missing body."""
    pass


class RateLimitError(ChatTransportError):
    """HTTP 429 from the chat endpoint."""
    pass


class QuotaExceededError(ChatTransportError):
    """HTTP 402 from the chat endpoint (AI credits exhausted)."""
    pass


class StreamingError(ChatError):
    """The body stream broke after streaming had started."""
    pass
