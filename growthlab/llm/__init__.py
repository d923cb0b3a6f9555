"""
Chat-completion streaming for Growth Lab assistants.

This package provides:
- Endpoint configuration and session state models
- The HTTP client for the chat functions
- The error hierarchy for transport and stream failures
- SSE parsing and the streaming session (see `growthlab.llm.streaming`)
"""

from __future__ import annotations

from .client import ChatStreamClient
from .exceptions import (
    ChatError,
    ChatTransportError,
    QuotaExceededError,
    RateLimitError,
    StreamingError,
)
from .models import (
    EndpointConfig,
    Notification,
    NotificationVariant,
    PlaceholderPolicy,
    SessionState,
)

__all__ = [
    # Exceptions
    "ChatError",
    # Client
    "ChatStreamClient",
    "ChatTransportError",
    # Core models
    "EndpointConfig",
    "Notification",
    "NotificationVariant",
    "PlaceholderPolicy",
    "QuotaExceededError",
    "RateLimitError",
    "SessionState",
    "StreamingError",
]
