"""
Core chat-stream dataclasses.

This module provides the value types shared by the transport and the session:
- Endpoint configuration (URL, bearer token, timeouts)
- Session lifecycle states
- Placeholder cleanup policy for failed turns
- User-facing notifications
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(Enum):
    """Lifecycle of one streaming chat session."""
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED
        )


class PlaceholderPolicy(Enum):
    """What happens to the open assistant placeholder when a turn fails."""
    REMOVE_IF_EMPTY = "remove_if_empty"
    ALWAYS_REMOVE = "always_remove"
    KEEP = "keep"


class NotificationVariant(Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notification:
    """A toast-style message shown to the user."""
    title: str
    description: str | None = None
    variant: NotificationVariant = NotificationVariant.DESTRUCTIVE


@dataclass(frozen=True)
class EndpointConfig:
    """Where a session sends its request and how it authenticates."""
    endpoint: str
    auth_token: str

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.auth_token}",
            "Content-Type": "application/json",
        }
