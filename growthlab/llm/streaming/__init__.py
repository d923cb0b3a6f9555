"""
Streaming functionality for chat completions.

This package contains:
- SSE line buffering and frame parsing
- Delta accumulation
- The streaming chat session
"""

from .parser import SSEStreamParser, extract_delta_content
from .session import StreamingChatSession

__all__ = ["SSEStreamParser", "StreamingChatSession", "extract_delta_content"]
