"""
Streaming chat session.

One session issues one request and turns its SSE body into a growing
assistant reply. The session walks `Idle -> Requesting -> Streaming` and ends
in `Completed`, `Failed` or `Cancelled`. Errors never escape `run()`: they are
logged, stored on the session and passed once to `on_error`.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from typing import Any

from growthlab.llm.client import ChatStreamClient
from growthlab.llm.exceptions import ChatError
from growthlab.llm.models import SessionState
from growthlab.logging_utils import ChatErrorHandler, ContextualLogger

from .parser import DeltaExtractor, SSEStreamParser, extract_delta_content

TextCallback = Callable[[str], None]
ErrorCallback = Callable[[ChatError], None]


class StreamingChatSession:
    """
    Consume one streamed chat completion.

    Args:
        client: Transport that opens the streamed request.
        context: Extra top-level JSON fields sent alongside `messages`.
        extract_delta: Pulls the text fragment out of a parsed frame.
        on_text: Receives the full accumulated text after every delta.
        on_error: Receives the single error if the session fails.
    """

    def __init__(
        self,
        client: ChatStreamClient,
        *,
        context: dict[str, Any] | None = None,
        extract_delta: DeltaExtractor = extract_delta_content,
        on_text: TextCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.client = client
        self.context = context or {}
        self.extract_delta = extract_delta
        self.on_text = on_text
        self.on_error = on_error

        self.session_id = str(uuid.uuid4())
        self.state = SessionState.IDLE
        self.error: ChatError | None = None
        self.parser = SSEStreamParser(extract_delta)
        self._cancel_event = asyncio.Event()
        self._log = ContextualLogger({
            "session_id": self.session_id,
            "endpoint": client.config.endpoint,
        })

    @property
    def accumulated(self) -> str:
        return self.parser.accumulated

    def cancel(self) -> None:
        """Stop at the next chunk wait. No-op once the session has ended."""
        if not self.state.is_terminal:
            self._cancel_event.set()

    async def run(
        self, messages: list[dict[str, Any]]
    ) -> AsyncGenerator[str]:
        """
        Send `messages` and yield the accumulated reply after every delta.

        The sequence is finite and cannot be restarted.
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError("A StreamingChatSession can only be run once")
        if self._cancel_event.is_set():
            self.state = SessionState.CANCELLED
            return

        self.state = SessionState.REQUESTING
        payload = {**self.context, "messages": list(messages)}
        self._log.debug("Chat request started", message_count=len(messages))

        try:
            async with self.client.open_stream(payload) as response:
                self.state = SessionState.STREAMING
                async for text in self._consume(response.aiter_bytes()):
                    yield text
        except ChatError as e:
            self._fail(e)
            return
        finally:
            if not self.state.is_terminal:
                # Consumer stopped iterating before the stream ended
                self.state = SessionState.CANCELLED

        if self.state is SessionState.STREAMING:
            self.state = SessionState.COMPLETED
        self._log.info(
            "Chat stream finished",
            state=self.state.value,
            characters=len(self.accumulated),
            **self.parser.get_stats(),
        )

    async def _consume(self, chunks: AsyncIterator[bytes]) -> AsyncGenerator[str]:
        while True:
            chunk = await self._next_chunk(chunks)
            if chunk is None:
                break

            for text in self.parser.feed(chunk):
                if self.on_text is not None:
                    self.on_text(text)
                yield text

            if self.parser.done:
                # [DONE] seen; leave the rest of the body unread
                break

        if self.state is SessionState.CANCELLED:
            self.parser.finish(drain=False)
            return

        # Body ended; lines held back behind a bad frame can still be read
        for text in self.parser.finish():
            if self.on_text is not None:
                self.on_text(text)
            yield text

    async def _next_chunk(self, chunks: AsyncIterator[bytes]) -> bytes | None:
        """Await the next read, or None at end of body or on cancel."""
        if self._cancel_event.is_set():
            self.state = SessionState.CANCELLED
            return None

        async def _read() -> bytes | None:
            return await anext(chunks, None)

        read = asyncio.create_task(_read())
        cancelled = asyncio.create_task(self._cancel_event.wait())
        try:
            await asyncio.wait(
                {read, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancelled.cancel()
            if not read.done():
                read.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cancelled

        if self._cancel_event.is_set():
            if not read.done():
                with contextlib.suppress(asyncio.CancelledError):
                    await read
            elif not read.cancelled() and read.exception() is not None:
                self._log.debug(
                    "Read failed after cancel", error=str(read.exception())
                )
            self.state = SessionState.CANCELLED
            self._log.info("Chat stream cancelled", characters=len(self.accumulated))
            return None

        return read.result()

    def _fail(self, error: ChatError) -> None:
        self.state = SessionState.FAILED
        self.error = error
        ChatErrorHandler.log_failure(
            error,
            "chat_stream",
            {"session_id": self.session_id, "characters": len(self.accumulated)},
        )
        if self.on_error is not None:
            self.on_error(error)
