"""
Assistant chat controllers for Growth Lab.

This module drives a chat transcript from streaming sessions:
- User turns and the assistant placeholder lifecycle
- Loading guard so only one reply streams at a time
- Per-assistant request context and error copy
- The site Navigator and the per-field AI Coach
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, ClassVar, Protocol

from pydantic import BaseModel, ConfigDict, Field

from growthlab.history.transcript import ChatTranscript
from growthlab.llm.client import ChatStreamClient
from growthlab.llm.exceptions import ChatError, ChatTransportError, StreamingError
from growthlab.llm.models import (
    Notification,
    PlaceholderPolicy,
    SessionState,
)
from growthlab.llm.streaming.session import StreamingChatSession
from growthlab.logging_utils import ChatErrorHandler, log_operation
from growthlab.rendering import RenderedLine, Span, render_markdown, render_route_links

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Shows user-facing notifications (a toast in the web app)."""

    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Notifier that only writes notifications to the log."""

    def notify(self, notification: Notification) -> None:
        logger.warning(
            "%s: %s", notification.title, notification.description or ""
        )


class AssistantChat:
    """
    Conversation controller shared by both assistants.

    1. Appends your message to the transcript
    2. Opens an empty assistant placeholder
    3. Streams the reply into the placeholder
    4. Closes the reply, or cleans it up and notifies you if the stream failed
    """

    name: ClassVar[str] = "assistant"
    default_placeholder_policy: ClassVar[PlaceholderPolicy] = (
        PlaceholderPolicy.REMOVE_IF_EMPTY
    )

    def __init__(
        self,
        client: ChatStreamClient,
        notifier: Notifier | None = None,
        *,
        placeholder_policy: PlaceholderPolicy | None = None,
        on_update: Callable[[ChatTranscript], None] | None = None,
    ) -> None:
        self.client = client
        self.notifier = notifier or LoggingNotifier()
        self.placeholder_policy = placeholder_policy or self.default_placeholder_policy
        self.on_update = on_update

        self.transcript = ChatTranscript()
        self.loading = False
        self.session: StreamingChatSession | None = None

    def request_context(self) -> dict[str, Any]:
        """Extra JSON fields sent with every request."""
        return {}

    def describe_error(self, error: ChatError) -> Notification:
        return Notification(title=str(error))

    def render(self, content: str) -> Any:
        return content

    @log_operation("assistant_send", log_timing=True)
    async def send(self, text: str) -> SessionState | None:
        """
        Submit a user message and stream the reply.

        Returns the session's final state, or None if the message was refused
        (blank, or a reply is still streaming).
        """
        text = text.strip()
        if not text or self.loading:
            return None

        self.transcript.add_user_message(text)
        self._emit_update()
        return await self._stream_turn()

    def cancel(self) -> None:
        """Stop the reply that is currently streaming, if any."""
        if self.session is not None:
            self.session.cancel()

    async def _stream_turn(self) -> SessionState:
        history = self.transcript.history()
        self.transcript.open_placeholder()
        self.loading = True
        self._emit_update()

        session = StreamingChatSession(
            self.client,
            context=self.request_context(),
            on_text=self._on_text,
            on_error=self._on_error,
        )
        self.session = session
        try:
            async for _ in session.run(history):
                pass
        finally:
            if session.state is SessionState.COMPLETED:
                self.transcript.close_open()
            else:
                self.transcript.settle_failed_turn(self.placeholder_policy)
            self.loading = False
            self._emit_update()

        return session.state

    def _on_text(self, text: str) -> None:
        self.transcript.replace_open_content(text)
        self._emit_update()

    def _on_error(self, error: ChatError) -> None:
        self.notifier.notify(self.describe_error(error))

    def _emit_update(self) -> None:
        if self.on_update is not None:
            self.on_update(self.transcript)


class NavigatorAssistant(AssistantChat):
    """Site-wide assistant that points users to sections of Growth Lab."""

    name: ClassVar[str] = "navigator"
    default_placeholder_policy: ClassVar[PlaceholderPolicy] = (
        PlaceholderPolicy.ALWAYS_REMOVE
    )

    SUGGESTED_QUESTIONS: ClassVar[tuple[str, ...]] = (
        "What can I do here?",
        "Show me the Toolbox",
        "How do I find marketing tools?",
        "What's coming soon?",
    )
    GREETING: ClassVar[str] = (
        "Hi! I can help you navigate Growth Lab. What would you like to explore?"
    )

    async def ask_suggestion(self, index: int) -> SessionState | None:
        """Send one of the suggested starter questions."""
        return await self.send(self.SUGGESTED_QUESTIONS[index])

    def describe_error(self, error: ChatError) -> Notification:
        if error.status_code is not None:
            return Notification(title=error.user_message or "Failed to get response")
        return Notification(title=str(error) or "Failed to send message")

    def render(self, content: str) -> list[Span]:
        return render_route_links(content)


class FieldContext(BaseModel):
    """What the AI Coach knows about the workbook field being edited."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_id: str = Field(alias="modelId")
    step_title: str = Field(default="", alias="stepTitle")
    step_instruction: str = Field(default="", alias="stepInstruction")
    field_label: str = Field(alias="fieldLabel")
    current_value: Any = Field(default=None, alias="currentValue")
    all_progress: dict[str, Any] = Field(default_factory=dict, alias="allProgress")

    def to_request(self) -> dict[str, Any]:
        """Serialize with the endpoint's camelCase keys."""
        value = self.current_value
        if value is None:
            current_value = ""
        elif isinstance(value, str):
            current_value = value
        else:
            current_value = json.dumps(value)

        return {
            "modelId": self.model_id,
            "fieldLabel": self.field_label,
            "stepTitle": self.step_title,
            "stepInstruction": self.step_instruction,
            "currentValue": current_value,
            "allProgress": self.all_progress,
        }


class FieldAssistant(AssistantChat):
    """
    AI Coach attached to one workbook field. Gives hints and examples, never
    the answer. Opening it the first time asks for an initial hint.
    """

    name: ClassVar[str] = "coach"

    def __init__(
        self,
        client: ChatStreamClient,
        field_context: FieldContext,
        notifier: Notifier | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, notifier, **kwargs)
        self.field_context = field_context
        self.initial_loaded = False

    def request_context(self) -> dict[str, Any]:
        return self.field_context.to_request()

    def update_field(
        self,
        current_value: Any = None,
        all_progress: dict[str, Any] | None = None,
    ) -> None:
        """Refresh the field value and workbook progress sent with requests."""
        update: dict[str, Any] = {"current_value": current_value}
        if all_progress is not None:
            update["all_progress"] = all_progress
        self.field_context = self.field_context.model_copy(update=update)

    @log_operation("coach_open", log_timing=True)
    async def open(self) -> SessionState | None:
        """Request the initial hint, once per assistant."""
        if self.initial_loaded or self.loading:
            return None
        self.initial_loaded = True
        return await self._stream_turn()

    @staticmethod
    def _body_error(error: ChatError, fallback: str | None) -> str | None:
        # An empty response_data means the error body was not a JSON object
        if not error.response_data:
            return "Request failed"
        return error.user_message or fallback

    def describe_error(self, error: ChatError) -> Notification:
        category = ChatErrorHandler.classify_error(error)
        if category in ("rate_limit", "quota"):
            return Notification(
                title="AI Assistant", description=self._body_error(error, None)
            )
        if error.status_code is not None:
            return Notification(
                title="AI Assistant Error",
                description=self._body_error(error, "Something went wrong"),
            )
        if isinstance(error, ChatTransportError | StreamingError):
            return Notification(
                title="Connection error",
                description="Could not reach the AI assistant",
            )
        return Notification(
            title="AI Assistant Error", description="Something went wrong"
        )

    def render(self, content: str) -> list[RenderedLine]:
        return render_markdown(content)
