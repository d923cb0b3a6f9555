# growthlab/history/transcript.py
from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any, Literal

from pydantic import BaseModel, Field

from growthlab.llm.models import PlaceholderPolicy

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """
    One transcript entry. Assistant content grows while the turn is open and
    is frozen once the turn closes.
    """
    role: Role
    content: str = ""
    closed: bool = Field(default=True, exclude=True)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "content" and self.closed:
            raise RuntimeError("Message is closed; its content can no longer change")
        super().__setattr__(name, value)

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ChatTranscript:
    """
    Ordered conversation with at most one open assistant placeholder, which is
    always the last message.
    """

    def __init__(self, messages: Iterable[ChatMessage] | None = None) -> None:
        self._messages: list[ChatMessage] = []
        for message in messages or ():
            self._messages.append(message.model_copy(update={"closed": True}))

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._messages))

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def open_message(self) -> ChatMessage | None:
        if self._messages and not self._messages[-1].closed:
            return self._messages[-1]
        return None

    def add_user_message(self, content: str) -> ChatMessage:
        self._require_no_open_turn()
        message = ChatMessage(role="user", content=content)
        self._messages.append(message)
        return message

    def open_placeholder(self) -> ChatMessage:
        """Append the empty assistant message the next stream will fill."""
        self._require_no_open_turn()
        message = ChatMessage(role="assistant", content="", closed=False)
        self._messages.append(message)
        return message

    def replace_open_content(self, content: str) -> None:
        """Swap the open placeholder's content for the latest accumulated text."""
        message = self.open_message
        if message is None:
            raise RuntimeError("No open assistant message to update")
        message.content = content

    def close_open(self) -> ChatMessage | None:
        message = self.open_message
        if message is not None:
            message.closed = True
        return message

    def discard_open(self) -> ChatMessage | None:
        message = self.open_message
        if message is not None:
            self._messages.pop()
        return message

    def settle_failed_turn(self, policy: PlaceholderPolicy) -> ChatMessage | None:
        """
        Close or drop the open placeholder after a failed or cancelled turn.

        Returns the message if it stays in the transcript, otherwise None.
        """
        message = self.open_message
        if message is None:
            return None
        if policy is PlaceholderPolicy.ALWAYS_REMOVE or (
            policy is PlaceholderPolicy.REMOVE_IF_EMPTY and not message.content
        ):
            self.discard_open()
            return None
        return self.close_open()

    def history(self) -> list[dict[str, Any]]:
        """JSON-ready message list for the next request (closed messages only)."""
        return [m.to_payload() for m in self._messages if m.closed]

    def _require_no_open_turn(self) -> None:
        if self.open_message is not None:
            raise RuntimeError(
                "An assistant reply is still streaming; wait for it to finish"
            )
