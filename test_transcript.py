#!/usr/bin/env python3
"""
Tests for the chat transcript and its assistant placeholder lifecycle.
"""

import pytest

from growthlab.history.transcript import ChatMessage, ChatTranscript
from growthlab.llm.models import PlaceholderPolicy


@pytest.fixture
def transcript():
    transcript = ChatTranscript()
    transcript.add_user_message("What can I do here?")
    return transcript


class TestChatMessage:
    """Test ChatMessage behavior."""

    def test_closed_message_content_is_frozen(self):
        message = ChatMessage(role="user", content="hi")
        with pytest.raises(RuntimeError):
            message.content = "changed"

    def test_payload_excludes_open_flag(self):
        message = ChatMessage(role="assistant", content="x", closed=False)
        assert message.to_payload() == {"role": "assistant", "content": "x"}
        assert "closed" not in message.model_dump()

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError):
            ChatMessage(role="system", content="x")


class TestPlaceholderLifecycle:
    """Test opening, filling and closing the assistant placeholder."""

    def test_placeholder_is_last_and_open(self, transcript):
        placeholder = transcript.open_placeholder()
        assert transcript.messages[-1] is placeholder
        assert transcript.open_message is placeholder
        assert placeholder.content == ""

    def test_replace_open_content(self, transcript):
        transcript.open_placeholder()
        transcript.replace_open_content("Hel")
        transcript.replace_open_content("Hello")
        assert transcript.open_message.content == "Hello"

    def test_close_freezes_content(self, transcript):
        transcript.open_placeholder()
        transcript.replace_open_content("done")
        message = transcript.close_open()

        assert message.closed
        assert transcript.open_message is None
        with pytest.raises(RuntimeError):
            transcript.replace_open_content("more")

    def test_one_open_turn_at_a_time(self, transcript):
        transcript.open_placeholder()
        with pytest.raises(RuntimeError):
            transcript.add_user_message("another")
        with pytest.raises(RuntimeError):
            transcript.open_placeholder()

    def test_history_skips_open_placeholder(self, transcript):
        transcript.open_placeholder()
        assert transcript.history() == [
            {"role": "user", "content": "What can I do here?"}
        ]

    def test_initial_messages_are_closed(self):
        seeded = ChatTranscript([ChatMessage(role="assistant", content="x", closed=False)])
        assert seeded.open_message is None
        assert len(seeded) == 1


class TestSettleFailedTurn:
    """Test placeholder cleanup policies after a failed turn."""

    def test_remove_if_empty_drops_empty(self, transcript):
        transcript.open_placeholder()
        assert transcript.settle_failed_turn(PlaceholderPolicy.REMOVE_IF_EMPTY) is None
        assert [m.role for m in transcript] == ["user"]

    def test_remove_if_empty_keeps_partial(self, transcript):
        transcript.open_placeholder()
        transcript.replace_open_content("partial")
        kept = transcript.settle_failed_turn(PlaceholderPolicy.REMOVE_IF_EMPTY)
        assert kept.content == "partial"
        assert kept.closed
        assert len(transcript) == 2

    def test_always_remove_drops_partial(self, transcript):
        transcript.open_placeholder()
        transcript.replace_open_content("partial")
        assert transcript.settle_failed_turn(PlaceholderPolicy.ALWAYS_REMOVE) is None
        assert len(transcript) == 1

    def test_keep_leaves_empty_message(self, transcript):
        transcript.open_placeholder()
        kept = transcript.settle_failed_turn(PlaceholderPolicy.KEEP)
        assert kept.content == ""
        assert transcript.messages[-1] is kept

    def test_nothing_open(self, transcript):
        assert transcript.settle_failed_turn(PlaceholderPolicy.ALWAYS_REMOVE) is None
        assert len(transcript) == 1
