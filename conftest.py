"""Shared fixtures: a fake chat function served through httpx.MockTransport."""

import asyncio
import json
from typing import Any

import httpx
import pytest

from growthlab.llm.client import ChatStreamClient
from growthlab.llm.models import EndpointConfig

TEST_ENDPOINT = "https://growthlab-test.supabase.co/functions/v1/navigator-chat"


def delta_frame(text: str) -> bytes:
    """One `data:` line carrying a chat-completion delta."""
    chunk = {"choices": [{"index": 0, "delta": {"content": text}}]}
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\n".encode()


class FakeChatEndpoint:
    """Serves canned SSE chunks and records the requests it receives."""

    def __init__(
        self,
        chunks: list[bytes] | None = None,
        *,
        status: int = 200,
        json_body: Any = None,
        text_body: str = "",
        content_type: str = "text/event-stream",
        refuse_connection: bool = False,
        fail_mid_stream: bool = False,
        stall: bool = False,
    ) -> None:
        self.chunks = chunks or []
        self.status = status
        self.json_body = json_body
        self.text_body = text_body
        self.content_type = content_type
        self.refuse_connection = refuse_connection
        self.fail_mid_stream = fail_mid_stream
        self.stall = stall

        self.requests: list[httpx.Request] = []
        self.chunks_served = 0

    @property
    def last_payload(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.refuse_connection:
            raise httpx.ConnectError("Connection refused", request=request)
        if self.status != 200:
            if self.json_body is not None:
                return httpx.Response(self.status, json=self.json_body)
            return httpx.Response(self.status, text=self.text_body)
        return httpx.Response(
            200, headers={"content-type": self.content_type}, content=self._body()
        )

    async def _body(self):
        for chunk in self.chunks:
            self.chunks_served += 1
            yield chunk
            await asyncio.sleep(0)
        if self.fail_mid_stream:
            raise httpx.ReadError("Connection reset by peer")
        if self.stall:
            await asyncio.sleep(3600)


@pytest.fixture
def endpoint_config() -> EndpointConfig:
    return EndpointConfig(endpoint=TEST_ENDPOINT, auth_token="test-publishable-key")


@pytest.fixture
def chat_endpoint(endpoint_config):
    """Factory returning a (FakeChatEndpoint, ChatStreamClient) pair."""
    def _build(chunks: list[bytes] | None = None, **kwargs: Any):
        fake = FakeChatEndpoint(chunks, **kwargs)
        client = ChatStreamClient(endpoint_config, transport=httpx.MockTransport(fake))
        return fake, client
    return _build
