"""
HTTP client for the Growth Lab chat functions.

Opens a streamed POST against a chat endpoint and hands the open response to
the caller; the body is never buffered. Failures are mapped onto the
`ChatError` hierarchy.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from .exceptions import (
    ChatError,
    ChatTransportError,
    QuotaExceededError,
    RateLimitError,
    StreamingError,
)
from .models import EndpointConfig

logger = logging.getLogger(__name__)

HTTP_PAYMENT_REQUIRED = 402
HTTP_TOO_MANY_REQUESTS = 429


class ChatStreamClient:
    """HTTP client for streamed chat completion requests."""

    def __init__(
        self,
        config: EndpointConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            headers=config.headers,
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
            transport=transport,
        )

    @asynccontextmanager
    async def open_stream(
        self, payload: dict[str, Any]
    ) -> AsyncIterator[httpx.Response]:
        """
        POST `payload` and yield the response once its headers are in.

        Raises:
            RateLimitError: The endpoint answered 429.
            QuotaExceededError: The endpoint answered 402.
            ChatTransportError: Any other non-2xx status or network failure
                before the body started.
            StreamingError: The transport failed while the body was being read.
        """
        endpoint = self.config.endpoint
        streaming = False
        try:
            async with self.client.stream("POST", endpoint, json=payload) as response:
                if not response.is_success:
                    await self._raise_for_status(response)

                content_type = response.headers.get("content-type", "")
                if "text/event-stream" not in content_type:
                    logger.warning(
                        f"Expected text/event-stream from {endpoint}, "
                        f"got content-type: {content_type!r}"
                    )

                streaming = True
                yield response
        except ChatError:
            raise
        except (httpx.HTTPError, OSError) as e:
            if streaming:
                logger.error(f"Stream from {endpoint} broke: {e}")
                raise StreamingError(
                    f"Stream interrupted: {e!s}", endpoint=endpoint
                ) from e
            logger.error(f"HTTP error calling {endpoint}: {e}")
            raise ChatTransportError(
                f"HTTP error: {e!s}", endpoint=endpoint
            ) from e

    async def _raise_for_status(self, response: httpx.Response) -> None:
        """Read the error body and raise the matching ChatError."""
        body = await response.aread()
        try:
            data = json.loads(body) if body else {}
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        status = response.status_code
        message = data.get("error") or f"Chat endpoint returned HTTP {status}"
        error_kwargs: dict[str, Any] = {
            "endpoint": self.config.endpoint,
            "status_code": status,
            "response_data": data,
        }

        logger.warning(f"Chat endpoint error {status}: {message}")

        if status == HTTP_TOO_MANY_REQUESTS:
            raise RateLimitError(message, **error_kwargs)
        if status == HTTP_PAYMENT_REQUIRED:
            raise QuotaExceededError(message, **error_kwargs)
        raise ChatTransportError(message, **error_kwargs)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> ChatStreamClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
