"""
Structured logging and failure classification for Growth Lab assistants.

Every handled chat failure is logged once with a category
(`rate_limit`, `quota`, `http_error`, ...) that the assistants also use to
pick their notification copy. Assistant coroutines are wrapped with
`log_operation`; one-off blocks use `operation_context`.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from growthlab.llm.exceptions import (
    ChatError,
    QuotaExceededError,
    RateLimitError,
    StreamingError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "WARNING") -> None:
    """Route stdlib and structlog output through one root handler."""
    logging.basicConfig(
        level=level.upper(), format="%(asctime)s - %(levelname)s - %(message)s"
    )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _loggable(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class ChatErrorHandler:
    """Maps chat failures to log categories and logs them."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a category used in logs and notifications.

        Transport errors without a status code are classified by the httpx
        or OS error they wrap.
        """
        if isinstance(error, RateLimitError):
            return "rate_limit"
        if isinstance(error, QuotaExceededError):
            return "quota"
        if isinstance(error, StreamingError):
            return "streaming_error"
        if isinstance(error, ChatError):
            if error.status_code is not None:
                return "http_error"
            cause = error.__cause__
            if cause is not None and not isinstance(cause, ChatError):
                return ChatErrorHandler.classify_error(cause)
            return "connection_error"
        if isinstance(error, httpx.TimeoutException | TimeoutError):
            return "timeout_error"
        if isinstance(error, httpx.TransportError | ConnectionError | OSError):
            return "connection_error"
        if isinstance(error, ValidationError | ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"

    @staticmethod
    def log_failure(
        error: BaseException,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Log a handled failure with its category and return the category."""
        category = ChatErrorHandler.classify_error(error)
        fields: dict[str, Any] = dict(context or {})
        if isinstance(error, ChatError):
            fields.setdefault("endpoint", error.endpoint)
            if error.status_code is not None:
                fields["status_code"] = error.status_code

        logger.error(
            "Chat request failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=category,
            error_message=str(error),
            **fields,
        )
        return category


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging assistant coroutines.

    When the first argument has a `name` (an assistant), it is bound as
    `assistant`. A non-None result is logged, enums by value.
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bound = dict(context or {})
            owner_name = getattr(args[0], "name", None) if args else None
            if isinstance(owner_name, str):
                bound["assistant"] = owner_name
            operation_logger = logger.bind(
                operation=operation, function=func.__name__, **bound
            )

            operation_logger.info("Operation started")
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                failure: dict[str, Any] = {
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "error_category": ChatErrorHandler.classify_error(e),
                }
                if log_timing:
                    failure["duration_ms"] = _elapsed_ms(start)
                operation_logger.error("Operation failed", **failure)
                raise

            finished: dict[str, Any] = {}
            if result is not None:
                finished["result"] = _loggable(result)
            if log_timing:
                finished["duration_ms"] = _elapsed_ms(start)
            operation_logger.info("Operation finished", **finished)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
) -> AsyncIterator[Any]:
    """
    Log the start, duration and any failure of a block; yields the bound
    logger so the block can add its own entries.
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.debug("Operation started")
    start = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        operation_logger.warning(
            "Operation failed",
            error_type=type(e).__name__,
            error_category=ChatErrorHandler.classify_error(e),
            duration_ms=_elapsed_ms(start),
        )
        raise

    operation_logger.debug("Operation finished", duration_ms=_elapsed_ms(start))


class ContextualLogger:
    """Logger that carries fixed context, e.g. one chat session's id."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        return ContextualLogger({**self.base_context, **context})

    def _log(self, level: str, message: str, context: dict[str, Any]) -> None:
        getattr(self._logger, level)(
            message, **{key: _loggable(value) for key, value in context.items()}
        )

    def debug(self, message: str, **context: Any) -> None:
        self._log("debug", message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log("info", message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log("warning", message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log("error", message, context)
