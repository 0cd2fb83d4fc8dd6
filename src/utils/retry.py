"""Retry helpers and the upstream error taxonomy.

Every error raised by a collaborator boundary (Gemini, Veo) is an
``UpstreamError`` subclass carrying an ``ErrorKind``. Callers branch on
``error.kind`` and never on message text.
"""

import asyncio
import functools
import logging
import random
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_DELAY_MS = 4000
MAX_JITTER_MS = 1000


class ErrorKind(str, Enum):
    """Classification of a failure, decided where the error is raised."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT_UPSTREAM = "transient_upstream"
    AUTHENTICATION_INVALID = "authentication_invalid"
    NOT_FOUND = "not_found"
    NO_OUTPUT = "no_output"
    EMPTY_RUN = "empty_run"
    UNKNOWN = "unknown"


class UpstreamError(Exception):
    """Base class for classified service errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class APIRateLimitError(UpstreamError):
    """Upstream throttled the request (HTTP 429 / RESOURCE_EXHAUSTED)."""

    kind = ErrorKind.RATE_LIMITED


class TemporaryServiceError(UpstreamError):
    """Upstream failed server-side (HTTP 5xx)."""

    kind = ErrorKind.TRANSIENT_UPSTREAM


class NetworkError(UpstreamError):
    """Transport-level failure before a response was received."""

    kind = ErrorKind.TRANSIENT_UPSTREAM


class AuthenticationError(UpstreamError):
    """Credential rejected, or the entity it points at no longer exists."""

    kind = ErrorKind.AUTHENTICATION_INVALID


class NotFoundError(UpstreamError):
    kind = ErrorKind.NOT_FOUND


class NoOutputError(UpstreamError):
    """Request succeeded but carried no usable image or video payload."""

    kind = ErrorKind.NO_OUTPUT


class EmptyRunError(UpstreamError):
    """A whole generation run finished without producing a single asset."""

    kind = ErrorKind.EMPTY_RUN


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT_UPSTREAM})


def error_kind(error: BaseException) -> ErrorKind:
    """Return the classification of any exception (UNKNOWN if unclassified)."""
    if isinstance(error, UpstreamError):
        return error.kind
    return ErrorKind.UNKNOWN


def is_retryable(error: BaseException) -> bool:
    return error_kind(error) in RETRYABLE_KINDS


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation`` with exponential backoff on retryable failures.

    Rate-limit and transient upstream errors are retried. The delay doubles
    after each attempt plus up to one second of random jitter. Any other
    error propagates immediately. Once ``max_attempts`` is used up, the last
    error propagates.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts, including the first
        initial_delay_ms: Wait before the second attempt
        label: Name used in log messages
        sleep: Awaitable sleep taking seconds (injectable for tests)

    Returns:
        Whatever ``operation`` returns on its first successful attempt
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay_ms = float(initial_delay_ms)
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt == max_attempts:
                raise

            logger.warning(
                f"{label}: {error_kind(e).value} on attempt {attempt}/{max_attempts}. "
                f"Retrying in {delay_ms:.0f}ms"
            )
            await sleep(delay_ms / 1000)
            delay_ms = delay_ms * 2 + random.uniform(0, MAX_JITTER_MS)

    raise RuntimeError("unreachable")  # pragma: no cover


def retry_api_call(
    max_retries: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`with_retry` for async methods.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Wait before the first retry, in seconds
        sleep: Awaitable sleep taking seconds (injectable for tests)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(
                lambda: func(*args, **kwargs),
                max_attempts=max_retries + 1,
                initial_delay_ms=base_delay * 1000,
                label=func.__qualname__,
                sleep=sleep,
            )

        return wrapper

    return decorator
