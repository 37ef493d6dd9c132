"""
LLM-specific retry classification.

Errors are first classified into an LLMErrorKind using their type, then,
for untyped errors, their message text. Only transport and availability
failures are retried; anything the provider rejected on its merits is not,
since repeating it only burns quota.
"""

import asyncio
import random
import re
from collections.abc import Awaitable, Callable
from enum import Enum

import httpx
import structlog

from git_llm_review.llm.errors import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    LLMTimeoutError,
    RateLimitError,
    ServerError,
    raise_for_llm_status,
)

from .executor import SleepFunc, retry_async
from .policy import RetryPolicy

logger = structlog.get_logger(__name__)


class LLMErrorKind(str, Enum):
    """Classification of a failed LLM call."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"  # Auth, malformed request, other 4xx
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {LLMErrorKind.TIMEOUT, LLMErrorKind.RATE_LIMITED, LLMErrorKind.SERVER_ERROR}
)

_STATUS_IN_MESSAGE = re.compile(r"\b(429|500|502|503|504)\b")

_MESSAGE_RULES: tuple[tuple[LLMErrorKind, tuple[str, ...]], ...] = (
    (LLMErrorKind.RATE_LIMITED, ("rate limit", "rate_limit", "too many requests")),
    (LLMErrorKind.TIMEOUT, ("timeout", "timed out", "deadline exceeded")),
    (
        LLMErrorKind.SERVER_ERROR,
        (
            "server error",
            "service unavailable",
            "bad gateway",
            "connection reset",
            "connection refused",
            "transport failure",
        ),
    ),
)


def classify_llm_error(error: BaseException) -> LLMErrorKind:
    """Map an error from an LLM call onto an LLMErrorKind."""
    if isinstance(error, asyncio.CancelledError):
        return LLMErrorKind.CANCELLED
    if isinstance(error, RateLimitError):
        return LLMErrorKind.RATE_LIMITED
    if isinstance(error, ServerError):
        return LLMErrorKind.SERVER_ERROR
    if isinstance(error, LLMTimeoutError):
        return LLMErrorKind.TIMEOUT
    if isinstance(error, (AuthenticationError, InvalidRequestError)):
        return LLMErrorKind.CLIENT_ERROR
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return LLMErrorKind.TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        return _classify_status(error.response.status_code)
    if isinstance(error, LLMError) and error.status_code is not None:
        return _classify_status(error.status_code)
    return _classify_message(str(error))


def is_llm_error_retryable(error: BaseException) -> bool:
    """Retry predicate for LLM calls."""
    return classify_llm_error(error) in RETRYABLE_KINDS


def llm_retry_policy(policy: RetryPolicy) -> RetryPolicy:
    """The same schedule with LLM classification installed."""
    return policy.with_predicate(is_llm_error_retryable)


async def do_llm_request(
    send: Callable[[], Awaitable[httpx.Response]],
    policy: RetryPolicy,
    *,
    provider: str = "llm",
    sleep: SleepFunc = asyncio.sleep,
    rng: random.Random | None = None,
) -> httpx.Response:
    """
    Send an HTTP request to an LLM API with retries.

    A 429 response is turned into a RateLimitError even though the transport
    returned normally, so it is retried rather than handed back as success.
    Other non-2xx responses are raised as their typed errors and classified
    as usual.
    """

    async def attempt() -> httpx.Response:
        response = await send()
        if response.status_code == 429:
            raise RateLimitError("rate limit exceeded", status_code=429)
        raise_for_llm_status(response, provider)
        return response

    return await retry_async(
        attempt,
        llm_retry_policy(policy),
        sleep=sleep,
        rng=rng,
        label=f"{provider} request",
    )


def _classify_status(status: int) -> LLMErrorKind:
    if status == 429:
        return LLMErrorKind.RATE_LIMITED
    if status >= 500:
        return LLMErrorKind.SERVER_ERROR
    if status >= 400:
        return LLMErrorKind.CLIENT_ERROR
    return LLMErrorKind.UNKNOWN


def _classify_message(message: str) -> LLMErrorKind:
    lowered = message.lower()

    status = _STATUS_IN_MESSAGE.search(lowered)
    if status:
        return _classify_status(int(status.group(1)))

    for kind, patterns in _MESSAGE_RULES:
        if any(p in lowered for p in patterns):
            return kind
    return LLMErrorKind.UNKNOWN
