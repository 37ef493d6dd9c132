"""
Tests for LLM error classification and do_llm_request.
"""

import asyncio

import httpx
import pytest

from git_llm_review.llm.errors import (
    AuthenticationError,
    InvalidRequestError,
    LLMTimeoutError,
    ProviderError,
    RateLimitError,
    ServerError,
)
from git_llm_review.retry import (
    LLMErrorKind,
    RetryPolicy,
    classify_llm_error,
    do_llm_request,
    is_llm_error_retryable,
    llm_retry_policy,
)


def response(status: int, body: dict | None = None) -> httpx.Response:
    request = httpx.Request("POST", "https://llm.test/v1/chat/completions")
    return httpx.Response(status, json=body or {}, request=request)


class ScriptedSend:
    """Returns queued responses, or raises queued errors, one per call."""

    def __init__(self, *outcomes: httpx.Response | Exception):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> httpx.Response:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def no_sleep(_: float) -> None:
    return None


FAST_POLICY = RetryPolicy(max_retries=3, initial_delay=0.0, jitter_factor=0.0)


# =============================================================================
# CLASSIFICATION
# =============================================================================

class TestClassifyLLMError:
    """Typed errors first, then message text."""

    @pytest.mark.parametrize("error,kind", [
        (RateLimitError("slow down", status_code=429), LLMErrorKind.RATE_LIMITED),
        (ServerError("oops", status_code=503), LLMErrorKind.SERVER_ERROR),
        (LLMTimeoutError("read timeout"), LLMErrorKind.TIMEOUT),
        (AuthenticationError("bad key", status_code=401), LLMErrorKind.CLIENT_ERROR),
        (InvalidRequestError("bad payload", status_code=400), LLMErrorKind.CLIENT_ERROR),
        (TimeoutError(), LLMErrorKind.TIMEOUT),
        (httpx.ReadTimeout("read timed out"), LLMErrorKind.TIMEOUT),
        (asyncio.CancelledError(), LLMErrorKind.CANCELLED),
        (ProviderError("weird", status_code=502), LLMErrorKind.SERVER_ERROR),
    ])
    def test_typed_errors(self, error: BaseException, kind: LLMErrorKind):
        assert classify_llm_error(error) == kind

    def test_http_status_error(self):
        resp = response(429)
        error = httpx.HTTPStatusError("too many", request=resp.request, response=resp)

        assert classify_llm_error(error) == LLMErrorKind.RATE_LIMITED

    @pytest.mark.parametrize("message,kind", [
        ("Rate limit reached for requests", LLMErrorKind.RATE_LIMITED),
        ("HTTP 429 from upstream", LLMErrorKind.RATE_LIMITED),
        ("received status 503", LLMErrorKind.SERVER_ERROR),
        ("connection reset by peer", LLMErrorKind.SERVER_ERROR),
        ("context deadline exceeded", LLMErrorKind.TIMEOUT),
        ("Service Unavailable", LLMErrorKind.SERVER_ERROR),
        ("invalid character in JSON", LLMErrorKind.UNKNOWN),
        ("processed 15003 tokens", LLMErrorKind.UNKNOWN),
    ])
    def test_message_rules(self, message: str, kind: LLMErrorKind):
        assert classify_llm_error(RuntimeError(message)) == kind

    def test_retryable_kinds(self):
        assert is_llm_error_retryable(RateLimitError("x"))
        assert is_llm_error_retryable(ServerError("x"))
        assert is_llm_error_retryable(LLMTimeoutError("x"))
        assert not is_llm_error_retryable(AuthenticationError("x"))
        assert not is_llm_error_retryable(asyncio.CancelledError())
        assert not is_llm_error_retryable(RuntimeError("something odd"))

    def test_llm_policy_keeps_schedule(self):
        base = RetryPolicy(max_retries=7, initial_delay=0.3)

        policy = llm_retry_policy(base)

        assert policy.max_retries == 7
        assert policy.initial_delay == 0.3
        assert policy.is_retryable is is_llm_error_retryable


# =============================================================================
# DO LLM REQUEST
# =============================================================================

class TestDoLLMRequest:
    """Status handling plus retries around a raw send."""

    @pytest.mark.asyncio
    async def test_returns_successful_response(self):
        send = ScriptedSend(response(200, {"ok": True}))

        resp = await do_llm_request(send, FAST_POLICY, sleep=no_sleep)

        assert resp.status_code == 200
        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self):
        send = ScriptedSend(response(429), response(429), response(200))
        policy = RetryPolicy(max_retries=5, initial_delay=0.0, jitter_factor=0.0)

        resp = await do_llm_request(send, policy, sleep=no_sleep)

        assert resp.status_code == 200
        assert send.calls == 3

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_budget(self):
        send = ScriptedSend(*[response(503, {"error": {"message": "overloaded"}})] * 4)

        with pytest.raises(ServerError) as exc_info:
            await do_llm_request(send, FAST_POLICY, provider="openai", sleep=no_sleep)

        assert send.calls == 4
        assert "overloaded" in str(exc_info.value)
        assert "openai API error 503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_auth_failure_not_retried(self):
        send = ScriptedSend(response(401, {"error": {"message": "invalid key"}}), response(200))

        with pytest.raises(AuthenticationError):
            await do_llm_request(send, FAST_POLICY, sleep=no_sleep)

        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self):
        send = ScriptedSend(response(400), response(200))

        with pytest.raises(InvalidRequestError):
            await do_llm_request(send, FAST_POLICY, sleep=no_sleep)

        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_transport_timeout_retried(self):
        send = ScriptedSend(LLMTimeoutError("openai request timed out"), response(200))

        resp = await do_llm_request(send, FAST_POLICY, sleep=no_sleep)

        assert resp.status_code == 200
        assert send.calls == 2

    @pytest.mark.asyncio
    async def test_disabled_policy_single_attempt(self):
        send = ScriptedSend(response(429), response(200))

        with pytest.raises(RateLimitError):
            await do_llm_request(send, RetryPolicy.disabled(), sleep=no_sleep)

        assert send.calls == 1
