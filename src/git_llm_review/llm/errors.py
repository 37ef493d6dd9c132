"""
LLM provider errors.

Every failure from a provider is raised as a subclass of LLMError so the
retry layer can classify it by type before falling back to message text.
"""

from typing import Any

import httpx


class LLMError(Exception):
    """Base class for provider failures."""

    prefix = "llm error"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(f"{self.prefix}: {message}")


class ProviderError(LLMError):
    """The provider failed in a way that has no more specific type."""

    prefix = "provider error"


class InvalidRequestError(LLMError):
    """The request was rejected as malformed (4xx other than auth and 429)."""

    prefix = "invalid request"


class AuthenticationError(LLMError):
    """Missing or rejected credentials."""

    prefix = "authentication error"


class LLMTimeoutError(LLMError):
    """The request did not complete in time."""

    prefix = "timeout error"


class RateLimitError(LLMError):
    """HTTP 429 from the provider."""

    prefix = "rate limit"


class ServerError(LLMError):
    """HTTP 5xx from the provider."""

    prefix = "server error"


class UnsupportedProviderError(LLMError):
    """No factory is registered under the requested provider name."""

    prefix = "unsupported provider"


def raise_for_llm_status(response: httpx.Response, provider: str = "llm") -> None:
    """Map a non-2xx response onto the typed error hierarchy."""
    status = response.status_code
    if 200 <= status < 300:
        return

    detail = _error_detail(response)
    message = f"{provider} API error {status}" + (f": {detail}" if detail else "")

    if status in (401, 403):
        raise AuthenticationError(message, status_code=status)
    if status == 429:
        raise RateLimitError(message, status_code=status)
    if status >= 500:
        raise ServerError(message, status_code=status)
    if status >= 400:
        raise InvalidRequestError(message, status_code=status)
    raise ProviderError(message, status_code=status)


def _error_detail(response: httpx.Response) -> str:
    """Pull ``error.message`` out of a JSON error body when there is one."""
    try:
        body: Any = response.json()
    except ValueError:
        return response.text.strip()[:200]

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return ""
