"""
Base LLM provider.

A provider is split into ``send`` (one raw HTTP exchange, no status
checking) and ``parse_completion`` (pull the text out of a 2xx response)
so the retry layer can sit between the two and inspect status codes.
"""

from typing import Any, Protocol

import httpx
import structlog

from git_llm_review.config import LLMSettings

from .errors import AuthenticationError, LLMTimeoutError, ProviderError, raise_for_llm_status

logger = structlog.get_logger(__name__)


class LLMProvider(Protocol):
    """What the review pipeline needs from a provider."""

    name: str
    model: str

    async def send(self, prompt: str) -> httpx.Response: ...

    def parse_completion(self, response: httpx.Response) -> str: ...

    async def complete(self, prompt: str) -> str: ...

    async def aclose(self) -> None: ...


class HTTPProvider:
    """Shared plumbing for JSON-over-HTTP chat APIs."""

    name = "base"

    def __init__(self, settings: LLMSettings, http_client: httpx.AsyncClient | None = None):
        if not settings.api_key:
            raise AuthenticationError(f"{self.name} API key is required")

        self.model = settings.model
        self.api_url = settings.effective_api_url.rstrip("/")
        self._api_key = settings.api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=float(settings.timeout))

    @property
    def endpoint(self) -> str:
        raise NotImplementedError

    def headers(self) -> dict[str, str]:
        raise NotImplementedError

    def build_payload(self, prompt: str) -> dict[str, Any]:
        raise NotImplementedError

    def extract_text(self, body: dict[str, Any]) -> str:
        raise NotImplementedError

    async def send(self, prompt: str) -> httpx.Response:
        """POST the prompt once and return the response whatever its status."""
        logger.debug("LLM request", provider=self.name, model=self.model, prompt_chars=len(prompt))
        try:
            return await self._client.post(
                self.endpoint,
                headers=self.headers(),
                json=self.build_payload(prompt),
            )
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"{self.name} request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderError(f"{self.name} transport failure: {e}") from e

    def parse_completion(self, response: httpx.Response) -> str:
        """Extract completion text from a successful response."""
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(f"failed to parse {self.name} response: {e}") from e
        if not isinstance(body, dict):
            raise ProviderError(f"unexpected {self.name} response shape")

        text = self.extract_text(body)
        logger.debug("LLM response", provider=self.name, response_chars=len(text))
        return text

    async def complete(self, prompt: str) -> str:
        """Single attempt: send, check status, extract text."""
        response = await self.send(prompt)
        raise_for_llm_status(response, self.name)
        return self.parse_completion(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
