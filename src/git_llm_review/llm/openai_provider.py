"""OpenAI-compatible chat completions provider."""

from typing import Any

from .base import HTTPProvider
from .errors import ProviderError


class OpenAIProvider(HTTPProvider):
    """Talks to ``{api_url}/chat/completions`` with bearer auth."""

    name = "openai"

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/chat/completions"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.1,
        }

    def extract_text(self, body: dict[str, Any]) -> str:
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError("no completion choices returned")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ProviderError("completion choice has no text content")
        return content
