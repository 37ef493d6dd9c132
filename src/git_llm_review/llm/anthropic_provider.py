"""Anthropic messages API provider."""

from typing import Any

import structlog

from .base import HTTPProvider
from .errors import ProviderError

logger = structlog.get_logger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"
MAX_TOKENS = 4096


class AnthropicProvider(HTTPProvider):
    """Talks to ``{api_url}/v1/messages`` with an ``x-api-key`` header."""

    name = "anthropic"

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/v1/messages"

    def headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }

    def extract_text(self, body: dict[str, Any]) -> str:
        """Concatenate every text block; the answer may be split across several."""
        content = body.get("content")
        if not isinstance(content, list) or not content:
            raise ProviderError("invalid response format: missing content")

        parts: list[str] = []
        for index, block in enumerate(content):
            if not isinstance(block, dict) or block.get("type") != "text":
                logger.debug("Skipping non-text content block", index=index)
                continue
            text = block.get("text")
            if isinstance(text, str):
                parts.append(text)

        if not parts:
            raise ProviderError("invalid response format: no text content found")
        return "".join(parts)
