"""
Provider registry.

Maps provider names to factories. Built once at startup and passed to
whatever constructs the review pipeline.
"""

from typing import Callable

import httpx

from git_llm_review.config import LLMSettings

from .anthropic_provider import AnthropicProvider
from .base import LLMProvider
from .errors import UnsupportedProviderError
from .openai_provider import OpenAIProvider

ProviderFactory = Callable[[LLMSettings, httpx.AsyncClient | None], LLMProvider]


class ProviderRegistry:
    """Named provider factories."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        self._factories[name.lower()] = factory

    def create(
        self,
        name: str,
        settings: LLMSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> LLMProvider:
        """Instantiate the provider registered under ``name``."""
        factory = self._factories.get(name.lower())
        if factory is None:
            raise UnsupportedProviderError(
                f"{name} (available: {', '.join(self.available()) or 'none'})"
            )
        return factory(settings, http_client)

    def available(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._factories


def default_registry() -> ProviderRegistry:
    """Registry with the built-in providers."""
    registry = ProviderRegistry()
    registry.register(OpenAIProvider.name, OpenAIProvider)
    registry.register(AnthropicProvider.name, AnthropicProvider)
    return registry
