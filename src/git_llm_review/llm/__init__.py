"""
LLM Module

HTTP providers for the review pipeline and the registry that builds them.
"""

from .anthropic_provider import AnthropicProvider
from .base import HTTPProvider, LLMProvider
from .errors import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    LLMTimeoutError,
    ProviderError,
    RateLimitError,
    ServerError,
    UnsupportedProviderError,
    raise_for_llm_status,
)
from .openai_provider import OpenAIProvider
from .registry import ProviderRegistry, default_registry

__all__ = [
    "LLMProvider",
    "HTTPProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "ProviderRegistry",
    "default_registry",
    "LLMError",
    "ProviderError",
    "InvalidRequestError",
    "AuthenticationError",
    "LLMTimeoutError",
    "RateLimitError",
    "ServerError",
    "UnsupportedProviderError",
    "raise_for_llm_status",
]
