"""LLM providers for text generation."""

from switchboard.providers.llm.base import (
    AuthenticationError,
    LLMMessage,
    LLMProvider,
    LLMResponse,
    ModelError,
    ProviderError,
    RateLimitError,
    TokenUsage,
)
from switchboard.providers.llm.factory import create_llm_provider
from switchboard.providers.llm.mock import MockLLMProvider
from switchboard.providers.llm.openai import OpenAIProvider

__all__ = [
    "AuthenticationError",
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "ModelError",
    "ProviderError",
    "RateLimitError",
    "TokenUsage",
    "MockLLMProvider",
    "OpenAIProvider",
    "create_llm_provider",
]
