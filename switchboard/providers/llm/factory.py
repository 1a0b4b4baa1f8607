"""Build an LLM provider from configuration."""

from switchboard.config.models import LLMProviderConfig
from switchboard.providers.llm.base import LLMProvider
from switchboard.providers.llm.mock import MockLLMProvider
from switchboard.providers.llm.openai import OpenAIProvider


def create_llm_provider(config: LLMProviderConfig) -> LLMProvider:
    """Instantiate the provider named in ``config``."""
    if config.provider == "mock":
        return MockLLMProvider(default_model=config.model)

    return OpenAIProvider(
        api_key=config.api_key.get_secret_value() if config.api_key else None,
        model=config.model,
        base_url=config.base_url,
        timeout=config.timeout,
        max_retries=config.max_retries,
    )
