"""AI provider configuration models."""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr

LLMProviderType = Literal["openai", "mock"]


class LLMProviderConfig(BaseModel):
    """Configuration for an LLM provider."""

    provider: LLMProviderType = Field(
        default="openai",
        description="Provider type",
    )
    model: str = Field(
        default="gpt-3.5-turbo",
        description="Model identifier",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key (prefer env var)",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="API base URL",
    )
    max_tokens: int = Field(
        default=300,
        gt=0,
        description="Default max tokens",
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Default temperature",
    )
    timeout: int = Field(
        default=60,
        gt=0,
        description="Request timeout in seconds",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Retries the SDK makes on transient failures",
    )


class ProvidersConfig(BaseModel):
    """AI provider configuration."""

    summarizer: LLMProviderConfig = Field(
        default_factory=LLMProviderConfig,
        description="Provider used to summarize finished conversations",
    )


class SummarizationConfig(BaseModel):
    """Conversation summarization settings."""

    enabled: bool = Field(default=True, description="Summarize saved conversations")
