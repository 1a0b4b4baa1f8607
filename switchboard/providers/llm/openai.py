"""OpenAI chat completions provider."""

import os
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from switchboard.observability.logging import get_logger
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

logger = get_logger(__name__)


class OpenAIProvider(LLMProvider):
    """Chat completions through the OpenAI SDK (or a compatible endpoint)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        max_retries: int = 2,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the provider.

        Args:
            api_key: API key (defaults to OPENAI_API_KEY env var)
            model: Default model identifier
            base_url: API base URL
            timeout: Request timeout in seconds
            max_retries: Retries the SDK makes on transient failures
            http_client: Preconfigured HTTP client for the SDK to use
        """
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self._api_key:
            raise AuthenticationError("OPENAI_API_KEY environment variable not set")

        self._model = model
        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            http_client=http_client,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> LLMResponse:
        use_model = model or self._model

        logger.debug("openai_generate_request", model=use_model, num_messages=len(messages))

        try:
            response = await self._client.chat.completions.create(
                model=use_model,
                messages=[m.model_dump() for m in messages],
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except openai.AuthenticationError as e:
            raise AuthenticationError("OpenAI rejected the API key") from e
        except openai.RateLimitError as e:
            raise RateLimitError("OpenAI rate limit exceeded") from e
        except openai.NotFoundError as e:
            raise ModelError(f"Model not available: {use_model}") from e
        except openai.APIError as e:
            logger.error("openai_generate_error", model=use_model, error=str(e))
            raise ProviderError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise ProviderError("Malformed OpenAI response: no choices")
        choice = response.choices[0]

        usage = None
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model or use_model,
            finish_reason=choice.finish_reason,
            usage=usage,
        )

    async def close(self) -> None:
        await self._client.close()
