"""Offline LLM provider.

Selected with ``provider = "mock"`` so the summarization path can run
without network access or an API key, and used by tests to observe what
the summarizer sends.
"""

from typing import Any

from pydantic import BaseModel, Field

from switchboard.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    ProviderError,
    TokenUsage,
)


class MockCall(BaseModel):
    """One recorded generate() call."""

    messages: list[LLMMessage]
    model: str
    max_tokens: int
    temperature: float
    options: dict[str, Any] = Field(default_factory=dict)


class MockLLMProvider(LLMProvider):
    """Returns canned completions and records every call.

    ``responses`` maps a phrase to a completion; the first phrase found in
    the last message wins. ``error`` makes every call raise instead.
    """

    def __init__(
        self,
        default_response: str = "Mock summary",
        default_model: str = "mock-model",
        responses: dict[str, str] | None = None,
        error: ProviderError | None = None,
    ) -> None:
        self._default_response = default_response
        self._default_model = default_model
        self._responses = responses or {}
        self._error = error
        self.calls: list[MockCall] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> LLMResponse:
        model = model or self._default_model
        self.calls.append(
            MockCall(
                messages=list(messages),
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                options=kwargs,
            )
        )
        if self._error is not None:
            raise self._error

        prompt = messages[-1].content if messages else ""
        content = next(
            (reply for phrase, reply in self._responses.items() if phrase in prompt),
            self._default_response,
        )

        # word counts stand in for tokens
        prompt_tokens = sum(len(m.content.split()) for m in messages)
        completion_tokens = len(content.split())
        return LLMResponse(
            content=content,
            model=model,
            finish_reason="stop",
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
