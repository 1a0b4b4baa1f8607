"""Conversation summarizer.

Turns a finished session's message log into a short professional summary
using the configured LLM provider.
"""

from switchboard.observability.logging import get_logger
from switchboard.providers.llm.base import LLMMessage, LLMProvider, ProviderError
from switchboard.sessions.models import Message, MessageRole

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that summarizes customer service "
    "conversations professionally and concisely."
)

SUMMARY_PROMPT = """Please provide a concise summary of the following conversation between a user and a customer service agent. Focus on the main topics discussed, any issues raised, and the resolution provided. Keep the summary professional and informative.

Conversation:
{transcript}

Summary:"""


def format_transcript(messages: list[Message]) -> str:
    """Render the message log as ``role: content`` lines."""
    return "\n".join(
        f"{'user' if m.role == MessageRole.USER else 'assistant'}: {m.content}"
        for m in messages
    )


class ConversationSummarizer:
    """Summarize conversations with an injected LLM provider."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str | None = None,
        max_tokens: int = 300,
        temperature: float = 0.3,
    ) -> None:
        self._provider = provider
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def summarize(self, messages: list[Message]) -> str | None:
        """Return a summary, or None if one could not be produced."""
        if not messages:
            return None

        prompt = SUMMARY_PROMPT.format(transcript=format_transcript(messages))
        try:
            response = await self._provider.generate(
                [
                    LLMMessage(role="system", content=SYSTEM_PROMPT),
                    LLMMessage(role="user", content=prompt),
                ],
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except ProviderError as e:
            logger.error(
                "conversation_summary_failed",
                provider=self._provider.provider_name,
                error=str(e),
            )
            return None

        summary = response.content.strip()
        if not summary:
            return None
        logger.info("conversation_summarized", length=len(summary))
        return summary

    async def close(self) -> None:
        await self._provider.close()
