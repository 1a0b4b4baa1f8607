"""Conversation summarization."""

from switchboard.summarization.summarizer import ConversationSummarizer, format_transcript

__all__ = ["ConversationSummarizer", "format_transcript"]
