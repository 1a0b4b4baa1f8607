"""Utterance relay: webhook dispatch and reply delivery."""

from switchboard.relay.delivery import ReplyOutcome, chunk_words, deliver_chunked
from switchboard.relay.dispatcher import (
    DispatchOutcome,
    DispatchResult,
    WebhookDispatcher,
)

__all__ = [
    "DispatchOutcome",
    "DispatchResult",
    "WebhookDispatcher",
    "ReplyOutcome",
    "chunk_words",
    "deliver_chunked",
]
