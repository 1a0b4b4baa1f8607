"""Reply delivery helpers.

Voice replies are streamed to the telephony host a few words at a time so
speech synthesis can start early. The session's interrupt flag and closed
status are checked before every chunk; once either is set nothing more is
sent and the host is not flushed.
"""

import asyncio
from collections.abc import Awaitable, Callable

from pydantic import BaseModel

from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import REPLIES_INTERRUPTED
from switchboard.sessions.models import Session

logger = get_logger(__name__)


class ReplyOutcome(BaseModel):
    """What actually reached the user."""

    content: str
    truncated: bool = False
    chunks_sent: int = 1


def chunk_words(text: str, size: int) -> list[str]:
    """Split text into chunks of at most ``size`` words."""
    words = text.split()
    return [" ".join(words[i:i + size]) for i in range(0, len(words), size)]


async def deliver_chunked(
    session: Session,
    text: str,
    send_chunk: Callable[[str], Awaitable[None]],
    flush: Callable[[], Awaitable[None]],
    *,
    chunk_size: int = 5,
    delay: float = 0.05,
) -> ReplyOutcome:
    """Send ``text`` in word chunks, stopping at the first interrupt or close."""
    sent: list[str] = []

    for chunk in chunk_words(text, chunk_size):
        if session.interrupt_flag or session.is_closed:
            break
        try:
            await send_chunk(f"{chunk} ")
        except Exception as e:
            logger.error("reply_chunk_send_failed", session_id=session.id, error=str(e))
        sent.append(chunk)
        await asyncio.sleep(delay)

    if session.interrupt_flag:
        REPLIES_INTERRUPTED.labels(channel=session.channel.value).inc()
        logger.info(
            "reply_interrupted",
            session_id=session.id,
            chunks_sent=len(sent),
        )
        return ReplyOutcome(content=" ".join(sent), truncated=True, chunks_sent=len(sent))

    if session.is_closed:
        logger.info(
            "reply_abandoned_session_closed",
            session_id=session.id,
            chunks_sent=len(sent),
        )
        return ReplyOutcome(content=" ".join(sent), truncated=True, chunks_sent=len(sent))

    await flush()
    return ReplyOutcome(content=" ".join(sent), chunks_sent=len(sent))
