"""Conversation recorder.

Builds a ConversationRecord when a session closes and hands it to storage.
When storage returns an id, a summary is generated in the background and
attached to the stored conversation. Teardown never waits for the summary.
"""

import asyncio
import math
from datetime import timedelta
from typing import Protocol

from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import RECORDS_SAVED, SUMMARIES
from switchboard.recording.models import ConversationRecord, RecordEvent, RecordEventType
from switchboard.sessions.models import Channel, Message, MessageRole, Session, utc_now

logger = get_logger(__name__)


class ConversationStorage(Protocol):
    """Where finished conversations are sent."""

    async def save_conversation(self, record: ConversationRecord) -> str | None: ...

    async def update_summary(self, conversation_id: str, summary: str) -> bool: ...


class Summarizer(Protocol):
    """Produces a summary for a finished conversation."""

    async def summarize(self, messages: list[Message]) -> str | None: ...


def format_duration(seconds: int) -> str:
    """Format a duration: "45s" below a minute, "2.08m" otherwise."""
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds / 60:.2f}m"


def duration_seconds(session: Session) -> int:
    """Whole seconds the session lasted.

    A duration reported by the telephony host wins over the wall-clock
    difference between started_at and ended_at.
    """
    if session.host_duration:
        return math.floor(session.host_duration)
    ended_at = session.ended_at or utc_now()
    return math.floor((ended_at - session.started_at).total_seconds())


def participant_details(session: Session) -> dict[str, object]:
    if session.channel == Channel.VOICE and session.caller is not None:
        return {
            "from": session.caller.from_number or session.id,
            "to": session.caller.to_number or session.id,
        }
    return dict(session.user_details)


def build_record(session: Session) -> ConversationRecord:
    """Map a closed session onto its conversation record."""
    events = []
    for index, message in enumerate(session.message_log):
        timestamp = message.timestamp or session.started_at + timedelta(seconds=index)
        events.append(
            RecordEvent(
                type=(
                    RecordEventType.USER_INPUT
                    if message.role == MessageRole.USER
                    else RecordEventType.AGENT_RESPONSE
                ),
                content=message.content,
                timestamp=timestamp,
                truncated=message.truncated,
            )
        )

    return ConversationRecord(
        session_id=session.id,
        channel=session.channel,
        bot_id=session.bot_id,
        participant_details=participant_details(session),
        events=events,
        duration=format_duration(duration_seconds(session)),
        answered=session.answered,
        started_at=session.started_at,
        answered_at=session.answered_at,
        ended_at=session.ended_at or utc_now(),
    )


class ConversationRecorder:
    """Send finished sessions to storage and request their summaries."""

    def __init__(
        self,
        storage: ConversationStorage,
        summarizer: Summarizer | None = None,
    ) -> None:
        self._storage = storage
        self._summarizer = summarizer
        self._background: set[asyncio.Task[None]] = set()

    async def record(self, session: Session) -> ConversationRecord | None:
        """Store the session's conversation. Sessions with no messages are skipped."""
        if not session.message_log:
            logger.info("conversation_not_recorded_empty", session_id=session.id)
            return None

        record = build_record(session)
        channel = session.channel.value

        logger.info(
            "conversation_saving",
            session_id=session.id,
            events=len(record.events),
            duration=record.duration,
            answered=record.answered,
        )

        try:
            conversation_id = await self._storage.save_conversation(record)
        except Exception as e:
            RECORDS_SAVED.labels(channel=channel, outcome="failed").inc()
            logger.error("conversation_save_failed", session_id=session.id, error=str(e))
            return record

        RECORDS_SAVED.labels(channel=channel, outcome="saved").inc()
        logger.info(
            "conversation_saved",
            session_id=session.id,
            conversation_id=conversation_id,
        )

        if conversation_id and self._summarizer is not None:
            task = asyncio.create_task(
                self._summarize(self._summarizer, conversation_id, list(session.message_log)),
                name=f"{session.id}:summary",
            )
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        return record

    async def _summarize(
        self, summarizer: Summarizer, conversation_id: str, messages: list[Message]
    ) -> None:
        try:
            summary = await summarizer.summarize(messages)
            if not summary:
                SUMMARIES.labels(outcome="empty").inc()
                logger.warning("summary_not_generated", conversation_id=conversation_id)
                return

            updated = await self._storage.update_summary(conversation_id, summary)
            SUMMARIES.labels(outcome="attached" if updated else "update_failed").inc()
            logger.info(
                "summary_processed",
                conversation_id=conversation_id,
                attached=updated,
            )
        except Exception as e:
            SUMMARIES.labels(outcome="failed").inc()
            logger.error(
                "summary_failed",
                conversation_id=conversation_id,
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for outstanding summary tasks (used at shutdown)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
