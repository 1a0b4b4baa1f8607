"""Read-only views of live sessions."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from switchboard.sessions.models import Channel, Session, SessionStatus


class SessionSummary(BaseModel):
    """One live session as listed by GET /v1/sessions."""

    session_id: str
    channel: Channel
    status: SessionStatus
    bot_id: str | None = None
    message_count: int
    answered: bool
    started_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionSummary":
        return cls(
            session_id=session.id,
            channel=session.channel,
            status=session.status,
            bot_id=session.bot_id,
            message_count=len(session.message_log),
            answered=session.answered,
            started_at=session.started_at,
        )


class SessionDetail(SessionSummary):
    """Full view of a live session, including its message log."""

    user_details: dict[str, Any]
    bot_name: str | None = None
    messages: list[dict[str, Any]]
    answered_at: datetime | None = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionDetail":
        summary = SessionSummary.from_session(session)
        return cls(
            **summary.model_dump(),
            user_details=dict(session.user_details),
            bot_name=session.backend_config.name if session.backend_config else None,
            messages=[m.model_dump(mode="json") for m in session.message_log],
            answered_at=session.answered_at,
        )


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]
    total: int
