"""Conversation record models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from switchboard.sessions.models import Channel


class RecordEventType(str, Enum):
    """Kind of entry in a conversation record."""

    USER_INPUT = "user_input"
    AGENT_RESPONSE = "agent_response"


class RecordEvent(BaseModel):
    """One exchange entry in a conversation record."""

    type: RecordEventType
    content: str
    timestamp: datetime
    truncated: bool = False


class ConversationRecord(BaseModel):
    """Normalized, storage-bound record of one finished session."""

    session_id: str = Field(..., description="Session (or call) identifier")
    channel: Channel
    bot_id: str | None = None
    participant_details: dict[str, Any] = Field(default_factory=dict)
    events: list[RecordEvent] = Field(default_factory=list)
    duration: str = Field(..., description='Formatted duration, e.g. "45s" or "2.08m"')
    answered: bool
    started_at: datetime
    answered_at: datetime | None = None
    ended_at: datetime
