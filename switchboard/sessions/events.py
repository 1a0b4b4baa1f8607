"""Typed events consumed by the session state machine.

Transport adapters normalize whatever their wire protocol delivers into
these events and post them onto the session's event channel.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from switchboard.sessions.models import BotProfile


class SessionEvent(BaseModel):
    """Base class for all session events."""

    model_config = ConfigDict(frozen=True)


class BotResolved(SessionEvent):
    """Bot metadata lookup succeeded during admission."""

    profile: BotProfile


class AdmissionRejected(SessionEvent):
    """Admission failed; the session must close without reaching ready."""

    reason: str = Field(..., description="Close reason sent to the transport")
    message: str = Field(..., description="Error text shown to the user")
    code: int = Field(default=1000, description="Transport close code")


class UserDetailsSubmitted(SessionEvent):
    """Chat user filled in the prompt fields."""

    details: dict[str, Any] = Field(default_factory=dict)


class UtteranceFinalized(SessionEvent):
    """A finalized unit of user input to relay to the webhook."""

    text: str


class InterruptRaised(SessionEvent):
    """User barged in on a reply that is being delivered."""


class LivenessPing(SessionEvent):
    """Client-side keepalive; answered in place."""


class ReplyCompleted(SessionEvent):
    """Reply delivery finished, fully or cut short."""

    content: str
    truncated: bool = False


class CallStatusUpdated(SessionEvent):
    """Telephony host reported call progress."""

    call_status: str | None = None
    duration: float | None = Field(default=None, description="Call duration in seconds")


class SessionClosed(SessionEvent):
    """Transport closed or failed; tear the session down."""

    reason: str = ""
    code: int | None = None
    error: str | None = Field(default=None, description="Transport error, if any")


class UnrecognizedEvent(SessionEvent):
    """Payload the transport could not map to a known event."""

    raw_type: str | None = None
    message: str = "Unknown message type"
