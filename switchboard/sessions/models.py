"""Session models for the relay engine."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Channel(str, Enum):
    """Transport a session arrived on."""

    CHAT = "chat"
    VOICE = "voice"


class SessionStatus(str, Enum):
    """Lifecycle state of a session."""

    CONNECTING = "connecting"
    AWAITING_DETAILS = "awaiting_details"
    READY = "ready"
    STREAMING_REPLY = "streaming_reply"
    CLOSED = "closed"


class MessageRole(str, Enum):
    """Author of a logged message."""

    USER = "user"
    ASSISTANT = "assistant"


# ready and streaming_reply alternate; closed is reachable from anywhere
ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.CONNECTING: frozenset({
        SessionStatus.AWAITING_DETAILS,
        SessionStatus.READY,
        SessionStatus.CLOSED,
    }),
    SessionStatus.AWAITING_DETAILS: frozenset({
        SessionStatus.READY,
        SessionStatus.CLOSED,
    }),
    SessionStatus.READY: frozenset({
        SessionStatus.STREAMING_REPLY,
        SessionStatus.CLOSED,
    }),
    SessionStatus.STREAMING_REPLY: frozenset({
        SessionStatus.READY,
        SessionStatus.CLOSED,
    }),
    SessionStatus.CLOSED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a status change would break the lifecycle ordering."""

    def __init__(self, current: SessionStatus, target: SessionStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move session from {current.value} to {target.value}")


class PromptField(BaseModel):
    """One field the chat user is asked to fill in before chatting."""

    name: str = Field(..., description="Key the value is stored under")
    label: str = Field(..., description="Label shown to the user")
    required: bool = Field(default=False, description="Whether the field must be filled")
    type: str = Field(default="text", description="Input type hint")


class BotProfile(BaseModel):
    """Backend configuration a session relays to."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="", description="Display name")
    active: bool = Field(default=True, description="Whether the bot accepts sessions")
    webhook_url: str | None = Field(default=None, description="Conversational webhook target")
    user_prompt_fields: list[PromptField] | None = Field(
        default=None, description="Prompt-field schema for chat sessions"
    )


class Message(BaseModel):
    """One entry in a session's message log."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(..., description="Who produced the message")
    content: str = Field(..., description="Message text")
    timestamp: datetime | None = Field(
        default=None, description="Receipt time, when the transport supplies one"
    )
    truncated: bool = Field(
        default=False, description="Reply was cut short by an interrupt"
    )


class CallerInfo(BaseModel):
    """Numbers reported by the telephony host for a voice session."""

    from_number: str | None = None
    to_number: str | None = None


class Session(BaseModel):
    """Runtime state of one connection.

    Sessions are owned by the transport adapter that created them and are
    only mutated from that session's state-machine loop.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: str = Field(default_factory=lambda: new_session_id(Channel.CHAT))
    channel: Channel = Field(..., description="Originating transport")
    status: SessionStatus = Field(
        default=SessionStatus.CONNECTING, description="Current status"
    )
    bot_id: str | None = Field(default=None, description="Requested bot identifier")
    backend_config: BotProfile | None = Field(
        default=None, description="Resolved relay target"
    )
    user_details: dict[str, Any] = Field(
        default_factory=dict, description="Details collected from a chat user"
    )
    caller: CallerInfo | None = Field(default=None, description="Voice caller numbers")
    message_log: list[Message] = Field(default_factory=list)
    interrupt_flag: bool = Field(default=False)
    host_duration: float | None = Field(
        default=None, description="Call duration reported by the telephony host (seconds)"
    )
    started_at: datetime = Field(default_factory=utc_now)
    answered_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def answered(self) -> bool:
        """Whether at least one finalized user utterance was received."""
        return self.answered_at is not None

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.CLOSED

    def transition(self, target: SessionStatus) -> None:
        """Move to ``target``, enforcing the lifecycle ordering."""
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status, target)
        self.status = target

    def append(self, message: Message) -> None:
        """Append to the message log (the log is never rewritten)."""
        self.message_log.append(message)


def new_session_id(channel: Channel) -> str:
    """Generate an opaque session identifier."""
    return f"{channel.value}_{uuid4().hex}"
