"""Session domain: models, events, registry and lifecycle supervision.

The state machine lives in switchboard.sessions.machine and is imported
from there directly, since it depends on the relay and recording packages.
"""

from switchboard.sessions.models import (
    BotProfile,
    CallerInfo,
    Channel,
    InvalidTransitionError,
    Message,
    MessageRole,
    PromptField,
    Session,
    SessionStatus,
    new_session_id,
)

__all__ = [
    "BotProfile",
    "CallerInfo",
    "Channel",
    "InvalidTransitionError",
    "Message",
    "MessageRole",
    "PromptField",
    "Session",
    "SessionStatus",
    "new_session_id",
]
