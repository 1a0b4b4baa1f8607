"""Conversation recording: record models, duration formatting, recorder."""

from switchboard.recording.models import ConversationRecord, RecordEvent, RecordEventType
from switchboard.recording.recorder import (
    ConversationRecorder,
    build_record,
    duration_seconds,
    format_duration,
)

__all__ = [
    "ConversationRecord",
    "RecordEvent",
    "RecordEventType",
    "ConversationRecorder",
    "build_record",
    "duration_seconds",
    "format_duration",
]
