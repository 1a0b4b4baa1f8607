"""Transport adapters: chat WebSocket and telephony host voice calls."""

from switchboard.transports.chat import ChatAdapter, ChatTransport, FrameError, parse_chat_frame
from switchboard.transports.jambonz import HostEvent, HostEventKind, JambonzSession
from switchboard.transports.voice import TelephonySession, VoiceAdapter, VoiceTransport

__all__ = [
    "ChatAdapter",
    "ChatTransport",
    "FrameError",
    "parse_chat_frame",
    "HostEvent",
    "HostEventKind",
    "JambonzSession",
    "TelephonySession",
    "VoiceAdapter",
    "VoiceTransport",
]
