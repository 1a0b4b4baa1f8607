"""Telephony host binding for jambonz-style WebSocket sessions.

The host opens a WebSocket with the ``ws.jambonz.org`` subprotocol and sends
a ``session:new`` message per call. Verbs are sent back inside an ``ack``
for the message being answered; streamed speech synthesis is driven with
``tts:tokens`` and ``tts:flush`` commands.
"""

import json
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from fastapi import WebSocket
from pydantic import BaseModel, Field
from starlette.websockets import WebSocketState

from switchboard.observability.logging import get_logger
from switchboard.sessions.models import CallerInfo

logger = get_logger(__name__)

SUBPROTOCOL = "ws.jambonz.org"
SPEECH_HOOK = "/speech-detected"


class HostProtocolError(RuntimeError):
    """The host went away or spoke out of order before the call started."""


class HostEventKind(str, Enum):
    SPEECH = "speech"
    STREAMING_EVENT = "streaming_event"
    USER_INTERRUPT = "user_interrupt"
    CALL_STATUS = "call_status"
    CLOSE = "close"
    ERROR = "error"


class HostEvent(BaseModel):
    """Normalized event delivered by a telephony host."""

    kind: HostEventKind
    transcript: str = ""
    is_final: bool = False
    call_status: str | None = None
    duration: float | None = None
    code: int | None = None
    reason: str = ""
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class JambonzSession:
    """One call carried over a jambonz WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._verbs: list[dict[str, Any]] = []
        self._pending_ack: str | None = None
        self._token_id = 0
        self.call_sid: str = ""
        self.caller = CallerInfo()
        self.duration: float | None = None
        self._close_code: int | None = None
        self._close_reason = ""

    async def accept(self) -> "JambonzSession":
        """Wait for ``session:new`` and remember the call it describes."""
        while True:
            message = await self._receive()
            if message is None:
                raise HostProtocolError("Host disconnected before session:new")
            if message.get("type") != "session:new":
                logger.debug("host_message_before_session", type=message.get("type"))
                continue

            data = message.get("data") or {}
            if not isinstance(data, dict):
                data = {}
            self.call_sid = str(data.get("call_sid") or message.get("call_sid") or "")
            if not self.call_sid:
                raise HostProtocolError("session:new without call_sid")
            self.caller = CallerInfo(from_number=data.get("from"), to_number=data.get("to"))
            self._pending_ack = message.get("msgid")
            return self

    # -- Outbound ------------------------------------------------------------

    def config(self, **options: Any) -> "JambonzSession":
        self._verbs.append({"verb": "config", **options})
        return self

    def say(self, text: str) -> "JambonzSession":
        self._verbs.append({"verb": "say", "text": text})
        return self

    async def send(self) -> None:
        """Send queued verbs, answering the pending message if there is one."""
        verbs, self._verbs = self._verbs, []
        if self._pending_ack is not None:
            await self._ack(verbs)
        else:
            await self._send_json({
                "type": "command",
                "command": "redirect",
                "queueCommand": False,
                "data": verbs,
            })

    async def reply(self) -> None:
        """Acknowledge the last hook (with any queued verbs)."""
        verbs, self._verbs = self._verbs, []
        if self._pending_ack is not None:
            await self._ack(verbs)

    async def send_tts_tokens(self, tokens: str) -> None:
        self._token_id += 1
        await self._send_json({
            "type": "command",
            "command": "tts:tokens",
            "queueCommand": False,
            "data": {"id": self._token_id, "tokens": tokens},
        })

    async def flush_tts_tokens(self) -> None:
        await self._send_json({
            "type": "command",
            "command": "tts:flush",
            "queueCommand": False,
        })

    async def close(self) -> None:
        if self._is_open():
            await self._websocket.close()

    async def _ack(self, verbs: list[dict[str, Any]]) -> None:
        payload: dict[str, Any] = {"type": "ack", "msgid": self._pending_ack}
        if verbs:
            payload["data"] = verbs
        self._pending_ack = None
        await self._send_json(payload)

    async def _send_json(self, payload: dict[str, Any]) -> None:
        await self._websocket.send_text(json.dumps(payload))

    # -- Inbound -------------------------------------------------------------

    async def events(self) -> AsyncIterator[HostEvent]:
        """Yield normalized host events until the socket closes."""
        while True:
            try:
                message = await self._receive()
            except RuntimeError as e:
                yield HostEvent(kind=HostEventKind.ERROR, error=str(e))
                return

            if message is None:
                yield HostEvent(
                    kind=HostEventKind.CLOSE,
                    code=self._close_code,
                    reason=self._close_reason,
                )
                return

            event = self._translate(message)
            if event is not None:
                yield event

    def _translate(self, message: dict[str, Any]) -> HostEvent | None:
        msg_type = message.get("type")
        data = message.get("data") or {}
        if not isinstance(data, dict):
            logger.warning("host_message_malformed", type=msg_type, field="data")
            data = {}

        if msg_type == "verb:hook":
            self._pending_ack = message.get("msgid")
            if message.get("hook") != SPEECH_HOOK:
                logger.debug("host_hook_ignored", hook=message.get("hook"))
                return None
            speech = data.get("speech") or {}
            if not isinstance(speech, dict):
                logger.warning("host_message_malformed", type=msg_type, field="speech")
                speech = {}
            return HostEvent(
                kind=HostEventKind.SPEECH,
                transcript=self._transcript(speech),
                is_final=bool(speech.get("is_final")),
                data=data,
            )
        if msg_type == "tts:streaming-event":
            return HostEvent(kind=HostEventKind.STREAMING_EVENT, data=data)
        if msg_type == "tts:user_interrupt":
            return HostEvent(kind=HostEventKind.USER_INTERRUPT, data=data)
        if msg_type == "call:status":
            duration = data.get("duration")
            if duration is not None:
                try:
                    self.duration = float(duration)
                except (TypeError, ValueError):
                    logger.warning(
                        "host_message_malformed", type=msg_type, field="duration"
                    )
            return HostEvent(
                kind=HostEventKind.CALL_STATUS,
                call_status=data.get("call_status"),
                duration=self.duration,
                data=data,
            )
        if msg_type == "jambonz:error":
            return HostEvent(kind=HostEventKind.ERROR, error=str(data), data=data)

        logger.debug("host_message_ignored", type=msg_type)
        return None

    @staticmethod
    def _transcript(speech: dict[str, Any]) -> str:
        """Top transcript of a speech result; empty when it is missing or malformed."""
        alternatives = speech.get("alternatives")
        if not alternatives:
            return ""
        first = alternatives[0] if isinstance(alternatives, list) else None
        transcript = first.get("transcript", "") if isinstance(first, dict) else None
        if not isinstance(transcript, str):
            logger.warning("host_message_malformed", type="verb:hook", field="alternatives")
            return ""
        return transcript

    async def _receive(self) -> dict[str, Any] | None:
        """Next JSON message from the host, or None once it disconnects."""
        while True:
            message = await self._websocket.receive()
            if message["type"] == "websocket.disconnect":
                self._close_code = message.get("code")
                self._close_reason = message.get("reason") or ""
                return None

            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            if raw is None:
                continue
            try:
                data = json.loads(raw)
            except ValueError:
                logger.warning("host_message_malformed", preview=raw[:200])
                continue
            if isinstance(data, dict):
                return data

    def _is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )
