"""Chat transport adapter.

Browser chat clients connect to ``/chat-streaming?bot_id=...`` and exchange
``type``-tagged JSON frames:

    client -> server: user_details, chat_message, ping
    server -> client: welcome, user_details_received, bot_reply, error,
                      pong, heartbeat
"""

import json
from typing import Any, Protocol

import structlog
from fastapi import WebSocket, status
from starlette.websockets import WebSocketState

from switchboard.config.models import ChatConfig
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import ADMISSIONS_REJECTED
from switchboard.recording.recorder import ConversationRecorder
from switchboard.relay.delivery import ReplyOutcome
from switchboard.relay.dispatcher import WebhookDispatcher
from switchboard.sessions.events import (
    AdmissionRejected,
    BotResolved,
    LivenessPing,
    SessionClosed,
    SessionEvent,
    UnrecognizedEvent,
    UserDetailsSubmitted,
    UtteranceFinalized,
)
from switchboard.sessions.machine import ADMISSION_TIMER, SessionStateMachine
from switchboard.sessions.models import BotProfile, Channel, Session, new_session_id
from switchboard.sessions.registry import SessionRegistry
from switchboard.sessions.supervisor import SessionSupervisor

logger = get_logger(__name__)

HEARTBEAT_TIMER = "heartbeat"

BOT_ID_REQUIRED = "Bot ID required"
BOT_NOT_FOUND = "Bot not found or inactive"
ADMISSION_FAILED = "Error initializing chat session"
ADMISSION_TIMEOUT = "Connection timeout"
MALFORMED_FRAME = "Error processing message"


class FrameError(ValueError):
    """Raised for inbound frames that are not valid JSON objects."""


class BotLookup(Protocol):
    """Resolves a bot id to its profile."""

    async def get_bot(self, bot_id: str) -> BotProfile | None: ...


def parse_chat_frame(raw: str) -> SessionEvent:
    """Translate one inbound chat frame into a session event."""
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise FrameError(MALFORMED_FRAME) from e
    if not isinstance(data, dict):
        raise FrameError(MALFORMED_FRAME)

    frame_type = data.get("type")
    if frame_type == "user_details":
        details = data.get("details") or {}
        if not isinstance(details, dict):
            raise FrameError(MALFORMED_FRAME)
        return UserDetailsSubmitted(details=details)
    if frame_type == "chat_message":
        content = data.get("content")
        return UtteranceFinalized(text=content if isinstance(content, str) else "")
    if frame_type == "ping":
        return LivenessPing()

    return UnrecognizedEvent(raw_type=str(frame_type) if frame_type is not None else None)


def _is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class ChatTransport:
    """Outbound half of a chat connection."""

    def __init__(
        self,
        websocket: WebSocket,
        supervisor: SessionSupervisor,
        config: ChatConfig,
    ) -> None:
        self._websocket = websocket
        self._supervisor = supervisor
        self._config = config

    async def _send(self, payload: dict[str, Any]) -> None:
        await self._websocket.send_json(payload)

    async def send_welcome(self, session: Session) -> None:
        profile = session.backend_config or BotProfile()
        fields = profile.user_prompt_fields or self._config.default_prompt_fields
        await self._send({
            "type": "welcome",
            "message": f"Welcome to {profile.name}! Please provide your details to get started.",
            "user_prompt_fields": [f.model_dump() for f in fields],
        })

    async def acknowledge_details(self, session: Session) -> None:  # noqa: ARG002
        await self._send({
            "type": "user_details_received",
            "message": self._config.details_ack_text,
        })

    async def send_error(self, message: str) -> None:
        await self._send({"type": "error", "message": message})

    async def answer_ping(self) -> None:
        await self._send({"type": "pong", "message": "pong"})

    async def deliver_reply(self, session: Session, text: str) -> ReplyOutcome:  # noqa: ARG002
        # chat replies go out as one frame
        await self._send({"type": "bot_reply", "message": text})
        return ReplyOutcome(content=text)

    async def on_ready(self, session: Session) -> None:  # noqa: ARG002
        self._supervisor.schedule_every(
            HEARTBEAT_TIMER,
            self._config.heartbeat_interval_seconds,
            self._heartbeat,
        )

    async def _heartbeat(self) -> bool:
        if not _is_open(self._websocket):
            return False
        await self._send({"type": "heartbeat", "message": "ping"})
        return True

    async def close(self, code: int, reason: str) -> None:
        if _is_open(self._websocket):
            await self._websocket.close(code=code, reason=reason)


class ChatAdapter:
    """Admit chat connections and run their sessions."""

    def __init__(
        self,
        registry: SessionRegistry,
        backend: BotLookup,
        dispatcher: WebhookDispatcher,
        recorder: ConversationRecorder,
        config: ChatConfig,
    ) -> None:
        self._registry = registry
        self._backend = backend
        self._dispatcher = dispatcher
        self._recorder = recorder
        self._config = config

    async def serve(self, websocket: WebSocket, bot_id: str | None) -> None:
        """Run one chat connection from accept to teardown."""
        await websocket.accept()

        if not bot_id:
            ADMISSIONS_REJECTED.labels(channel=Channel.CHAT.value, reason=BOT_ID_REQUIRED).inc()
            logger.warning("chat_connection_rejected", reason=BOT_ID_REQUIRED)
            await websocket.send_json({"type": "error", "message": BOT_ID_REQUIRED})
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=BOT_ID_REQUIRED)
            return

        session = Session(id=new_session_id(Channel.CHAT), channel=Channel.CHAT, bot_id=bot_id)

        with structlog.contextvars.bound_contextvars(session_id=session.id, channel="chat"):
            async with SessionSupervisor(session.id) as supervisor:
                transport = ChatTransport(websocket, supervisor, self._config)
                machine = SessionStateMachine(
                    session,
                    transport,
                    self._dispatcher,
                    self._recorder,
                    self._registry,
                    supervisor,
                )

                self._registry.insert(session)
                try:
                    supervisor.schedule_once(
                        ADMISSION_TIMER,
                        self._config.admission_timeout_seconds,
                        lambda: self._admission_timed_out(machine),
                    )
                    supervisor.spawn("resolve", self._resolve(machine, bot_id))
                    supervisor.spawn("receive", self._receive(websocket, machine))
                except Exception as e:
                    logger.exception("chat_session_setup_failed", error=str(e))
                    self._registry.remove(session.id)
                    await transport.close(status.WS_1011_INTERNAL_ERROR, "Internal server error")
                    return

                logger.info("chat_session_opened", bot_id=bot_id)
                await machine.run()

    async def _admission_timed_out(self, machine: SessionStateMachine) -> None:
        machine.post(AdmissionRejected(reason=ADMISSION_TIMEOUT, message=ADMISSION_TIMEOUT))

    async def _resolve(self, machine: SessionStateMachine, bot_id: str) -> None:
        try:
            profile = await self._backend.get_bot(bot_id)
        except Exception as e:
            logger.error("bot_lookup_failed", bot_id=bot_id, error=str(e))
            machine.post(
                AdmissionRejected(
                    reason=ADMISSION_FAILED,
                    message=ADMISSION_FAILED,
                    code=status.WS_1011_INTERNAL_ERROR,
                )
            )
            return

        if profile is None or not profile.active:
            machine.post(AdmissionRejected(reason=BOT_NOT_FOUND, message=BOT_NOT_FOUND))
            return
        machine.post(BotResolved(profile=profile))

    async def _receive(self, websocket: WebSocket, machine: SessionStateMachine) -> None:
        """Read frames and post them to the session until the socket goes away."""
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    machine.post(
                        SessionClosed(
                            reason=message.get("reason") or "client disconnected",
                            code=message.get("code"),
                        )
                    )
                    return

                raw = message.get("text")
                if raw is None and message.get("bytes") is not None:
                    raw = message["bytes"].decode("utf-8", errors="replace")
                if raw is None:
                    continue

                if len(raw.encode("utf-8")) > self._config.max_frame_bytes:
                    machine.post(UnrecognizedEvent(message="Message too large"))
                    continue

                try:
                    event = parse_chat_frame(raw)
                except FrameError as e:
                    logger.info("chat_frame_rejected", error=str(e))
                    machine.post(UnrecognizedEvent(message=str(e)))
                    continue
                machine.post(event)

        except RuntimeError as e:
            # starlette raises once the socket is no longer connected
            machine.post(SessionClosed(reason="transport error", error=str(e)))
