"""Voice transport adapter.

Voice calls arrive from a telephony host that has already authenticated the
call. The adapter configures streamed speech synthesis and barge-in speech
detection, greets the caller and moves the session straight to ready.
Replies are streamed back a few words at a time and stop as soon as the
caller barges in.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol

import structlog

from switchboard.backend.client import BackendError
from switchboard.config.models import VoiceConfig
from switchboard.observability.logging import get_logger
from switchboard.recording.recorder import ConversationRecorder
from switchboard.relay.delivery import ReplyOutcome, deliver_chunked
from switchboard.relay.dispatcher import WebhookDispatcher
from switchboard.sessions.events import (
    CallStatusUpdated,
    InterruptRaised,
    SessionClosed,
    UtteranceFinalized,
)
from switchboard.sessions.machine import SessionStateMachine
from switchboard.sessions.models import BotProfile, CallerInfo, Channel, Session, SessionStatus
from switchboard.sessions.registry import DuplicateSessionError, SessionRegistry
from switchboard.sessions.supervisor import SessionSupervisor
from switchboard.transports.jambonz import SPEECH_HOOK, HostEvent, HostEventKind

logger = get_logger(__name__)


class TelephonySession(Protocol):
    """What the voice adapter needs from a telephony host session."""

    call_sid: str
    caller: CallerInfo
    duration: float | None

    def config(self, **options: Any) -> "TelephonySession": ...

    def say(self, text: str) -> "TelephonySession": ...

    async def send(self) -> None: ...

    async def reply(self) -> None: ...

    async def send_tts_tokens(self, tokens: str) -> None: ...

    async def flush_tts_tokens(self) -> None: ...

    async def close(self) -> None: ...

    def events(self) -> AsyncIterator[HostEvent]: ...


class BotDirectory(Protocol):
    """Resolves a dialed number to a bot."""

    async def lookup_bot(self, dnis: str) -> dict[str, Any]: ...


class VoiceTransport:
    """Outbound half of a voice call.

    The host has no channel for chat-style frames, so welcome, details and
    error frames are only logged.
    """

    def __init__(self, host: TelephonySession, config: VoiceConfig) -> None:
        self._host = host
        self._config = config

    async def send_welcome(self, session: Session) -> None:  # noqa: ARG002
        return None

    async def acknowledge_details(self, session: Session) -> None:  # noqa: ARG002
        return None

    async def send_error(self, message: str) -> None:
        logger.warning("voice_error_not_delivered", message=message)

    async def answer_ping(self) -> None:
        return None

    async def on_ready(self, session: Session) -> None:  # noqa: ARG002
        return None

    async def deliver_reply(self, session: Session, text: str) -> ReplyOutcome:
        return await deliver_chunked(
            session,
            text,
            self._host.send_tts_tokens,
            self._host.flush_tts_tokens,
            chunk_size=self._config.chunk_size,
            delay=self._config.chunk_delay_seconds,
        )

    async def close(self, code: int, reason: str) -> None:  # noqa: ARG002
        await self._host.close()


class VoiceAdapter:
    """Run voice calls delivered by the telephony host."""

    def __init__(
        self,
        registry: SessionRegistry,
        backend: BotDirectory,
        dispatcher: WebhookDispatcher,
        recorder: ConversationRecorder,
        config: VoiceConfig,
    ) -> None:
        self._registry = registry
        self._backend = backend
        self._dispatcher = dispatcher
        self._recorder = recorder
        self._config = config

    def host_options(self) -> dict[str, Any]:
        """Config verb options: streamed TTS plus barge-in speech detection."""
        return {
            "ttsStream": {"enable": True},
            "bargeIn": {
                "enable": True,
                "sticky": True,
                "minBargeinWordCount": self._config.min_barge_in_word_count,
                "actionHook": SPEECH_HOOK,
                "input": ["speech"],
            },
        }

    async def serve(self, host: TelephonySession) -> None:
        """Run one call from greeting to teardown."""
        session = Session(id=host.call_sid, channel=Channel.VOICE, caller=host.caller)

        with structlog.contextvars.bound_contextvars(session_id=session.id, channel="voice"):
            try:
                self._registry.insert(session)
            except DuplicateSessionError:
                logger.error("voice_session_duplicate")
                await host.close()
                return

            async with SessionSupervisor(session.id) as supervisor:
                transport = VoiceTransport(host, self._config)
                machine = SessionStateMachine(
                    session,
                    transport,
                    self._dispatcher,
                    self._recorder,
                    self._registry,
                    supervisor,
                )

                try:
                    session.backend_config = await self._resolve_profile(session.caller)
                    host.config(**self.host_options()).say(self._config.greeting)
                    await host.send()
                    session.transition(SessionStatus.READY)
                    supervisor.spawn("host-events", self._pump(host, machine))
                except Exception as e:
                    logger.exception("voice_session_setup_failed", error=str(e))
                    self._registry.remove(session.id)
                    await host.close()
                    return

                logger.info(
                    "voice_session_opened",
                    from_number=session.caller.from_number if session.caller else None,
                    webhook_configured=bool(session.backend_config.webhook_url),
                )
                await machine.run()

    async def _resolve_profile(self, caller: CallerInfo | None) -> BotProfile:
        dnis = caller.to_number if caller else None
        if self._config.resolve_bot_by_dnis and dnis:
            try:
                data = await self._backend.lookup_bot(dnis)
            except BackendError as e:
                logger.warning("voice_bot_lookup_failed", dnis=dnis, error=e.message)
            else:
                bot = data.get("bot", data) if isinstance(data, dict) else None
                if isinstance(bot, dict) and bot.get("webhook_url"):
                    profile = BotProfile.model_validate(bot)
                    if profile.active:
                        return profile

        return BotProfile(name="voice", webhook_url=self._config.webhook_url)

    async def _pump(self, host: TelephonySession, machine: SessionStateMachine) -> None:
        """Translate host events into session events.

        The session is closed however the pump ends: a close or error event
        from the host, the event stream running out, or a failure here.
        """
        try:
            async for event in host.events():
                if event.kind == HostEventKind.SPEECH:
                    await host.reply()
                    if event.is_final and event.transcript.strip():
                        machine.post(UtteranceFinalized(text=event.transcript))
                elif event.kind == HostEventKind.USER_INTERRUPT:
                    machine.post(InterruptRaised())
                elif event.kind == HostEventKind.CALL_STATUS:
                    machine.post(
                        CallStatusUpdated(call_status=event.call_status, duration=event.duration)
                    )
                elif event.kind == HostEventKind.STREAMING_EVENT:
                    logger.debug("tts_streaming_event", data=event.data)
                elif event.kind == HostEventKind.CLOSE:
                    machine.post(SessionClosed(reason=event.reason, code=event.code))
                    return
                elif event.kind == HostEventKind.ERROR:
                    machine.post(SessionClosed(reason="host error", error=event.error))
                    return
        except Exception as e:
            logger.exception("host_event_pump_failed", error=str(e))
            machine.post(SessionClosed(reason="host error", error=str(e)))
            return

        machine.post(SessionClosed(reason="host stream ended"))
