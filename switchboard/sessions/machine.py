"""Session state machine.

One SessionStateMachine drives one session. Transport adapters post typed
events onto its channel; a single loop consumes them in order and applies
the transitions:

    connecting -> awaiting_details -> ready <-> streaming_reply -> closed

Voice sessions enter ready directly. ``closed`` is reachable from any state.

The webhook call and reply delivery for an utterance run in a separate task
so that interrupts keep flowing while a reply streams out. That task reports
back with a ReplyCompleted event; the message log is only written from the
loop. At most one such task exists per session: utterances that arrive while
a reply is streaming are queued and dispatched in order afterwards.

When the session closes, a reply that is still being delivered is cancelled.
A webhook request that is still outstanding is left to finish and its reply
is discarded.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Protocol

from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import ADMISSIONS_REJECTED
from switchboard.recording.recorder import ConversationRecorder
from switchboard.relay.delivery import ReplyOutcome
from switchboard.relay.dispatcher import WebhookDispatcher
from switchboard.sessions.events import (
    AdmissionRejected,
    BotResolved,
    CallStatusUpdated,
    InterruptRaised,
    LivenessPing,
    ReplyCompleted,
    SessionClosed,
    SessionEvent,
    UnrecognizedEvent,
    UserDetailsSubmitted,
    UtteranceFinalized,
)
from switchboard.sessions.models import (
    Channel,
    Message,
    MessageRole,
    Session,
    SessionStatus,
    utc_now,
)
from switchboard.sessions.registry import SessionRegistry
from switchboard.sessions.supervisor import SessionSupervisor

logger = get_logger(__name__)

ADMISSION_TIMER = "admission"


class SessionTransport(Protocol):
    """Outbound side of a transport adapter, as seen by the state machine."""

    async def send_welcome(self, session: Session) -> None: ...

    async def acknowledge_details(self, session: Session) -> None: ...

    async def send_error(self, message: str) -> None: ...

    async def answer_ping(self) -> None: ...

    async def deliver_reply(self, session: Session, text: str) -> ReplyOutcome: ...

    async def on_ready(self, session: Session) -> None: ...

    async def close(self, code: int, reason: str) -> None: ...


class SessionStateMachine:
    """Consume session events and apply lifecycle transitions."""

    def __init__(
        self,
        session: Session,
        transport: SessionTransport,
        dispatcher: WebhookDispatcher,
        recorder: ConversationRecorder,
        registry: SessionRegistry,
        supervisor: SessionSupervisor,
    ) -> None:
        self.session = session
        self._transport = transport
        self._dispatcher = dispatcher
        self._recorder = recorder
        self._registry = registry
        self._supervisor = supervisor
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._pending_utterances: deque[tuple[str, datetime]] = deque()
        self._inflight: asyncio.Task[None] | None = None
        self._awaiting_webhook = False
        self._handlers: dict[type[SessionEvent], Callable[[Any], Awaitable[None]]] = {
            BotResolved: self._on_bot_resolved,
            AdmissionRejected: self._on_admission_rejected,
            UserDetailsSubmitted: self._on_user_details,
            UtteranceFinalized: self._on_utterance,
            InterruptRaised: self._on_interrupt,
            LivenessPing: self._on_ping,
            ReplyCompleted: self._on_reply_completed,
            CallStatusUpdated: self._on_call_status,
            SessionClosed: self._on_closed,
            UnrecognizedEvent: self._on_unrecognized,
        }

    def post(self, event: SessionEvent) -> None:
        """Queue an event. Events for a closed session are dropped."""
        if self.session.is_closed:
            logger.debug(
                "event_dropped_session_closed",
                session_id=self.session.id,
                event=type(event).__name__,
            )
            return
        self._events.put_nowait(event)

    async def run(self) -> None:
        """Process events until the session is closed."""
        while not self.session.is_closed:
            event = await self._events.get()
            await self.handle(event)

    async def handle(self, event: SessionEvent) -> None:
        """Apply a single event. Faults are logged and the session continues."""
        handler = self._handlers.get(type(event))
        if handler is None:
            await self._on_unrecognized(UnrecognizedEvent(raw_type=type(event).__name__))
            return
        try:
            await handler(event)
        except Exception as e:
            logger.exception(
                "session_event_failed",
                session_id=self.session.id,
                event=type(event).__name__,
                error=str(e),
            )
            if not self.session.is_closed:
                await self._send_error_quietly("Error processing message")

    # -- Admission -----------------------------------------------------------

    async def _on_bot_resolved(self, event: BotResolved) -> None:
        if self.session.status != SessionStatus.CONNECTING:
            return
        self._supervisor.cancel(ADMISSION_TIMER)
        self.session.backend_config = event.profile
        self.session.transition(SessionStatus.AWAITING_DETAILS)
        await self._transport.send_welcome(self.session)
        logger.info(
            "session_admitted",
            session_id=self.session.id,
            bot_name=event.profile.name,
        )

    async def _on_admission_rejected(self, event: AdmissionRejected) -> None:
        if self.session.status != SessionStatus.CONNECTING:
            return
        ADMISSIONS_REJECTED.labels(
            channel=self.session.channel.value, reason=event.reason
        ).inc()
        logger.warning(
            "session_admission_rejected",
            session_id=self.session.id,
            reason=event.reason,
        )
        await self._send_error_quietly(event.message)
        await self._teardown(reason=event.reason, code=event.code, notify_transport=True)

    # -- Conversation --------------------------------------------------------

    async def _on_user_details(self, event: UserDetailsSubmitted) -> None:
        if self.session.status == SessionStatus.CONNECTING:
            await self._transport.send_error("Session is not ready yet")
            return
        if self.session.status != SessionStatus.AWAITING_DETAILS:
            await self._transport.send_error("Details already provided")
            return

        self.session.user_details = dict(event.details)
        self.session.transition(SessionStatus.READY)
        await self._transport.acknowledge_details(self.session)
        await self._transport.on_ready(self.session)
        logger.info(
            "user_details_received",
            session_id=self.session.id,
            fields=sorted(event.details),
        )

    async def _on_utterance(self, event: UtteranceFinalized) -> None:
        text = event.text.strip()
        if not text:
            await self._transport.send_error("Message content required")
            return

        received_at = utc_now()
        status = self.session.status
        if status == SessionStatus.READY:
            self._begin_dispatch(text, received_at)
        elif status == SessionStatus.STREAMING_REPLY:
            self._pending_utterances.append((text, received_at))
            logger.info(
                "utterance_queued",
                session_id=self.session.id,
                queued=len(self._pending_utterances),
            )
        else:
            await self._transport.send_error("Please provide your details first")

    def _begin_dispatch(self, text: str, received_at: datetime) -> None:
        self.session.append(
            Message(role=MessageRole.USER, content=text, timestamp=self._stamp(received_at))
        )
        if self.session.answered_at is None:
            self.session.answered_at = received_at
        self.session.interrupt_flag = False
        self.session.transition(SessionStatus.STREAMING_REPLY)
        self._inflight = asyncio.create_task(
            self._relay(text), name=f"{self.session.id}:dispatch"
        )

    async def _relay(self, text: str) -> None:
        self._awaiting_webhook = True
        try:
            result = await self._dispatcher.dispatch(self.session, text)
        finally:
            self._awaiting_webhook = False

        if self.session.status != SessionStatus.STREAMING_REPLY:
            logger.info(
                "late_reply_discarded",
                session_id=self.session.id,
                status=self.session.status.value,
            )
            return

        try:
            outcome = await self._transport.deliver_reply(self.session, result.reply)
        except Exception as e:
            logger.error(
                "reply_delivery_failed",
                session_id=self.session.id,
                error=str(e),
            )
            outcome = ReplyOutcome(content="", truncated=True, chunks_sent=0)

        self.post(ReplyCompleted(content=outcome.content, truncated=outcome.truncated))

    async def _on_reply_completed(self, event: ReplyCompleted) -> None:
        if self.session.status != SessionStatus.STREAMING_REPLY:
            return
        self.session.append(
            Message(
                role=MessageRole.ASSISTANT,
                content=event.content,
                timestamp=self._stamp(utc_now()),
                truncated=event.truncated,
            )
        )
        self._inflight = None
        self.session.transition(SessionStatus.READY)

        if self._pending_utterances:
            self._begin_dispatch(*self._pending_utterances.popleft())

    async def _on_interrupt(self, event: InterruptRaised) -> None:  # noqa: ARG002
        if self.session.status != SessionStatus.STREAMING_REPLY:
            logger.debug("interrupt_ignored", session_id=self.session.id)
            return
        self.session.interrupt_flag = True
        logger.info("user_interrupt", session_id=self.session.id)

    async def _on_ping(self, event: LivenessPing) -> None:  # noqa: ARG002
        await self._transport.answer_ping()

    async def _on_call_status(self, event: CallStatusUpdated) -> None:
        if event.duration is not None:
            self.session.host_duration = event.duration
        logger.debug(
            "call_status_updated",
            session_id=self.session.id,
            call_status=event.call_status,
        )

    async def _on_unrecognized(self, event: UnrecognizedEvent) -> None:
        logger.info(
            "unrecognized_event",
            session_id=self.session.id,
            raw_type=event.raw_type,
        )
        await self._transport.send_error(event.message)

    # -- Teardown ------------------------------------------------------------

    async def _on_closed(self, event: SessionClosed) -> None:
        if event.error:
            logger.error(
                "session_transport_error",
                session_id=self.session.id,
                error=event.error,
            )
        await self._teardown(reason=event.reason, code=event.code, notify_transport=False)

    async def _teardown(
        self,
        *,
        reason: str,
        code: int | None,
        notify_transport: bool,
    ) -> None:
        if self.session.is_closed:
            return

        self.session.transition(SessionStatus.CLOSED)
        self.session.ended_at = utc_now()
        self._pending_utterances.clear()

        logger.info(
            "session_closed",
            session_id=self.session.id,
            code=code,
            reason=reason,
            messages=len(self.session.message_log),
        )

        try:
            await self._supervisor.cancel_all()
            await self._stop_inflight()
            if notify_transport:
                await self._transport.close(code or 1000, reason)
            await self._recorder.record(self.session)
        except Exception as e:
            logger.exception(
                "session_teardown_failed",
                session_id=self.session.id,
                error=str(e),
            )
        finally:
            self._registry.remove(self.session.id)

    async def _stop_inflight(self) -> None:
        task = self._inflight
        if task is None or task.done():
            return
        if self._awaiting_webhook:
            # the reference stays on _inflight until the request finishes
            task.add_done_callback(self._reap_detached)
            logger.info("webhook_request_left_running", session_id=self.session.id)
            return
        self._inflight = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("reply_delivery_cancelled", session_id=self.session.id)

    def _reap_detached(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "detached_relay_failed",
                session_id=self.session.id,
                error=str(error),
            )

    async def _send_error_quietly(self, message: str) -> None:
        try:
            await self._transport.send_error(message)
        except Exception as e:
            logger.warning(
                "error_frame_not_sent",
                session_id=self.session.id,
                error=str(e),
            )

    def _stamp(self, now: datetime) -> datetime | None:
        # voice hosts do not timestamp speech; the recorder synthesizes one
        return now if self.session.channel == Channel.CHAT else None
