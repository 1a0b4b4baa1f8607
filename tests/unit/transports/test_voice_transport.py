"""Unit tests for the voice transport adapter."""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from switchboard.backend.client import BackendError
from switchboard.config.models import VoiceConfig
from switchboard.recording.recorder import ConversationRecorder
from switchboard.relay.dispatcher import DispatchOutcome, DispatchResult
from switchboard.sessions.models import CallerInfo, MessageRole, SessionStatus
from switchboard.sessions.registry import SessionRegistry
from switchboard.transports.jambonz import HostEvent, HostEventKind
from switchboard.transports.voice import VoiceAdapter


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


class FakeHost:
    """In-memory telephony host session."""

    def __init__(self, call_sid: str = "CA100") -> None:
        self.call_sid = call_sid
        self.caller = CallerInfo(from_number="+15550001111", to_number="+15550002222")
        self.duration: float | None = None
        self.verbs: list[dict[str, Any]] = []
        self.sent: list[list[dict[str, Any]]] = []
        self.replies = 0
        self.tokens: list[str] = []
        self.flushes = 0
        self.closed = False
        self.on_tokens: Callable[[str], None] | None = None
        self._events: asyncio.Queue[HostEvent] = asyncio.Queue()

    def push(self, event: HostEvent) -> None:
        self._events.put_nowait(event)

    def config(self, **options: Any) -> "FakeHost":
        self.verbs.append({"verb": "config", **options})
        return self

    def say(self, text: str) -> "FakeHost":
        self.verbs.append({"verb": "say", "text": text})
        return self

    async def send(self) -> None:
        self.sent.append(self.verbs)
        self.verbs = []

    async def reply(self) -> None:
        self.replies += 1

    async def send_tts_tokens(self, tokens: str) -> None:
        self.tokens.append(tokens)
        if self.on_tokens is not None:
            self.on_tokens(tokens)

    async def flush_tts_tokens(self) -> None:
        self.flushes += 1

    async def close(self) -> None:
        self.closed = True

    async def events(self) -> AsyncIterator[HostEvent]:
        while True:
            event = await self._events.get()
            yield event
            if event.kind in (HostEventKind.CLOSE, HostEventKind.ERROR):
                return


class StaticDispatcher:
    def __init__(self, reply: str = "Hello there") -> None:
        self.reply = reply
        self.calls: list[str] = []

    async def dispatch(self, session, text: str) -> DispatchResult:
        self.calls.append(text)
        return DispatchResult(reply=self.reply, outcome=DispatchOutcome.REPLIED)


def speech(transcript: str, is_final: bool = True) -> HostEvent:
    return HostEvent(kind=HostEventKind.SPEECH, transcript=transcript, is_final=is_final)


CLOSE = HostEvent(kind=HostEventKind.CLOSE, code=1000, reason="hangup")


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def storage() -> AsyncMock:
    storage = AsyncMock()
    storage.save_conversation.return_value = None
    return storage


@pytest.fixture
def backend() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def dispatcher() -> StaticDispatcher:
    return StaticDispatcher()


@pytest.fixture
def voice_config() -> VoiceConfig:
    return VoiceConfig(webhook_url="https://hooks.test/voice", chunk_delay_seconds=0)


@pytest.fixture
def adapter(registry, backend, dispatcher, storage, voice_config) -> VoiceAdapter:
    return VoiceAdapter(registry, backend, dispatcher, ConversationRecorder(storage), voice_config)


class TestCallSetup:
    async def test_configures_host_and_greets(
        self, adapter: VoiceAdapter, registry: SessionRegistry
    ) -> None:
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        config_verb, say_verb = host.sent[0]
        assert config_verb["ttsStream"] == {"enable": True}
        assert config_verb["bargeIn"] == {
            "enable": True,
            "sticky": True,
            "minBargeinWordCount": 1,
            "actionHook": "/speech-detected",
            "input": ["speech"],
        }
        assert say_verb == {"verb": "say", "text": "Hi there, how can I help you today?"}

        session = registry.get("CA100")
        assert session is not None
        assert session.status == SessionStatus.READY

        host.push(CLOSE)
        await asyncio.wait_for(task, 1)
        assert len(registry) == 0

    async def test_duplicate_call_rejected(
        self, adapter: VoiceAdapter, registry: SessionRegistry
    ) -> None:
        first = FakeHost()
        task = asyncio.create_task(adapter.serve(first))
        await wait_until(lambda: bool(first.sent))

        second = FakeHost()
        await adapter.serve(second)

        assert second.closed is True
        assert registry.get("CA100") is not None

        first.push(CLOSE)
        await asyncio.wait_for(task, 1)

    async def test_setup_failure_unregisters_and_closes(
        self, adapter: VoiceAdapter, registry: SessionRegistry
    ) -> None:
        host = FakeHost()
        host.send = AsyncMock(side_effect=ConnectionError("socket gone"))

        await adapter.serve(host)

        assert host.closed is True
        assert len(registry) == 0


class TestWebhookResolution:
    async def test_dnis_lookup_used_when_enabled(
        self, adapter: VoiceAdapter, backend: AsyncMock, voice_config: VoiceConfig, registry
    ) -> None:
        voice_config.resolve_bot_by_dnis = True
        backend.lookup_bot.return_value = {
            "bot": {"name": "Sales", "webhook_url": "https://hooks.test/sales"}
        }
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        assert registry.get("CA100").backend_config.webhook_url == "https://hooks.test/sales"
        backend.lookup_bot.assert_awaited_once_with("+15550002222")

        host.push(CLOSE)
        await asyncio.wait_for(task, 1)

    async def test_lookup_failure_falls_back_to_default(
        self, adapter: VoiceAdapter, backend: AsyncMock, voice_config: VoiceConfig, registry
    ) -> None:
        voice_config.resolve_bot_by_dnis = True
        backend.lookup_bot.side_effect = BackendError("down")
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        assert registry.get("CA100").backend_config.webhook_url == "https://hooks.test/voice"

        host.push(CLOSE)
        await asyncio.wait_for(task, 1)

    async def test_lookup_skipped_by_default(
        self, adapter: VoiceAdapter, backend: AsyncMock
    ) -> None:
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        backend.lookup_bot.assert_not_awaited()

        host.push(CLOSE)
        await asyncio.wait_for(task, 1)


class TestSpeech:
    async def test_final_speech_streams_reply(
        self, adapter: VoiceAdapter, dispatcher: StaticDispatcher, storage: AsyncMock
    ) -> None:
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        host.push(speech("what are your hours"))
        await wait_until(lambda: host.flushes == 1)

        assert host.replies == 1
        assert dispatcher.calls == ["what are your hours"]
        assert host.tokens == ["Hello there "]

        host.push(CLOSE)
        await asyncio.wait_for(task, 1)

        record = storage.save_conversation.await_args.args[0]
        assert [e.content for e in record.events] == ["what are your hours", "Hello there"]
        assert record.participant_details == {"from": "+15550001111", "to": "+15550002222"}

    async def test_interim_speech_only_acknowledged(
        self, adapter: VoiceAdapter, dispatcher: StaticDispatcher, storage: AsyncMock
    ) -> None:
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        host.push(speech("what are", is_final=False))
        await wait_until(lambda: host.replies == 1)
        host.push(CLOSE)
        await asyncio.wait_for(task, 1)

        assert dispatcher.calls == []
        storage.save_conversation.assert_not_awaited()

    async def test_barge_in_truncates_reply(
        self,
        adapter: VoiceAdapter,
        dispatcher: StaticDispatcher,
        voice_config: VoiceConfig,
        registry: SessionRegistry,
    ) -> None:
        voice_config.chunk_delay_seconds = 0.02
        dispatcher.reply = " ".join(f"w{i}" for i in range(30))
        host = FakeHost()

        def interrupt_after_second_chunk(tokens: str) -> None:
            if len(host.tokens) == 2:
                host.push(HostEvent(kind=HostEventKind.USER_INTERRUPT))

        host.on_tokens = interrupt_after_second_chunk
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))
        session = registry.get("CA100")

        host.push(speech("tell me everything"))
        await wait_until(lambda: len(session.message_log) == 2)

        assert len(host.tokens) == 2
        assert host.flushes == 0
        reply = session.message_log[1]
        assert reply.role == MessageRole.ASSISTANT
        assert reply.truncated is True
        assert reply.content == "w0 w1 w2 w3 w4 w5 w6 w7 w8 w9"

        host.push(CLOSE)
        await asyncio.wait_for(task, 1)


class TestCallEnd:
    async def test_host_duration_used_for_record(
        self, adapter: VoiceAdapter, storage: AsyncMock
    ) -> None:
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        host.push(speech("hi"))
        await wait_until(lambda: host.flushes == 1)
        host.push(HostEvent(kind=HostEventKind.CALL_STATUS, call_status="completed", duration=125))
        host.push(CLOSE)
        await asyncio.wait_for(task, 1)

        record = storage.save_conversation.await_args.args[0]
        assert record.duration == "2.08m"
        assert record.answered is True

    async def test_host_error_tears_down(
        self, adapter: VoiceAdapter, registry: SessionRegistry
    ) -> None:
        host = FakeHost()
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        host.push(HostEvent(kind=HostEventKind.ERROR, error="media server gone"))
        await asyncio.wait_for(task, 1)

        assert len(registry) == 0

    async def test_pump_failure_tears_down(
        self, adapter: VoiceAdapter, registry: SessionRegistry
    ) -> None:
        host = FakeHost()
        host.reply = AsyncMock(side_effect=RuntimeError("socket gone"))
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        host.push(speech("hello"))
        await asyncio.wait_for(task, 1)

        assert len(registry) == 0

    async def test_event_stream_end_tears_down(
        self, adapter: VoiceAdapter, registry: SessionRegistry
    ) -> None:
        host = FakeHost()
        stop = asyncio.Event()

        async def events_until_stopped() -> AsyncIterator[HostEvent]:
            await stop.wait()
            for event in ():
                yield event

        host.events = events_until_stopped
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: registry.get("CA100") is not None)

        stop.set()
        await asyncio.wait_for(task, 1)

        assert len(registry) == 0

    async def test_hangup_mid_reply_stops_delivery(
        self,
        adapter: VoiceAdapter,
        dispatcher: StaticDispatcher,
        voice_config: VoiceConfig,
        registry: SessionRegistry,
    ) -> None:
        voice_config.chunk_delay_seconds = 0.02
        dispatcher.reply = " ".join(f"w{i}" for i in range(30))
        host = FakeHost()

        def hang_up_after_first_chunk(tokens: str) -> None:
            if len(host.tokens) == 1:
                host.push(CLOSE)

        host.on_tokens = hang_up_after_first_chunk
        task = asyncio.create_task(adapter.serve(host))
        await wait_until(lambda: bool(host.sent))

        host.push(speech("tell me everything"))
        await asyncio.wait_for(task, 1)
        await asyncio.sleep(0.1)

        assert host.tokens == ["w0 w1 w2 w3 w4 "]
        assert host.flushes == 0
        assert len(registry) == 0
