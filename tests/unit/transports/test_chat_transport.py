"""Unit tests for the chat transport adapter."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from switchboard.api.dependencies import get_chat_adapter
from switchboard.api.routes.chat import router
from switchboard.backend.client import BackendError
from switchboard.config.models import ChatConfig
from switchboard.recording.recorder import ConversationRecorder
from switchboard.relay.dispatcher import DispatchOutcome, DispatchResult
from switchboard.sessions.events import (
    LivenessPing,
    UnrecognizedEvent,
    UserDetailsSubmitted,
    UtteranceFinalized,
)
from switchboard.sessions.models import BotProfile, PromptField
from switchboard.sessions.registry import SessionRegistry
from switchboard.transports.chat import ChatAdapter, FrameError, parse_chat_frame


class StaticDispatcher:
    def __init__(self, reply: str = "Hello") -> None:
        self.reply = reply
        self.calls: list[str] = []

    async def dispatch(self, session, text: str) -> DispatchResult:
        self.calls.append(text)
        return DispatchResult(reply=self.reply, outcome=DispatchOutcome.REPLIED)


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def backend(bot_profile: BotProfile) -> AsyncMock:
    backend = AsyncMock()
    backend.get_bot.return_value = bot_profile
    return backend


@pytest.fixture
def storage() -> AsyncMock:
    storage = AsyncMock()
    storage.save_conversation.return_value = None
    return storage


@pytest.fixture
def chat_config() -> ChatConfig:
    return ChatConfig()


@pytest.fixture
def client(registry, backend, storage, chat_config) -> TestClient:
    adapter = ChatAdapter(
        registry,
        backend,
        StaticDispatcher(),
        ConversationRecorder(storage),
        chat_config,
    )
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_chat_adapter] = lambda: adapter
    return TestClient(app)


class TestParseChatFrame:
    """Inbound frames map onto session events."""

    def test_user_details(self) -> None:
        event = parse_chat_frame('{"type": "user_details", "details": {"name": "Jo"}}')

        assert event == UserDetailsSubmitted(details={"name": "Jo"})

    def test_chat_message(self) -> None:
        event = parse_chat_frame('{"type": "chat_message", "content": "Hi"}')

        assert event == UtteranceFinalized(text="Hi")

    def test_ping(self) -> None:
        assert isinstance(parse_chat_frame('{"type": "ping"}'), LivenessPing)

    def test_unknown_type(self) -> None:
        event = parse_chat_frame('{"type": "typing"}')

        assert isinstance(event, UnrecognizedEvent)
        assert event.raw_type == "typing"
        assert event.message == "Unknown message type"

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"type": "user_details", "details": 5}'])
    def test_malformed_frames_raise(self, raw: str) -> None:
        with pytest.raises(FrameError, match="Error processing message"):
            parse_chat_frame(raw)


class TestChatAdmission:
    """Connections are admitted only for a known, active bot."""

    def test_missing_bot_id_closes_with_policy_violation(
        self, client: TestClient, registry: SessionRegistry, backend: AsyncMock
    ) -> None:
        with client.websocket_connect("/chat-streaming") as ws:
            assert ws.receive_json() == {"type": "error", "message": "Bot ID required"}
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1008
        assert len(registry) == 0
        backend.get_bot.assert_not_awaited()

    def test_welcome_uses_default_prompt_fields(self, client: TestClient) -> None:
        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            welcome = ws.receive_json()

        assert welcome["type"] == "welcome"
        assert welcome["message"] == (
            "Welcome to Support Bot! Please provide your details to get started."
        )
        assert [f["name"] for f in welcome["user_prompt_fields"]] == ["name", "email", "phone"]

    def test_welcome_uses_bot_prompt_fields(self, client: TestClient, backend: AsyncMock) -> None:
        backend.get_bot.return_value = BotProfile(
            name="Sales",
            webhook_url="https://hooks.test/sales",
            user_prompt_fields=[PromptField(name="company", label="Company", required=True)],
        )

        with client.websocket_connect("/chat-streaming?bot_id=sales") as ws:
            welcome = ws.receive_json()

        assert welcome["user_prompt_fields"] == [
            {"name": "company", "label": "Company", "required": True, "type": "text"}
        ]

    @pytest.mark.parametrize("profile", [None, BotProfile(name="Old", active=False)])
    def test_unknown_or_inactive_bot_rejected(
        self, client: TestClient, backend: AsyncMock, registry: SessionRegistry, profile
    ) -> None:
        backend.get_bot.return_value = profile

        with client.websocket_connect("/chat-streaming?bot_id=bot-x") as ws:
            assert ws.receive_json() == {"type": "error", "message": "Bot not found or inactive"}
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1000
        assert len(registry) == 0

    def test_lookup_failure_closes_with_internal_error(
        self, client: TestClient, backend: AsyncMock, registry: SessionRegistry
    ) -> None:
        backend.get_bot.side_effect = BackendError("backend down")

        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            assert ws.receive_json() == {
                "type": "error",
                "message": "Error initializing chat session",
            }
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1011
        assert len(registry) == 0

    def test_admission_timeout_closes_connection(
        self, client: TestClient, backend: AsyncMock, chat_config: ChatConfig
    ) -> None:
        chat_config.admission_timeout_seconds = 0.05

        async def slow_lookup(bot_id: str) -> BotProfile:
            await asyncio.sleep(5)
            return BotProfile(name="late")

        backend.get_bot.side_effect = slow_lookup

        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            assert ws.receive_json() == {"type": "error", "message": "Connection timeout"}
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1000
        assert exc_info.value.reason == "Connection timeout"


class TestChatConversation:
    """Frames exchanged once the session is admitted."""

    def test_full_exchange_is_recorded(
        self, client: TestClient, registry: SessionRegistry, storage: AsyncMock
    ) -> None:
        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            ws.receive_json()
            assert len(registry) == 1

            ws.send_json({"type": "user_details", "details": {"name": "Jo", "email": "jo@x.io"}})
            assert ws.receive_json() == {
                "type": "user_details_received",
                "message": "Thank you! How can I help you today?",
            }

            ws.send_json({"type": "chat_message", "content": "Hi"})
            assert ws.receive_json() == {"type": "bot_reply", "message": "Hello"}

        assert len(registry) == 0
        storage.save_conversation.assert_awaited_once()
        record = storage.save_conversation.await_args.args[0]
        assert [e.content for e in record.events] == ["Hi", "Hello"]
        assert record.participant_details == {"name": "Jo", "email": "jo@x.io"}
        assert record.answered is True

    def test_message_before_details_rejected(self, client: TestClient) -> None:
        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            ws.receive_json()
            ws.send_json({"type": "chat_message", "content": "Hi"})

            assert ws.receive_json() == {
                "type": "error",
                "message": "Please provide your details first",
            }

    def test_ping_and_bad_frames_keep_session_open(self, client: TestClient) -> None:
        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            ws.receive_json()

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong", "message": "pong"}

            ws.send_text("{not json")
            assert ws.receive_json() == {"type": "error", "message": "Error processing message"}

            ws.send_json({"type": "typing"})
            assert ws.receive_json() == {"type": "error", "message": "Unknown message type"}

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_disconnect_without_messages_saves_nothing(
        self, client: TestClient, storage: AsyncMock, registry: SessionRegistry
    ) -> None:
        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            ws.receive_json()

        storage.save_conversation.assert_not_awaited()
        assert len(registry) == 0

    def test_heartbeat_starts_once_ready(
        self, client: TestClient, chat_config: ChatConfig
    ) -> None:
        chat_config.heartbeat_interval_seconds = 0.05

        with client.websocket_connect("/chat-streaming?bot_id=bot-1") as ws:
            ws.receive_json()
            ws.send_json({"type": "user_details", "details": {"name": "Jo"}})
            ws.receive_json()

            assert ws.receive_json() == {"type": "heartbeat", "message": "ping"}
