"""Unit tests for the backend API client."""

import json
from datetime import timedelta

import httpx
import pytest

from switchboard.backend.client import BackendClient, BackendError, storage_payload
from switchboard.recording.recorder import build_record
from switchboard.sessions.models import (
    CallerInfo,
    Channel,
    Message,
    MessageRole,
    SessionStatus,
    utc_now,
)


def make_client(handler) -> BackendClient:
    http = httpx.AsyncClient(
        base_url="http://backend.test",
        transport=httpx.MockTransport(handler),
    )
    return BackendClient(base_url="http://backend.test", client=http)


@pytest.fixture
def chat_record(make_session):
    started = utc_now()
    session = make_session(
        id="chat_abc",
        bot_id="bot-1",
        status=SessionStatus.CLOSED,
        started_at=started,
        ended_at=started + timedelta(seconds=30),
        answered_at=started,
        user_details={"name": "Jo", "email": "jo@example.com"},
    )
    session.append(Message(role=MessageRole.USER, content="Hi", timestamp=started))
    session.append(Message(role=MessageRole.ASSISTANT, content="Hello", timestamp=started))
    return build_record(session)


class TestGetBot:
    async def test_returns_profile(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/admin/bots/bot-1"
            return httpx.Response(
                200,
                json={"name": "Support", "active": True, "webhook_url": "https://hooks.test/a"},
            )

        async with make_client(handler) as client:
            profile = await client.get_bot("bot-1")

        assert profile is not None
        assert profile.name == "Support"
        assert profile.webhook_url == "https://hooks.test/a"

    async def test_unknown_bot_returns_none(self) -> None:
        async with make_client(lambda r: httpx.Response(404, json={"error": "nope"})) as client:
            assert await client.get_bot("missing") is None

    async def test_server_error_raises(self) -> None:
        async with make_client(lambda r: httpx.Response(500, text="boom")) as client:
            with pytest.raises(BackendError) as exc_info:
                await client.get_bot("bot-1")

        assert exc_info.value.status_code == 500

    async def test_connection_error_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(BackendError):
                await client.get_bot("bot-1")


class TestLookupBot:
    async def test_dnis_is_url_encoded(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200, json={"bot": {"webhook_url": "https://hooks.test/v"}})

        async with make_client(handler) as client:
            data = await client.lookup_bot("+15550002222")

        assert seen == ["/api/admin/bots/lookup/%2B15550002222"]
        assert data["bot"]["webhook_url"] == "https://hooks.test/v"


class TestSaveConversation:
    async def test_chat_payload_shape(self, chat_record) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"conversation_id": "conv_9"})

        async with make_client(handler) as client:
            conversation_id = await client.save_conversation(chat_record)

        assert conversation_id == "conv_9"
        body = bodies[0]
        assert body["conversation_id"] == "chat_abc"
        assert body["channel_type"] == "chat"
        assert body["duration"] == "30s"
        assert body["status"] == "completed"
        assert body["user_details"] == {"name": "Jo", "email": "jo@example.com"}
        assert [m["sender"] for m in body["message_log"]] == ["user", "agent"]
        assert "summary" not in body

    async def test_voice_payload_uses_call_sid(self, make_session) -> None:
        started = utc_now()
        session = make_session(
            Channel.VOICE,
            id="CA42",
            status=SessionStatus.CLOSED,
            started_at=started,
            ended_at=started + timedelta(seconds=10),
            caller=CallerInfo(from_number="+1555000", to_number="+1555999"),
        )
        session.append(Message(role=MessageRole.USER, content="hello"))
        session.append(Message(role=MessageRole.ASSISTANT, content="hi"))

        payload = storage_payload(build_record(session))

        assert payload["call_sid"] == "CA42"
        assert "conversation_id" not in payload
        assert payload["summary"]["from"] == "+1555000"
        assert payload["summary"]["direction"] == "inbound"
        assert payload["events"][0]["user_transcript"] == "hello"
        assert payload["events"][1]["agent_response"] == "hi"

    async def test_save_failure_raises(self, chat_record) -> None:
        async with make_client(lambda r: httpx.Response(503)) as client:
            with pytest.raises(BackendError):
                await client.save_conversation(chat_record)


class TestUpdateSummary:
    async def test_strips_conv_prefix(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            assert json.loads(request.content) == {"summary": "Short summary"}
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler) as client:
            assert await client.update_summary("conv_123", "Short summary") is True

        assert paths == ["/api/conversations/123/summary"]

    async def test_non_200_reports_failure(self) -> None:
        async with make_client(lambda r: httpx.Response(404)) as client:
            assert await client.update_summary("conv_1", "x") is False

    async def test_connection_error_reports_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            assert await client.update_summary("conv_1", "x") is False
