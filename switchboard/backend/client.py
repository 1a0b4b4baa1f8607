"""Backend API client.

Thin httpx client for the backend that owns bot definitions and the
conversation log:

    GET  /api/admin/bots/{bot_id}
    GET  /api/admin/bots/lookup/{dnis}
    POST /api/conversations/save
    PUT  /api/conversations/{id}/summary

Every call is a single attempt.
"""

from typing import Any
from urllib.parse import quote

import httpx

from switchboard.observability.logging import get_logger
from switchboard.recording.models import ConversationRecord, RecordEventType
from switchboard.sessions.models import BotProfile, Channel

logger = get_logger(__name__)


class BackendError(Exception):
    """Raised when the backend cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def storage_payload(record: ConversationRecord) -> dict[str, Any]:
    """Shape a conversation record for POST /api/conversations/save."""
    data = record.model_dump(mode="json")
    id_key = "call_sid" if record.channel == Channel.VOICE else "conversation_id"

    payload: dict[str, Any] = {
        id_key: record.session_id,
        "bot_id": record.bot_id,
        "channel_type": record.channel.value,
        "user_details": data["participant_details"] if record.channel == Channel.CHAT else {},
        "message_log": [
            {
                "sender": "user" if event["type"] == RecordEventType.USER_INPUT.value else "agent",
                "message": event["content"],
                "timestamp": event["timestamp"],
                "sentiment": "neutral",
                "tags": [],
                "truncated": event["truncated"],
            }
            for event in data["events"]
        ],
        "started_at": data["started_at"],
        "ended_at": data["ended_at"],
        "duration": record.duration,
        "answered": record.answered,
        "status": "completed",
    }

    if record.channel == Channel.VOICE:
        payload["summary"] = {
            "from": data["participant_details"].get("from"),
            "to": data["participant_details"].get("to"),
            "duration_minutes": record.duration,
            "answered": record.answered,
            "direction": "inbound",
            "attempted_at": data["started_at"],
            "answered_at": data["answered_at"],
            "terminated_at": data["ended_at"],
        }
        payload["events"] = [
            {
                "type": event["type"],
                "user_transcript": event["content"]
                if event["type"] == RecordEventType.USER_INPUT.value
                else None,
                "agent_response": event["content"]
                if event["type"] == RecordEventType.AGENT_RESPONSE.value
                else None,
                "timestamp": event["timestamp"],
            }
            for event in data["events"]
        ]

    return payload


class BackendClient:
    """Async client for the bot and conversation backend."""

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}") from e
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = response.text[:500]
            raise BackendError(
                f"Backend returned {response.status_code}",
                status_code=response.status_code,
                details=details,
            )

    async def get_bot(self, bot_id: str) -> BotProfile | None:
        """Fetch a bot by id. Returns None when the backend does not know it."""
        response = await self._request("GET", f"/api/admin/bots/{quote(bot_id, safe='')}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)

        data = response.json()
        if not data:
            return None
        return BotProfile.model_validate(data)

    async def lookup_bot(self, dnis: str) -> dict[str, Any]:
        """Look a bot up by dialed number; returns the backend's raw answer."""
        response = await self._request(
            "GET", f"/api/admin/bots/lookup/{quote(dnis, safe='')}"
        )
        self._raise_for_status(response)
        return response.json()

    async def save_raw(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST an already-shaped conversation payload."""
        response = await self._request(
            "POST",
            "/api/conversations/save",
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        self._raise_for_status(response)
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def save_conversation(self, record: ConversationRecord) -> str | None:
        """Store a conversation record; returns the backend's conversation id."""
        data = await self.save_raw(storage_payload(record))
        conversation_id = data.get("conversation_id")
        return str(conversation_id) if conversation_id else None

    async def update_summary(self, conversation_id: str, summary: str) -> bool:
        """Attach a summary to a stored conversation."""
        storage_id = conversation_id.removeprefix("conv_")
        try:
            response = await self._request(
                "PUT",
                f"/api/conversations/{quote(storage_id, safe='')}/summary",
                json={"summary": summary},
            )
        except BackendError as e:
            logger.error("summary_update_failed", conversation_id=conversation_id, error=e.message)
            return False

        if response.status_code != 200:
            logger.error(
                "summary_update_rejected",
                conversation_id=conversation_id,
                status_code=response.status_code,
            )
            return False
        return True
