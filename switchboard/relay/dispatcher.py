"""Webhook dispatcher for finalized user utterances.

Each utterance is sent to the session's conversational webhook exactly
once. Any failure degrades to a fixed fallback sentence; the caller always
gets something to deliver and the session is never aborted.
"""

import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel

from switchboard.config.models import RelayConfig
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import WEBHOOK_DISPATCHES, WEBHOOK_LATENCY
from switchboard.sessions.models import Channel, Session

logger = get_logger(__name__)

DEFAULT_TIMEOUTS: dict[Channel, float] = {
    Channel.CHAT: 10.0,
    Channel.VOICE: 30.0,
}


class DispatchOutcome(str, Enum):
    """How a webhook call ended."""

    REPLIED = "replied"
    EMPTY = "empty"
    FAILED = "failed"
    TIMEOUT = "timeout"
    UNCONFIGURED = "unconfigured"


class DispatchResult(BaseModel):
    """Reply text to deliver and how it was obtained."""

    reply: str
    outcome: DispatchOutcome

    @property
    def is_fallback(self) -> bool:
        return self.outcome != DispatchOutcome.REPLIED


class WebhookDispatcher:
    """Send utterances to conversational webhooks.

    A single attempt is made per utterance; there is no retry.
    """

    def __init__(
        self,
        relay: RelayConfig,
        timeouts: dict[Channel, float] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._relay = relay
        self._timeouts = {**DEFAULT_TIMEOUTS, **(timeouts or {})}
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    @staticmethod
    def build_payload(text: str, session_id: str) -> dict[str, Any]:
        """Build the webhook request body."""
        return {
            "message": text,
            "sessionId": session_id,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def dispatch(self, session: Session, text: str) -> DispatchResult:
        """Send one utterance and return the reply to deliver."""
        channel = session.channel.value
        webhook_url = session.backend_config.webhook_url if session.backend_config else None

        if not webhook_url:
            logger.warning("webhook_not_configured", session_id=session.id)
            return self._fallback(channel, DispatchOutcome.UNCONFIGURED)

        timeout = self._timeouts[session.channel]
        payload = self.build_payload(text, session.id)

        logger.info(
            "webhook_dispatch_attempt",
            session_id=session.id,
            url=webhook_url,
            timeout=timeout,
        )

        try:
            client = await self._ensure_client()
            start_time = time.perf_counter()
            response = await client.post(
                webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=timeout,
            )
            WEBHOOK_LATENCY.labels(channel=channel).observe(time.perf_counter() - start_time)
            response.raise_for_status()

        except httpx.TimeoutException:
            logger.warning("webhook_timeout", session_id=session.id, timeout=timeout)
            return self._fallback(channel, DispatchOutcome.TIMEOUT)

        except httpx.HTTPStatusError as e:
            logger.warning(
                "webhook_error_status",
                session_id=session.id,
                status_code=e.response.status_code,
                response_preview=e.response.text[:200],
            )
            return self._fallback(channel, DispatchOutcome.FAILED)

        except httpx.HTTPError as e:
            logger.error("webhook_http_error", session_id=session.id, error=str(e))
            return self._fallback(channel, DispatchOutcome.FAILED)

        except Exception as e:
            logger.error(
                "webhook_dispatch_failed",
                session_id=session.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback(channel, DispatchOutcome.FAILED)

        reply = self._extract_reply(response)
        if reply is None:
            logger.info("webhook_returned_no_reply", session_id=session.id)
            WEBHOOK_DISPATCHES.labels(channel=channel, outcome=DispatchOutcome.EMPTY.value).inc()
            return DispatchResult(reply=self._relay.empty_reply, outcome=DispatchOutcome.EMPTY)

        WEBHOOK_DISPATCHES.labels(channel=channel, outcome=DispatchOutcome.REPLIED.value).inc()
        logger.info("webhook_replied", session_id=session.id, reply_length=len(reply))
        return DispatchResult(reply=reply, outcome=DispatchOutcome.REPLIED)

    def _fallback(self, channel: str, outcome: DispatchOutcome) -> DispatchResult:
        WEBHOOK_DISPATCHES.labels(channel=channel, outcome=outcome.value).inc()
        return DispatchResult(reply=self._relay.fallback_reply, outcome=outcome)

    @staticmethod
    def _extract_reply(response: httpx.Response) -> str | None:
        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        reply = data.get("reply")
        if isinstance(reply, str) and reply:
            return reply
        return None

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
