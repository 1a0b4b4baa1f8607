"""Normalization of ad-hoc report payloads.

Some callers post loosely shaped call reports (flat ``from``/``to`` fields,
a single message/response pair, missing timestamps). They are reshaped
into the conversation storage format before being forwarded.
"""

from typing import Any

from switchboard.sessions.models import utc_now

DEFAULT_USER_TRANSCRIPT = "Call received"
DEFAULT_AGENT_RESPONSE = "Hello"


def normalize_report(body: dict[str, Any]) -> dict[str, Any]:
    """Reshape an ad-hoc report into the storage payload shape."""
    call_sid = body.get("call_sid") or body.get("sessionId")
    now = utc_now().isoformat()

    events = body.get("events")
    if not events:
        response = body.get("response")
        agent_reply = response.get("reply") if isinstance(response, dict) else None
        events = [
            {
                "type": "user_input",
                "user_transcript": body.get("message") or DEFAULT_USER_TRANSCRIPT,
                "timestamp": body.get("timestamp") or now,
            },
            {
                "type": "agent_response",
                "agent_response": agent_reply or DEFAULT_AGENT_RESPONSE,
                "timestamp": now,
            },
        ]

    return {
        "call_sid": call_sid,
        "summary": {
            "from": body.get("from") or body.get("calling_number") or call_sid,
            "to": body.get("to") or body.get("ivr_number") or call_sid,
            "duration": body.get("duration") or 0,
            "answered": body.get("answered") is not False,
            "direction": body.get("direction") or "inbound",
            "attempted_at": body.get("attempted_at"),
            "answered_at": body.get("answered_at"),
            "terminated_at": body.get("terminated_at"),
        },
        "events": events,
    }
