"""Read-only view of live sessions."""

from fastapi import APIRouter, Query

from switchboard.api.dependencies import RegistryDep
from switchboard.api.exceptions import SessionNotFoundError
from switchboard.api.models.sessions import (
    SessionDetail,
    SessionListResponse,
    SessionSummary,
)
from switchboard.sessions.models import Channel

router = APIRouter(prefix="/sessions")


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    registry: RegistryDep,
    channel: Channel | None = Query(default=None, description="Only this channel"),
) -> SessionListResponse:
    """List live sessions, oldest first."""
    sessions = [SessionSummary.from_session(s) for s in registry.list(channel)]
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str, registry: RegistryDep) -> SessionDetail:
    """Get one live session with its message log."""
    session = registry.get(session_id)
    if session is None:
        raise SessionNotFoundError(f"Session {session_id} is not active")
    return SessionDetail.from_session(session)
