"""Registry of live sessions keyed by session id."""

from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import ACTIVE_SESSIONS, SESSIONS_OPENED
from switchboard.sessions.models import Channel, Session

logger = get_logger(__name__)


class DuplicateSessionError(Exception):
    """Raised when a session id is already present in the registry."""


class SessionRegistry:
    """Owned table of active sessions.

    Adapters insert a session when they create it and remove it when it
    closes; nothing else mutates the table.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def insert(self, session: Session) -> None:
        """Add a session, rejecting ids that are already live."""
        if session.id in self._sessions:
            raise DuplicateSessionError(f"Session already registered: {session.id}")
        self._sessions[session.id] = session
        SESSIONS_OPENED.labels(channel=session.channel.value).inc()
        ACTIVE_SESSIONS.labels(channel=session.channel.value).inc()
        logger.debug("session_registered", session_id=session.id)

    def remove(self, session_id: str) -> Session | None:
        """Remove a session; returns None when it was not registered."""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            ACTIVE_SESSIONS.labels(channel=session.channel.value).dec()
            logger.debug("session_unregistered", session_id=session_id)
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def list(self, channel: Channel | None = None) -> list[Session]:
        """List sessions, oldest first, optionally filtered by channel."""
        results = [
            s for s in self._sessions.values()
            if channel is None or s.channel == channel
        ]
        results.sort(key=lambda s: s.started_at)
        return results

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
