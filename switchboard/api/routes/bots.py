"""Bot lookup proxy."""

from typing import Any

from fastapi import APIRouter

from switchboard.api.dependencies import BackendClientDep
from switchboard.api.exceptions import BackendUnavailableError
from switchboard.backend.client import BackendError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin/bots")


@router.get("/lookup/{dnis}")
async def lookup_bot(dnis: str, backend: BackendClientDep) -> Any:
    """Look a bot up by dialed number through the backend."""
    try:
        return await backend.lookup_bot(dnis)
    except BackendError as e:
        logger.error("bot_lookup_proxy_failed", dnis=dnis, error=e.message)
        raise BackendUnavailableError(f"Failed to lookup bot by DNIS: {e.message}") from e
