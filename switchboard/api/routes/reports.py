"""Ad-hoc report ingestion."""

from typing import Any

from fastapi import APIRouter, Body

from switchboard.api.dependencies import BackendClientDep
from switchboard.api.exceptions import BackendUnavailableError
from switchboard.backend.client import BackendError
from switchboard.backend.reports import normalize_report
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/report")


@router.post("/entry")
async def report_entry(
    backend: BackendClientDep,
    body: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """Normalize a loosely shaped call report and forward it to storage."""
    payload = normalize_report(body)
    try:
        result = await backend.save_raw(payload)
    except BackendError as e:
        logger.error("report_forward_failed", call_sid=payload["call_sid"], error=e.message)
        raise BackendUnavailableError(f"Failed to save report: {e.message}") from e

    logger.info("report_forwarded", call_sid=payload["call_sid"])
    return {"success": True, "result": result}
