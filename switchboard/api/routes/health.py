"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from switchboard import __version__
from switchboard.api.dependencies import BackendClientDep, RegistryDep
from switchboard.api.models.health import ComponentHealth, HealthResponse
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _check_component(component: object, name: str, message: str | None = None) -> ComponentHealth:
    start = time.time()
    if component is None:
        return ComponentHealth(name=name, status="unhealthy", message="Not initialized")
    return ComponentHealth(
        name=name,
        status="healthy",
        latency_ms=(time.time() - start) * 1000,
        message=message,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    registry: RegistryDep,
    backend: BackendClientDep,
) -> HealthResponse:
    """Report service health and the status of its components."""
    components = [
        _check_component(registry, "session_registry", f"{len(registry)} active sessions"),
        _check_component(backend, "backend_client", backend.base_url),
    ]

    overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"
    if any(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"
    elif any(c.status == "degraded" for c in components):
        overall_status = "degraded"

    logger.debug("health_check_completed", status=overall_status)

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        timestamp=datetime.now(UTC),
    )


async def get_metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
