"""API route registration."""

from fastapi import APIRouter, FastAPI

from switchboard.config.settings import Settings
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


def create_v1_router() -> APIRouter:
    """Create the v1 API router."""
    router = APIRouter(prefix="/v1")

    from switchboard.api.routes.sessions import router as sessions_router

    router.include_router(sessions_router, tags=["Sessions"])
    return router


def register_routes(app: FastAPI, settings: Settings) -> None:
    """Register all routes with the FastAPI application."""
    from switchboard.api.routes.bots import router as bots_router
    from switchboard.api.routes.chat import router as chat_router
    from switchboard.api.routes.health import get_metrics
    from switchboard.api.routes.health import router as health_router
    from switchboard.api.routes.reports import router as reports_router
    from switchboard.api.routes.voice import router as voice_router

    app.include_router(create_v1_router())
    app.include_router(bots_router, tags=["Bots"])
    app.include_router(reports_router, tags=["Reports"])
    app.include_router(chat_router, tags=["Chat"])
    app.include_router(voice_router, tags=["Voice"])
    app.include_router(health_router, tags=["Health"])

    if settings.observability.metrics.enabled:
        app.add_api_route(
            settings.observability.metrics.path,
            get_metrics,
            methods=["GET"],
            tags=["Health"],
        )

    logger.info("routes_registered")
