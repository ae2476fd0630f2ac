"""
aibot/api/main.py
FastAPI application factory.

The app is built around an already constructed controller; startup and
shutdown are driven by the lifecycle driver, not by a FastAPI lifespan.
"""

from typing import Optional

from fastapi import FastAPI

from ..application.controller import AIBotController
from ..core.config import Settings, get_settings
from ..core.logging import get_logger
from .routes import health

logger = get_logger("api")


def create_server(controller: AIBotController, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the HTTP application bound to ``controller``.

    Returns:
        Configured FastAPI app (not yet listening)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="AI bot service",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.controller = controller

    app.include_router(health.root_router)
    app.include_router(health.router)

    @app.get("/", tags=["Root"])
    async def root():
        """Service info endpoint"""
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running" if controller.accepting else "stopping",
            "bot": {"first_name": settings.FIRST_NAME, "last_name": settings.LAST_NAME},
            "controller": controller.describe(),
            "endpoints": {
                "health": "/health",
                "health_detail": "/api/v1/health",
            },
        }

    logger.info("app_created", name=settings.APP_NAME, version=settings.APP_VERSION)
    return app


__all__ = ["create_server"]
