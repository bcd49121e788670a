"""
safeaction.app - FastAPI Application Factory

Creates a FastAPI application serving every discovered action.

Usage:
    # Development
    uvicorn safeaction.app:create_app --factory --reload

    # Production
    SAFE_ACTION_ACTIONS_DIR=server/actions uvicorn safeaction.app:create_app --factory \\
        --host 0.0.0.0 --port 8000

Environment Variables:
    SAFE_ACTION_ACTIONS_DIR: Directory scanned for action files
    SAFE_ACTION_ROUTE_PREFIX: Route namespace (default: /api/_actions)
    SAFE_ACTION_CORS_ORIGINS: JSON list of allowed CORS origins
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from safeaction import __version__
from safeaction.handlers import build_actions_router
from safeaction.settings import SafeActionSettings, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup and shutdown of the action server."""
    settings: SafeActionSettings = app.state.settings
    logger.info(
        f"Starting safeaction server (actions from {settings.actions_dir})...",
        extra={"env": settings.env, "route_prefix": settings.route_prefix},
    )

    yield

    logger.info("Shutting down safeaction server...")


def create_app(settings: SafeActionSettings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Actions are discovered and routed once, when the app is created.

    Args:
        settings: Configuration (defaults to the cached environment settings)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="safeaction",
        description="Type-safe server actions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    logger.info(f"Configuring CORS for origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(build_actions_router(settings.actions_dir, prefix=settings.route_prefix))

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
