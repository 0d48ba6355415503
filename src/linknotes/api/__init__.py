"""FastAPI application and routes."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import ConfigManager
from ..core.engine import BookmarkEngine

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    config_manager: Optional[ConfigManager] = None,
    verify_remote: bool = True,
    **engine_options: Any,
) -> FastAPI:
    """Create the API application.

    Args:
        config_manager: Configuration source (default: ~/.linknotes)
        verify_remote: Validate the stored token against the remote at startup
        **engine_options: Passed to ``BookmarkEngine.build``

    Returns:
        FastAPI application whose lifespan owns a ``BookmarkEngine``
    """
    config_manager = config_manager or ConfigManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info("Starting linknotes API...")

        try:
            engine = BookmarkEngine.build(
                config_manager,
                env_settings=config_manager.load_env_settings(),
                **engine_options,
            )
            await engine.start(verify_remote=verify_remote)
        except Exception as e:
            logger.error(f"Failed to start engine: {e}")
            raise

        app.state.engine = engine

        yield

        logger.info("Shutting down linknotes API...")
        await engine.shutdown()

    app = FastAPI(
        title="linknotes API",
        description="Domain-partitioned bookmarks with notes and gist sync",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^(https?://(localhost|127\.0\.0\.1)(:\d+)?|(chrome|moz)-extension://.*)$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .bookmarks import router as bookmarks_router
    from .health import router as health_router
    from .imports import router as imports_router
    from .sync import router as sync_router

    app.include_router(bookmarks_router, prefix="/api/v1", tags=["bookmarks"])
    app.include_router(sync_router, prefix="/api/v1", tags=["sync"])
    app.include_router(imports_router, prefix="/api/v1", tags=["imports"])
    app.include_router(health_router, prefix="/api/v1", tags=["health"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "linknotes API",
            "version": VERSION,
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app
