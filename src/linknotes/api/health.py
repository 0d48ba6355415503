"""Health check endpoint."""

from fastapi import APIRouter, Depends

from ..core.engine import BookmarkEngine
from . import VERSION
from .dependencies import get_engine

router = APIRouter()


@router.get("/health")
async def health_check(engine: BookmarkEngine = Depends(get_engine)):
    """Health check endpoint."""
    status = engine.orchestrator.status()

    return {
        "status": "healthy",
        "version": VERSION,
        "store_path": str(engine.store.store_path) if engine.store.store_path else None,
        "bookmark_count": engine.store.count(),
        "remote_connected": status.authenticated,
        "auto_sync_enabled": status.auto_sync_enabled,
        "import_running": engine.pipeline.is_running,
    }
