"""Request-scoped access to the engine and error translation."""

import logging

from fastapi import HTTPException, Request

from ..core.engine import BookmarkEngine
from ..core.errors import (
    FormatError,
    ImportInProgressError,
    NoRemoteDocumentError,
    NotFoundError,
    RemoteError,
    StorageError,
    SyncError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)


def get_engine(request: Request) -> BookmarkEngine:
    """FastAPI dependency returning the engine built by the lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine is not running")
    return engine


def to_http_error(error: Exception, action: str) -> HTTPException:
    """Map an engine error to the HTTP status callers should see."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, FormatError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ImportInProgressError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, UnauthenticatedError):
        return HTTPException(status_code=401, detail=str(error))
    if isinstance(error, NoRemoteDocumentError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, RemoteError):
        return HTTPException(status_code=502, detail=f"Remote error: {error.message}")
    if isinstance(error, SyncError):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=500, detail=f"Storage error: {error}")

    logger.error(f"Failed to {action}: {error}")
    return HTTPException(status_code=500, detail=f"Internal error: {error}")
