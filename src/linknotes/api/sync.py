"""Remote sync endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.engine import BookmarkEngine
from ..models.sync import PushResult, RemoteInfo, SyncStatus
from .dependencies import get_engine, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectRequest(BaseModel):
    token: str = Field(..., min_length=1, description="GitHub token with gist scope")


class AutoSyncRequest(BaseModel):
    enabled: bool


@router.get("/sync/status", response_model=SyncStatus)
async def sync_status(engine: BookmarkEngine = Depends(get_engine)):
    return engine.orchestrator.status()


@router.post("/sync/connect", response_model=SyncStatus)
async def connect(request: ConnectRequest, engine: BookmarkEngine = Depends(get_engine)):
    """Validate and store a token."""
    if not await engine.client.connect(request.token):
        raise HTTPException(status_code=401, detail="Token was rejected by the remote")
    return engine.orchestrator.status()


@router.post("/sync/disconnect", response_model=SyncStatus)
async def disconnect(engine: BookmarkEngine = Depends(get_engine)):
    """Forget the token and remote document id."""
    engine.orchestrator.cancel_pending()
    engine.client.disconnect()
    return engine.orchestrator.status()


@router.post("/sync/up", response_model=PushResult)
async def sync_up(engine: BookmarkEngine = Depends(get_engine)):
    """Push the whole store now."""
    try:
        return await engine.orchestrator.sync_up()
    except Exception as e:
        raise to_http_error(e, "push bookmarks")


@router.post("/sync/down")
async def sync_down(engine: BookmarkEngine = Depends(get_engine)):
    """Pull the remote document and merge it into the store."""
    try:
        received = await engine.orchestrator.sync_down()
        return {"received": received, "total": engine.store.count()}
    except Exception as e:
        raise to_http_error(e, "pull bookmarks")


@router.get("/sync/remote", response_model=Optional[RemoteInfo])
async def remote_info(engine: BookmarkEngine = Depends(get_engine)):
    """Last-modified details of the remote document, if one is linked."""
    try:
        return await engine.client.check_for_updates()
    except Exception as e:
        raise to_http_error(e, "check remote document")


@router.put("/sync/auto", response_model=SyncStatus)
async def set_auto_sync(request: AutoSyncRequest, engine: BookmarkEngine = Depends(get_engine)):
    engine.orchestrator.set_auto_sync(request.enabled)
    return engine.orchestrator.status()
