"""Synchronization state and remote document models."""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..utils.time_utils import utc_now_iso
from .bookmark import Bookmark

DOCUMENT_VERSION = "1.0"


class SyncState(BaseModel):
    """Credentials and bookkeeping for the remote document.

    The token is present iff the user is connected; everything is cleared on
    disconnect.
    """

    access_token: Optional[str] = Field(None, description="Opaque bearer token")
    remote_document_id: Optional[str] = Field(
        None, description="Remote document id, set by the first successful push"
    )
    last_sync_time: Optional[str] = Field(None, description="ISO-8601 time of last sync")


class SyncSettings(BaseModel):
    """User preferences persisted independently of the bookmark store."""

    auto_sync_enabled: bool = Field(default=True, description="Push automatically after changes")


class SyncDocument(BaseModel):
    """Envelope pushed to and pulled from the remote document."""

    bookmarks: List[Bookmark] = Field(default_factory=list)
    exported_at: str = Field(default_factory=utc_now_iso)
    version: str = Field(default=DOCUMENT_VERSION)


class PushResult(BaseModel):
    document_id: str
    url: Optional[str] = None
    updated_at: Optional[str] = None


class RemoteInfo(BaseModel):
    """Lightweight view of the remote document for update checks."""

    updated_at: Optional[str] = None
    url: Optional[str] = None


class SyncStatus(BaseModel):
    authenticated: bool
    has_remote_document: bool
    remote_document_id: Optional[str] = None
    auto_sync_enabled: bool
    last_sync_time: Optional[str] = None
    sync_pending: bool = False
    import_in_progress: bool = False
