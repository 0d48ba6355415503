"""Bookmark and note endpoints."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.engine import BookmarkEngine
from ..models.bookmark import Bookmark, BookmarkDraft, Note, NoteDraft
from ..models.store import FileImportResult, ImportResult, SaveResult, StoreStats
from ..utils.url_utils import URLValidationError, validate_url_scheme
from .dependencies import get_engine, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response Models
class CreateBookmarkRequest(BaseModel):
    """Request model for saving a bookmark."""

    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    favicon: Optional[str] = None
    preview_image: Optional[str] = None
    note: Optional[str] = None
    fetch_metadata: bool = Field(False, description="Fill page details by fetching the URL")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        try:
            validate_url_scheme(v)
        except URLValidationError as e:
            raise ValueError(str(e)) from e
        return v


class AddNoteRequest(BaseModel):
    url: str
    text: str = Field(..., min_length=1)


class ImportRequest(BaseModel):
    """Exported partition map plus merge flag."""

    data: Dict[str, Any]
    merge: bool = True


class ImportFileRequest(BaseModel):
    """Contents of an exported file: a bookmark list, a bookmarks document or a domain map."""

    data: Any


class BookmarkListResponse(BaseModel):
    bookmarks: List[Bookmark]
    total: int


# Endpoints
@router.post("/bookmarks", response_model=SaveResult, status_code=201)
async def save_bookmark(request: CreateBookmarkRequest, engine: BookmarkEngine = Depends(get_engine)):
    """Save a bookmark, merging into an existing record for the same URL."""
    try:
        if request.fetch_metadata:
            return await engine.manager.save_page(
                request.url, engine.fetcher, note=request.note, title=request.title
            )

        draft = BookmarkDraft(
            url=request.url,
            title=request.title or request.url,
            description=request.description,
            favicon=request.favicon,
            preview_image=request.preview_image,
            notes=[NoteDraft(text=request.note)] if request.note else [],
        )
        return await engine.manager.save_bookmark(draft)

    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "save bookmark")


@router.get("/bookmarks", response_model=BookmarkListResponse)
async def list_bookmarks(engine: BookmarkEngine = Depends(get_engine)):
    """List all bookmarks, newest first."""
    bookmarks = engine.manager.list_bookmarks()
    return {"bookmarks": bookmarks, "total": len(bookmarks)}


@router.get("/bookmarks/search", response_model=BookmarkListResponse)
async def search_bookmarks(
    q: str = Query("", description="Case-insensitive search text"),
    engine: BookmarkEngine = Depends(get_engine),
):
    """Search titles, URLs, descriptions and notes."""
    bookmarks = engine.manager.search(q)
    return {"bookmarks": bookmarks, "total": len(bookmarks)}


@router.get("/bookmarks/stats", response_model=StoreStats)
async def bookmark_stats(engine: BookmarkEngine = Depends(get_engine)):
    return engine.manager.stats()


@router.get("/bookmarks/export")
async def export_bookmarks(engine: BookmarkEngine = Depends(get_engine)):
    """Full partition map in the interchange format."""
    return engine.manager.export()


@router.post("/bookmarks/import", response_model=ImportResult)
async def import_bookmarks(request: ImportRequest, engine: BookmarkEngine = Depends(get_engine)):
    try:
        return await engine.manager.import_bookmarks(request.data, merge=request.merge)
    except Exception as e:
        raise to_http_error(e, "import bookmarks")


@router.post("/bookmarks/import-file", response_model=FileImportResult)
async def import_bookmark_file(request: ImportFileRequest, engine: BookmarkEngine = Depends(get_engine)):
    """Import every valid record of an exported file; invalid records are counted."""
    try:
        return await engine.manager.import_file(request.data)
    except Exception as e:
        raise to_http_error(e, "import bookmark file")


@router.delete("/bookmarks")
async def clear_bookmarks(engine: BookmarkEngine = Depends(get_engine)):
    """Remove every bookmark."""
    try:
        removed = await engine.manager.clear_all()
        return {"removed": removed}
    except Exception as e:
        raise to_http_error(e, "clear bookmarks")


@router.get("/bookmarks/item", response_model=Bookmark)
async def get_bookmark(
    url: str = Query(..., description="Bookmark URL"),
    engine: BookmarkEngine = Depends(get_engine),
):
    bookmark = engine.manager.get_bookmark(url)
    if bookmark is None:
        raise HTTPException(status_code=404, detail=f"Bookmark not found: {url}")
    return bookmark


@router.delete("/bookmarks/item", response_model=Bookmark)
async def delete_bookmark(
    url: str = Query(..., description="Bookmark URL"),
    engine: BookmarkEngine = Depends(get_engine),
):
    """Delete a bookmark and return it."""
    try:
        return await engine.manager.delete_bookmark(url)
    except Exception as e:
        raise to_http_error(e, f"delete bookmark {url}")


@router.post("/bookmarks/notes", response_model=Note, status_code=201)
async def add_note(request: AddNoteRequest, engine: BookmarkEngine = Depends(get_engine)):
    try:
        return await engine.manager.add_note(request.url, request.text)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise to_http_error(e, f"add note to {request.url}")


@router.delete("/bookmarks/notes")
async def delete_note(
    url: str = Query(..., description="Bookmark URL"),
    note_id: str = Query(..., description="Note creation timestamp"),
    engine: BookmarkEngine = Depends(get_engine),
):
    try:
        removed = await engine.manager.delete_note(url, note_id)
        return {"removed": removed}
    except Exception as e:
        raise to_http_error(e, f"delete note from {url}")
