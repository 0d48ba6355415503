"""Bookmark operations for interactive callers.

Every successful mutation is followed by exactly one
``SyncOrchestrator.notify_change`` call; failures propagate to the caller
and trigger nothing.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..models.bookmark import Bookmark, BookmarkDraft, Note, NoteDraft
from ..models.store import FileImportResult, ImportResult, SaveResult, StoreStats
from ..utils.time_utils import is_valid_timestamp
from ..utils.url_utils import is_valid_url
from .bookmark_store import BookmarkStore
from .errors import FormatError
from .metadata_fetcher import PageMetadataProvider
from .sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

REQUIRED_RECORD_FIELDS = ("url", "title", "created_at")


def extract_import_records(data: Any) -> List[Any]:
    """Flatten an exported file into a list of raw bookmark records.

    Accepts a bare list, a ``{"bookmarks": [...]}`` document (the synced
    envelope) or a domain map of lists.

    Raises:
        FormatError: If the data is not JSON or has none of these shapes
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise FormatError(f"Import data is not valid JSON: {e}") from e

    if isinstance(data, list):
        return data

    if isinstance(data, dict):
        if isinstance(data.get("bookmarks"), list):
            return data["bookmarks"]

        records: List[Any] = []
        for value in data.values():
            if isinstance(value, list):
                records.extend(value)
        return records

    raise FormatError("Import data must be a list of bookmarks, a bookmarks document or a domain map")


def parse_import_record(record: Any) -> Optional[Bookmark]:
    """Validate one raw record, or return None if it cannot be imported.

    A record needs a non-empty url, title and created_at, an http(s) URL and
    a parseable timestamp.
    """
    if not isinstance(record, dict):
        return None

    values = [record.get(name) for name in REQUIRED_RECORD_FIELDS]
    if not all(isinstance(value, str) and value.strip() for value in values):
        return None

    if not is_valid_url(record["url"].strip()) or not is_valid_timestamp(record["created_at"]):
        return None

    try:
        return Bookmark.model_validate(record)
    except ValidationError:
        return None


class BookmarkManager:
    """Explicit-call facade over the store that signals the sync orchestrator."""

    def __init__(self, store: BookmarkStore, orchestrator: Optional[SyncOrchestrator] = None):
        """Initialize bookmark manager.

        Args:
            store: BookmarkStore instance
            orchestrator: Receives a change signal after each mutation
        """
        self.store = store
        self.orchestrator = orchestrator

    def _changed(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.notify_change()

    async def save_bookmark(self, draft: Union[BookmarkDraft, Dict[str, Any]]) -> SaveResult:
        """Create or merge a bookmark.

        Raises:
            ValidationError: If the draft is invalid
            StorageError: If persisting fails
        """
        result = await self.store.save(draft)
        logger.info(
            f"{'Created' if result.created else 'Updated'} bookmark {result.bookmark.url}"
        )
        self._changed()
        return result

    async def save_page(
        self,
        url: str,
        provider: PageMetadataProvider,
        note: Optional[str] = None,
        title: Optional[str] = None,
    ) -> SaveResult:
        """Bookmark a page using metadata from ``provider``.

        Args:
            url: Page URL
            provider: Source of title/description/favicon/preview image
            note: Optional first note
            title: Overrides the provider's title

        Raises:
            ValidationError: If the note is blank
            StorageError: If persisting fails
        """
        metadata = await provider.get_page_metadata(url)
        draft = BookmarkDraft(
            url=url,
            title=title or metadata.title or url,
            description=metadata.description,
            favicon=metadata.favicon,
            preview_image=metadata.preview_image,
            notes=[NoteDraft(text=note)] if note else [],
        )
        return await self.save_bookmark(draft)

    async def add_note(self, url: str, text: str) -> Note:
        """Raises NotFoundError if the bookmark does not exist."""
        note = await self.store.add_note(url, text)
        self._changed()
        return note

    async def delete_note(self, url: str, note_id: str) -> int:
        """Raises NotFoundError if the bookmark or note does not exist."""
        removed = await self.store.delete_note(url, note_id)
        self._changed()
        return removed

    async def delete_bookmark(self, url: str) -> Bookmark:
        """Raises NotFoundError if the bookmark does not exist."""
        bookmark = await self.store.delete(url)
        self._changed()
        return bookmark

    async def clear_all(self) -> int:
        removed = await self.store.clear_all()
        self._changed()
        return removed

    async def import_bookmarks(self, data: Union[str, Dict[str, Any]], merge: bool = True) -> ImportResult:
        """Import an exported partition map.

        Raises:
            FormatError: If the data is not a valid export
        """
        result = await self.store.import_data(data, merge=merge)
        self._changed()
        return result

    async def import_file(self, data: Any) -> FileImportResult:
        """Import an exported file record by record, skipping invalid ones.

        Each valid record goes through ``BookmarkStore.save``, so an existing
        bookmark is updated and gains only the notes it does not already have.

        Args:
            data: JSON text or decoded data in any shape
                ``extract_import_records`` accepts

        Raises:
            FormatError: If the data is unreadable or holds no valid record
            StorageError: If persisting fails
        """
        valid: List[Bookmark] = []
        invalid = 0
        for record in extract_import_records(data):
            bookmark = parse_import_record(record)
            if bookmark is None:
                invalid += 1
                logger.warning(f"Skipped invalid bookmark record: {record!r:.200}")
            else:
                valid.append(bookmark)

        if not valid:
            raise FormatError("No valid bookmarks found in import data")

        created = 0
        for bookmark in valid:
            draft = BookmarkDraft.from_bookmark(bookmark, notes=self.store.unseen_notes(bookmark))
            result = await self.store.save(draft)
            created += int(result.created)

        logger.info(
            f"Imported {len(valid)} bookmarks from file ({created} new, {invalid} invalid skipped)"
        )
        self._changed()
        return FileImportResult(imported=len(valid), created=created, invalid=invalid)

    def get_bookmark(self, url: str) -> Optional[Bookmark]:
        return self.store.get(url)

    def list_bookmarks(self) -> List[Bookmark]:
        return self.store.list_all_sorted()

    def search(self, query: str) -> List[Bookmark]:
        return self.store.search(query)

    def stats(self) -> StoreStats:
        return self.store.stats()

    def export(self) -> Dict[str, Any]:
        return self.store.export()
