"""Domain-partitioned bookmark store with merge and dedup rules."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import ValidationError

from ..models.bookmark import Bookmark, BookmarkDraft, Note
from ..models.store import DomainCount, ImportResult, SaveResult, StoreStats
from ..utils.file_lock import FileLocker, FileLockError
from ..utils.time_utils import bump_timestamp, parse_timestamp, utc_now_iso
from ..utils.url_utils import domain_key
from ..utils.yaml_handler import (
    Partitions,
    YAMLError,
    data_to_partitions,
    load_store_from_file,
    partitions_to_data,
    save_store_to_file,
)
from .errors import FormatError, NotFoundError, StorageError

logger = logging.getLogger(__name__)


def _sort_newest_first(bookmarks: List[Bookmark]) -> None:
    bookmarks.sort(key=lambda b: parse_timestamp(b.created_at), reverse=True)


class BookmarkStore:
    """Owns the partition map: domain -> bookmarks sorted newest first.

    Invariants:
        - a URL appears in at most one partition, at most once
        - every partition is sorted by ``created_at`` descending
        - no partition is empty

    Mutations are computed on a copy, persisted, and only then swapped in, so
    a failed write leaves the in-memory state untouched.
    """

    def __init__(self, store_path: Optional[Path] = None):
        """Initialize bookmark store.

        Args:
            store_path: YAML document to persist to. None keeps the store in memory.
        """
        self.store_path = Path(store_path) if store_path is not None else None
        self.partitions: Partitions = {}
        self._write_lock = asyncio.Lock()

    async def load(self) -> None:
        """Load the persisted document into memory.

        Raises:
            StorageError: If the document exists but cannot be parsed
        """
        if self.store_path is None:
            return

        try:
            self.partitions = await asyncio.to_thread(load_store_from_file, self.store_path)
        except YAMLError as e:
            raise StorageError(f"Failed to load store {self.store_path}: {e}") from e

        logger.info(
            f"Loaded {self.count()} bookmarks in {len(self.partitions)} domains "
            f"from {self.store_path}"
        )

    async def _commit(self, updated: Partitions) -> None:
        """Persist ``updated`` and make it the current state."""
        if self.store_path is not None:
            try:
                async with FileLocker(self.store_path):
                    await asyncio.to_thread(save_store_to_file, updated, self.store_path)
            except FileLockError as e:
                raise StorageError(f"Could not acquire lock for store: {e}") from e
            except YAMLError as e:
                raise StorageError(str(e)) from e

        self.partitions = updated

    # Reads

    def count(self) -> int:
        return sum(len(bookmarks) for bookmarks in self.partitions.values())

    def get(self, url: str) -> Optional[Bookmark]:
        """Find a bookmark by URL through its domain partition."""
        url = url.strip()
        for bookmark in self.partitions.get(domain_key(url), []):
            if bookmark.url == url:
                return bookmark
        return None

    def get_by_domain(self, domain: str) -> List[Bookmark]:
        return list(self.partitions.get(domain, []))

    def all_urls(self) -> Set[str]:
        return {b.url for bookmarks in self.partitions.values() for b in bookmarks}

    def unseen_notes(self, bookmark: Bookmark) -> List[Note]:
        """Notes of ``bookmark`` that the stored record for its URL lacks.

        A note counts as already stored when both its id and text match.
        """
        local = self.get(bookmark.url)
        if local is None:
            return list(bookmark.notes)

        known = {(note.created_at, note.text) for note in local.notes}
        return [note for note in bookmark.notes if (note.created_at, note.text) not in known]

    def list_all_sorted(self) -> List[Bookmark]:
        """All bookmarks across partitions, newest first."""
        flat = [b for bookmarks in self.partitions.values() for b in bookmarks]
        _sort_newest_first(flat)
        return flat

    def search(self, query: str) -> List[Bookmark]:
        """Case-insensitive substring search over title, description, URL and notes.

        Results keep store order. A blank query matches everything.
        """
        term = (query or "").strip().lower()
        results = []

        for bookmarks in self.partitions.values():
            for bookmark in bookmarks:
                if not term:
                    results.append(bookmark)
                    continue

                haystacks = (
                    bookmark.title,
                    bookmark.description,
                    bookmark.url,
                    bookmark.note_text(),
                )
                if any(term in text.lower() for text in haystacks):
                    results.append(bookmark)

        return results

    def stats(self) -> StoreStats:
        domains = [
            DomainCount(domain=domain, count=len(bookmarks))
            for domain, bookmarks in self.partitions.items()
        ]
        domains.sort(key=lambda d: d.count, reverse=True)

        return StoreStats(
            total_domains=len(self.partitions),
            total_bookmarks=self.count(),
            domains=domains,
        )

    def export(self) -> Dict[str, List[Dict[str, Any]]]:
        """The full partition map as plain data."""
        return partitions_to_data(self.partitions)

    def export_json(self) -> str:
        return json.dumps(self.export(), indent=2, ensure_ascii=False)

    # Mutations

    async def save(self, draft: Union[BookmarkDraft, Dict[str, Any]]) -> SaveResult:
        """Insert a bookmark, or merge into the existing one with the same URL.

        On merge, scalar fields are overwritten from the draft and the draft's
        notes are appended to the existing ones. ``created_at`` falls back to
        the existing value, then to now.

        Args:
            draft: Bookmark fields; timestamps may be omitted

        Returns:
            SaveResult telling whether the record was created

        Raises:
            ValidationError: If a dict draft is invalid
            StorageError: If persisting fails
        """
        if not isinstance(draft, BookmarkDraft):
            draft = BookmarkDraft.model_validate(draft)

        async with self._write_lock:
            domain = domain_key(draft.url)
            now = utc_now_iso()
            bookmarks = list(self.partitions.get(domain, []))
            new_notes = [
                Note(text=note.text, created_at=note.created_at or now) for note in draft.notes
            ]

            index = next((i for i, b in enumerate(bookmarks) if b.url == draft.url), None)

            if index is None:
                bookmark = Bookmark(
                    url=draft.url,
                    title=draft.title,
                    description=draft.description,
                    favicon=draft.favicon,
                    preview_image=draft.preview_image,
                    created_at=draft.created_at or now,
                    notes=new_notes,
                )
                bookmarks.append(bookmark)
            else:
                existing = bookmarks[index]
                bookmark = existing.model_copy(
                    update={
                        "title": draft.title,
                        "description": draft.description,
                        "favicon": draft.favicon,
                        "preview_image": draft.preview_image,
                        "created_at": draft.created_at or existing.created_at or now,
                        "notes": existing.notes + new_notes,
                    }
                )
                bookmarks[index] = bookmark

            _sort_newest_first(bookmarks)
            await self._commit({**self.partitions, domain: bookmarks})

        created = index is None
        logger.debug(f"{'Created' if created else 'Updated'} bookmark {draft.url}")
        return SaveResult(created=created, bookmark=bookmark)

    async def add_note(self, url: str, text: str) -> Note:
        """Append a note to an existing bookmark.

        The note timestamp is bumped past any identical one on the same
        bookmark so note ids stay unique.

        Raises:
            NotFoundError: If the URL is not stored
            ValidationError: If the text is blank
        """
        async with self._write_lock:
            domain, bookmarks, index = self._locate(url)
            existing = bookmarks[index]

            taken = {note.created_at for note in existing.notes}
            created_at = utc_now_iso()
            while created_at in taken:
                created_at = bump_timestamp(created_at)

            note = Note(text=text, created_at=created_at)
            bookmarks[index] = existing.model_copy(update={"notes": existing.notes + [note]})
            await self._commit({**self.partitions, domain: bookmarks})

        logger.debug(f"Added note {note.created_at} to {url}")
        return note

    async def delete_note(self, url: str, note_id: str) -> int:
        """Remove every note of a bookmark whose id equals ``note_id``.

        Returns:
            Number of notes removed (normally one)

        Raises:
            NotFoundError: If the URL or the note is not stored
        """
        async with self._write_lock:
            domain, bookmarks, index = self._locate(url)
            existing = bookmarks[index]

            remaining = [note for note in existing.notes if note.created_at != note_id]
            removed = len(existing.notes) - len(remaining)
            if removed == 0:
                raise NotFoundError(f"Note not found: {note_id}")

            bookmarks[index] = existing.model_copy(update={"notes": remaining})
            await self._commit({**self.partitions, domain: bookmarks})

        return removed

    async def delete(self, url: str) -> Bookmark:
        """Remove a bookmark, dropping its partition if it becomes empty.

        Raises:
            NotFoundError: If the URL is not stored
        """
        async with self._write_lock:
            domain, bookmarks, index = self._locate(url)
            removed = bookmarks.pop(index)

            updated = dict(self.partitions)
            if bookmarks:
                updated[domain] = bookmarks
            else:
                del updated[domain]

            await self._commit(updated)

        logger.info(f"Deleted bookmark {url}")
        return removed

    async def clear_all(self) -> int:
        """Empty the store. Returns the number of bookmarks removed."""
        async with self._write_lock:
            removed = self.count()
            await self._commit({})

        logger.warning(f"Cleared all bookmarks ({removed} removed)")
        return removed

    async def import_data(self, data: Union[str, Dict[str, Any]], merge: bool = True) -> ImportResult:
        """Import a partition map (as data or JSON text).

        Without merge the store is replaced wholesale. With merge, partitions
        missing locally are adopted; otherwise incoming bookmarks whose URL is
        already stored are dropped (first writer wins, notes are not merged)
        and the partition is re-sorted.

        Records are filed under the domain of their own URL whatever key the
        data uses, and a URL repeated in the data is kept once.

        Raises:
            FormatError: If the data is not a valid partition map
            StorageError: If persisting fails
        """
        incoming = self._parse_import(data)

        async with self._write_lock:
            if not merge:
                updated = {}
                seen: Set[str] = set()
                skipped = 0
                for domain, items in incoming.items():
                    for bookmark in items:
                        if bookmark.url in seen:
                            skipped += 1
                            continue
                        seen.add(bookmark.url)
                        updated.setdefault(domain, []).append(bookmark)
                for items in updated.values():
                    _sort_newest_first(items)
                added = len(seen)
                await self._commit(updated)
                logger.info(f"Replaced store with {added} imported bookmarks")
                return ImportResult(merge=False, added=added, skipped=skipped)

            updated = {domain: list(items) for domain, items in self.partitions.items()}
            known_urls = self.all_urls()
            added = 0
            skipped = 0

            for domain, items in incoming.items():
                fresh: List[Bookmark] = []
                for bookmark in items:
                    if bookmark.url in known_urls:
                        skipped += 1
                        continue
                    known_urls.add(bookmark.url)
                    fresh.append(bookmark)

                if not fresh:
                    continue

                added += len(fresh)
                updated[domain] = updated.get(domain, []) + fresh
                _sort_newest_first(updated[domain])

            await self._commit(updated)

        logger.info(f"Merged import: {added} added, {skipped} already present")
        return ImportResult(merge=True, added=added, skipped=skipped)

    def _locate(self, url: str):
        """Return (domain, copy of partition list, index) for a stored URL."""
        url = url.strip()
        domain = domain_key(url)
        bookmarks = list(self.partitions.get(domain, []))

        for index, bookmark in enumerate(bookmarks):
            if bookmark.url == url:
                return domain, bookmarks, index

        raise NotFoundError(f"Bookmark not found: {url}")

    @staticmethod
    def _parse_import(data: Union[str, Dict[str, Any]]) -> Partitions:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise FormatError(f"Import data is not valid JSON: {e}") from e

        try:
            partitions = data_to_partitions(data)
        except (ValueError, ValidationError) as e:
            raise FormatError(f"Import data is not a valid bookmark export: {e}") from e

        # Partition keys in the data are not trusted; records are re-keyed by URL
        regrouped: Partitions = {}
        for items in partitions.values():
            for bookmark in items:
                regrouped.setdefault(domain_key(bookmark.url), []).append(bookmark)
        return regrouped
