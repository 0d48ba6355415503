"""Batch import of Pocket CSV exports with metadata enrichment."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from ..models.bookmark import BookmarkDraft, PageMetadata
from ..utils.time_utils import from_epoch_seconds
from ..utils.url_utils import is_valid_url
from .bookmark_store import BookmarkStore
from .errors import FormatError, ImportInProgressError, LinknotesError
from .metadata_fetcher import MetadataFetcher
from .sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("title", "url", "time_added")

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class ImportRow:
    title: str
    url: str
    time_added: str


@dataclass
class ImportJob:
    total: int
    processed: int = 0
    success: int = 0
    error: int = 0
    skipped: int = 0
    cancelled: bool = False
    status: str = ""
    batches_run: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        return {"success": self.success, "error": self.error, "skipped": self.skipped}

    @property
    def progress(self) -> int:
        """Rows accounted for so far, skipped rows included."""
        return self.processed + self.skipped


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line on commas outside double quotes.

    Quote characters toggle quoting and are dropped.
    """
    values: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)

    values.append("".join(current))
    return values


def _clean_value(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1]
    return value.strip()


def parse_pocket_csv(csv_text: str) -> List[ImportRow]:
    """Parse a Pocket export into import rows.

    Columns are looked up by header name. Rows lacking a title, URL or
    timestamp, or whose URL is not a valid http(s) URL, are dropped.

    Raises:
        FormatError: If a required column is missing from the header
    """
    lines = csv_text.lstrip("\ufeff").splitlines()
    if len(lines) < 2:
        return []

    header = [col.strip().strip('"').strip().lower() for col in lines[0].split(",")]
    missing = [name for name in REQUIRED_COLUMNS if name not in header]
    if missing:
        raise FormatError(
            f"CSV must contain title, url, and time_added columns (missing: {', '.join(missing)})"
        )

    title_index = header.index("title")
    url_index = header.index("url")
    time_index = header.index("time_added")
    last_index = max(title_index, url_index, time_index)

    rows: List[ImportRow] = []
    for line in lines[1:]:
        line = line.strip()
        if not line:
            continue

        columns = split_csv_line(line)
        if len(columns) <= last_index:
            continue

        title = _clean_value(columns[title_index])
        url = _clean_value(columns[url_index])
        time_added = _clean_value(columns[time_index])

        if title and url and time_added and is_valid_url(url):
            rows.append(ImportRow(title=title, url=url, time_added=time_added))

    return rows


class ImportPipeline:
    """Imports rows in fixed-size batches with concurrent metadata fetches.

    Batches run strictly one after another; rows within a batch are fetched
    concurrently. Cancellation is cooperative and checked only between
    batches.
    """

    def __init__(
        self,
        store: BookmarkStore,
        fetcher: MetadataFetcher,
        orchestrator: Optional[SyncOrchestrator] = None,
        batch_size: int = 5,
        batch_pause: float = 0.2,
    ):
        self.store = store
        self.fetcher = fetcher
        self.orchestrator = orchestrator
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.current_job: Optional[ImportJob] = None
        self._running = False
        self._cancel_requested = False

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Stop before the next batch; the current batch is allowed to finish."""
        if self._running:
            logger.info("Import cancellation requested")
        self._cancel_requested = True

    async def import_csv(self, csv_text: str, progress: Optional[ProgressCallback] = None) -> ImportJob:
        """Parse a Pocket CSV export and import its rows."""
        rows = parse_pocket_csv(csv_text)
        logger.info(f"Parsed {len(rows)} importable rows from CSV")
        return await self.run(rows, progress)

    async def run(self, rows: List[ImportRow], progress: Optional[ProgressCallback] = None) -> ImportJob:
        """Import rows, skipping URLs the store already has.

        Args:
            rows: Parsed import rows
            progress: Called with (processed incl. skipped, total, status)
                at the start, after every batch and at the end

        Returns:
            The finished (or cancelled) ImportJob

        Raises:
            ImportInProgressError: If another import is running
        """
        if self._running:
            raise ImportInProgressError("An import is already running")

        job = ImportJob(total=len(rows))
        self.current_job = job
        self._running = True
        self._cancel_requested = False
        if self.orchestrator is not None:
            self.orchestrator.import_in_progress = True

        try:
            await self._process(job, rows, progress)
        finally:
            self._running = False
            if self.orchestrator is not None:
                self.orchestrator.import_in_progress = False

        logger.info(
            f"Import {'cancelled' if job.cancelled else 'finished'}: "
            f"{job.success} imported, {job.error} failed, {job.skipped} skipped"
        )

        if self.orchestrator is not None and job.success > 0 and not job.cancelled:
            self.orchestrator.notify_change()

        return job

    async def _process(self, job: ImportJob, rows: List[ImportRow], progress: Optional[ProgressCallback]) -> None:
        self._report(progress, job, "Starting import...")

        existing_urls = self.store.all_urls()
        pending: List[ImportRow] = []
        for row in rows:
            if row.url in existing_urls:
                job.skipped += 1
                continue
            # A URL repeated within the file is imported once
            existing_urls.add(row.url)
            pending.append(row)

        self._report(progress, job, f"Processing {len(pending)} new bookmarks...")

        batches = [
            pending[i:i + self.batch_size] for i in range(0, len(pending), self.batch_size)
        ]

        for batch_index, batch in enumerate(batches):
            if self._cancel_requested:
                job.cancelled = True
                break

            metadata = await asyncio.gather(*(self.fetcher.fetch(row.url) for row in batch))

            for row, page in zip(batch, metadata):
                if await self._save_row(row, page, job):
                    job.success += 1
                else:
                    job.error += 1

            job.processed += len(batch)
            job.batches_run += 1
            self._report(
                progress,
                job,
                f"Processed batch {batch_index + 1}/{len(batches)} ({job.processed} bookmarks)",
            )

            if batch_index < len(batches) - 1:
                await asyncio.sleep(self.batch_pause)

        self._report(progress, job, "Import cancelled" if job.cancelled else "Import completed!")

    async def _save_row(self, row: ImportRow, page: PageMetadata, job: ImportJob) -> bool:
        try:
            draft = BookmarkDraft(
                url=row.url,
                title=row.title,
                description=page.description,
                favicon=page.favicon,
                preview_image=page.preview_image,
                created_at=from_epoch_seconds(row.time_added),
                notes=[],
            )
            await self.store.save(draft)
            return True
        except (LinknotesError, ValidationError) as e:
            logger.warning(f"Failed to import {row.url}: {e}")
            job.errors.append(f"{row.url}: {e}")
            return False

    def _report(self, progress: Optional[ProgressCallback], job: ImportJob, status: str) -> None:
        job.status = status
        if progress is not None:
            progress(job.progress, job.total, status)
