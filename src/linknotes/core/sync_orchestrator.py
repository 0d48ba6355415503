"""Debounced push and manual push/pull of the bookmark store."""

import asyncio
import logging
from typing import Callable, Optional, Set

from ..models.bookmark import BookmarkDraft
from ..models.sync import PushResult, SyncDocument, SyncSettings, SyncStatus
from ..utils.time_utils import utc_now_iso
from .bookmark_store import BookmarkStore
from .errors import SyncError, UnauthenticatedError
from .notifications import LoggingNotifier, NotificationSink
from .remote_sync import RemoteSyncClient

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Decides when to push and pull.

    Local mutations call ``notify_change``; a burst of them collapses into a
    single push that runs ``debounce_delay`` seconds after the last one and
    reflects the store as it is at that moment. Only one debounce timer is
    ever outstanding and only one sync operation runs at a time.
    """

    def __init__(
        self,
        store: BookmarkStore,
        client: RemoteSyncClient,
        settings: Optional[SyncSettings] = None,
        settings_saver: Optional[Callable[[SyncSettings], None]] = None,
        notifier: Optional[NotificationSink] = None,
        debounce_delay: float = 3.0,
    ):
        self.store = store
        self.client = client
        self.settings = settings or SyncSettings()
        self._settings_saver = settings_saver
        self.notifier = notifier or LoggingNotifier()
        self.debounce_delay = debounce_delay

        self.import_in_progress = False
        self._generation = 0
        self._timer: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._sync_lock = asyncio.Lock()

    @property
    def auto_sync_enabled(self) -> bool:
        return self.settings.auto_sync_enabled

    @property
    def last_sync_time(self) -> Optional[str]:
        return self.client.state.last_sync_time

    @property
    def sync_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def set_auto_sync(self, enabled: bool) -> None:
        """Toggle automatic pushes; disabling drops any pending one."""
        self.settings = self.settings.model_copy(update={"auto_sync_enabled": enabled})
        if self._settings_saver is not None:
            self._settings_saver(self.settings)

        if not enabled:
            self.cancel_pending()

        logger.info(f"Auto-sync {'enabled' if enabled else 'disabled'}")

    def notify_change(self) -> bool:
        """Signal a successful local mutation.

        Must be called from within the running event loop.

        Returns:
            True if a debounced push was (re)scheduled
        """
        if self.import_in_progress:
            logger.debug("Auto-sync skipped: import in progress")
            return False

        if not self.auto_sync_enabled or not self.client.is_authenticated:
            return False

        self.cancel_pending()
        self._generation += 1
        self._timer = self._spawn(self._debounced_push(self._generation))
        return True

    def cancel_pending(self) -> None:
        """Cancel the debounce timer if it has not fired yet."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def flush(self) -> None:
        """Run a pending debounced push now and wait for in-flight pushes."""
        if self.sync_pending:
            self.cancel_pending()
            self._generation += 1
            await self._auto_push()

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def build_document(self) -> SyncDocument:
        """Envelope of the current store contents."""
        return SyncDocument(bookmarks=self.store.list_all_sorted(), exported_at=utc_now_iso())

    async def sync_up(self) -> PushResult:
        """Push immediately, bypassing the debounce.

        Raises:
            UnauthenticatedError: If not connected
            SyncError: If the push fails
        """
        if not self.client.is_authenticated:
            raise UnauthenticatedError("Connect to the remote before syncing")

        self.cancel_pending()
        result = await self._push_current()
        self.notifier.notify(f"Uploaded {self.store.count()} bookmarks", "success")
        return result

    async def sync_down(self) -> int:
        """Pull the remote document and save every bookmark in it locally.

        Each remote bookmark goes through ``BookmarkStore.save``, so local
        notes survive; remote notes already present locally (same id and
        text) are not appended a second time.

        Returns:
            Number of bookmarks received

        Raises:
            UnauthenticatedError: If not connected
            SyncError: If the pull fails
        """
        if not self.client.is_authenticated:
            raise UnauthenticatedError("Connect to the remote before syncing")

        async with self._sync_lock:
            document = await self.client.pull()

            for remote in document.bookmarks:
                notes = self.store.unseen_notes(remote)
                await self.store.save(BookmarkDraft.from_bookmark(remote, notes=notes))

            self._record_sync()

        count = len(document.bookmarks)
        logger.info(f"Downloaded {count} bookmarks from remote")
        self.notifier.notify(f"Downloaded {count} bookmarks", "success")
        return count

    def status(self) -> SyncStatus:
        return SyncStatus(
            authenticated=self.client.is_authenticated,
            has_remote_document=self.client.has_remote_document,
            remote_document_id=self.client.state.remote_document_id,
            auto_sync_enabled=self.auto_sync_enabled,
            last_sync_time=self.last_sync_time,
            sync_pending=self.sync_pending,
            import_in_progress=self.import_in_progress,
        )

    async def _debounced_push(self, generation: int) -> None:
        await asyncio.sleep(self.debounce_delay)

        if generation != self._generation:
            return

        # Fired: from here on a new change schedules a fresh timer instead of
        # cancelling this push mid-request.
        self._timer = None
        await self._auto_push()

    async def _auto_push(self) -> None:
        try:
            await self._push_current()
        except SyncError as e:
            logger.warning(f"Auto-sync failed: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected auto-sync failure: {e}", exc_info=True)
            return

        count = self.store.count()
        logger.info(f"Auto-synced {count} bookmarks")
        self.notifier.notify(f"Auto-synced {count} bookmarks", "success")

    async def _push_current(self) -> PushResult:
        async with self._sync_lock:
            result = await self.client.push(self.build_document())
            self._record_sync()
            return result

    def _record_sync(self) -> None:
        self.client.state.last_sync_time = utc_now_iso()
        self.client.persist_state()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
