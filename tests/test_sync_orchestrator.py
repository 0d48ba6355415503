"""Tests for debounced and manual synchronization."""

import asyncio
from unittest.mock import MagicMock

import pytest

from linknotes.core.bookmark_manager import BookmarkManager
from linknotes.core.bookmark_store import BookmarkStore
from linknotes.core.errors import RemoteError, UnauthenticatedError
from linknotes.core.sync_orchestrator import SyncOrchestrator
from linknotes.models.bookmark import Bookmark, BookmarkDraft, Note, NoteDraft
from linknotes.models.sync import PushResult, SyncDocument, SyncSettings, SyncState

DEBOUNCE = 0.05


class FakeRemote:
    """Records pushes; serves a fixed document on pull."""

    def __init__(self, authenticated=True, fail_push=False):
        self.state = SyncState(access_token="token" if authenticated else None)
        self.pushed = []
        self.remote_document = SyncDocument()
        self.fail_push = fail_push
        self.persisted = 0

    @property
    def is_authenticated(self):
        return bool(self.state.access_token)

    @property
    def has_remote_document(self):
        return bool(self.state.remote_document_id)

    async def push(self, document):
        if self.fail_push:
            raise RemoteError("Remote API error: 500 - boom", 500)
        self.pushed.append(document)
        self.state.remote_document_id = "gist1"
        return PushResult(document_id="gist1")

    async def pull(self):
        return self.remote_document

    def persist_state(self):
        self.persisted += 1


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def orchestrator(remote, notifier):
    return SyncOrchestrator(
        store=BookmarkStore(),
        client=remote,
        notifier=notifier,
        debounce_delay=DEBOUNCE,
    )


@pytest.fixture
def manager(orchestrator):
    return BookmarkManager(orchestrator.store, orchestrator)


class TestDebounce:
    """Test change coalescing."""

    @pytest.mark.asyncio
    async def test_rapid_saves_push_once_with_final_state(self, manager, orchestrator, remote):
        for i in range(10):
            await manager.save_bookmark(BookmarkDraft(url=f"https://a.com/{i}", title=str(i)))

        assert remote.pushed == []
        assert orchestrator.sync_pending

        await asyncio.sleep(DEBOUNCE * 4)

        assert len(remote.pushed) == 1
        assert {b.url for b in remote.pushed[0].bookmarks} == {
            f"https://a.com/{i}" for i in range(10)
        }
        assert not orchestrator.sync_pending
        assert remote.state.last_sync_time is not None

    @pytest.mark.asyncio
    async def test_success_notification(self, manager, notifier):
        await manager.save_bookmark(BookmarkDraft(url="https://a.com/1"))
        await asyncio.sleep(DEBOUNCE * 4)

        notifier.notify.assert_called_once_with("Auto-synced 1 bookmarks", "success")

    @pytest.mark.asyncio
    async def test_no_push_when_unauthenticated(self, notifier):
        remote = FakeRemote(authenticated=False)
        orchestrator = SyncOrchestrator(BookmarkStore(), remote, debounce_delay=DEBOUNCE)

        assert orchestrator.notify_change() is False
        await asyncio.sleep(DEBOUNCE * 2)
        assert remote.pushed == []

    @pytest.mark.asyncio
    async def test_no_push_when_disabled(self, orchestrator, remote):
        saved = []
        orchestrator._settings_saver = saved.append

        orchestrator.set_auto_sync(False)

        assert orchestrator.notify_change() is False
        assert saved == [SyncSettings(auto_sync_enabled=False)]

    @pytest.mark.asyncio
    async def test_disabling_cancels_pending_push(self, orchestrator, remote):
        orchestrator.notify_change()

        orchestrator.set_auto_sync(False)
        await asyncio.sleep(DEBOUNCE * 2)

        assert remote.pushed == []

    @pytest.mark.asyncio
    async def test_no_push_during_import(self, orchestrator, remote):
        orchestrator.import_in_progress = True

        assert orchestrator.notify_change() is False
        await asyncio.sleep(DEBOUNCE * 2)
        assert remote.pushed == []

    @pytest.mark.asyncio
    async def test_failed_auto_push_is_logged_not_raised(self, notifier, caplog):
        remote = FakeRemote(fail_push=True)
        orchestrator = SyncOrchestrator(
            BookmarkStore(), remote, notifier=notifier, debounce_delay=DEBOUNCE
        )

        orchestrator.notify_change()
        await asyncio.sleep(DEBOUNCE * 4)

        assert "Auto-sync failed" in caplog.text
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_flush_pushes_pending_change_immediately(self, orchestrator, remote):
        orchestrator.debounce_delay = 60
        orchestrator.notify_change()

        await orchestrator.flush()

        assert len(remote.pushed) == 1
        assert not orchestrator.sync_pending


class TestManualSync:
    """Test sync_up and sync_down."""

    @pytest.mark.asyncio
    async def test_sync_up_cancels_pending_and_pushes(self, manager, orchestrator, remote):
        await manager.save_bookmark(BookmarkDraft(url="https://a.com/1"))

        result = await orchestrator.sync_up()
        await asyncio.sleep(DEBOUNCE * 2)

        assert result.document_id == "gist1"
        assert len(remote.pushed) == 1

    @pytest.mark.asyncio
    async def test_sync_up_unauthenticated(self):
        orchestrator = SyncOrchestrator(BookmarkStore(), FakeRemote(authenticated=False))

        with pytest.raises(UnauthenticatedError):
            await orchestrator.sync_up()

    @pytest.mark.asyncio
    async def test_sync_down_merges_notes_without_duplicates(self, orchestrator, remote):
        store = orchestrator.store
        shared = Note(text="shared", created_at="2024-01-01T00:00:00.000000Z")
        await store.save(
            BookmarkDraft(
                url="https://a.com/1",
                title="Local",
                notes=[NoteDraft(text=shared.text, created_at=shared.created_at),
                       NoteDraft(text="local only", created_at="2024-01-02T00:00:00.000000Z")],
            )
        )
        remote.remote_document = SyncDocument(
            bookmarks=[
                Bookmark(
                    url="https://a.com/1",
                    title="Remote",
                    notes=[shared, Note(text="remote only", created_at="2024-01-03T00:00:00.000000Z")],
                ),
                Bookmark(url="https://b.com/1", title="New"),
            ]
        )

        received = await orchestrator.sync_down()

        assert received == 2
        merged = store.get("https://a.com/1")
        assert merged.title == "Remote"
        assert [n.text for n in merged.notes] == ["shared", "local only", "remote only"]
        assert store.get("https://b.com/1") is not None
        assert remote.state.last_sync_time is not None
        assert not orchestrator.sync_pending

    @pytest.mark.asyncio
    async def test_status(self, orchestrator):
        status = orchestrator.status()

        assert status.authenticated is True
        assert status.auto_sync_enabled is True
        assert status.sync_pending is False
