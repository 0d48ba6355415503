"""Tests for bookmark models and timestamp/URL helpers."""

import pytest
from pydantic import ValidationError

from linknotes.models.bookmark import Bookmark, BookmarkDraft, Note, PageMetadata
from linknotes.utils.time_utils import (
    bump_timestamp,
    from_epoch_seconds,
    is_valid_timestamp,
    parse_timestamp,
    utc_now_iso,
)
from linknotes.utils.url_utils import UNKNOWN_DOMAIN, domain_key, is_valid_url


class TestNoteModel:
    """Test Note validation."""

    def test_note_text_is_stripped(self):
        note = Note(text="  remember this  ")
        assert note.text == "remember this"
        assert note.created_at.endswith("Z")

    def test_blank_note_rejected(self):
        with pytest.raises(ValidationError):
            Note(text="   ")


class TestBookmarkModel:
    """Test Bookmark validation and defaults."""

    def test_minimal_bookmark(self):
        bookmark = Bookmark(url="https://example.com/a")

        assert bookmark.title == ""
        assert bookmark.notes == []
        assert bookmark.created_at

    def test_null_fields_from_older_exports(self):
        """Test null text fields and notes load as empty values."""
        bookmark = Bookmark.model_validate(
            {
                "url": "https://example.com/a",
                "title": None,
                "description": None,
                "favicon": None,
                "notes": None,
            }
        )

        assert bookmark.description == ""
        assert bookmark.favicon == ""
        assert bookmark.notes == []

    def test_og_image_alias_accepted(self):
        bookmark = Bookmark.model_validate(
            {"url": "https://example.com/a", "ogImage": "https://example.com/i.png"}
        )

        assert bookmark.preview_image == "https://example.com/i.png"
        assert bookmark.model_dump()["preview_image"] == "https://example.com/i.png"

    def test_empty_url_rejected(self):
        with pytest.raises(ValidationError):
            Bookmark(url="   ")

    def test_note_text_joins_notes(self):
        bookmark = Bookmark(
            url="https://example.com/a",
            notes=[Note(text="first"), Note(text="second")],
        )
        assert bookmark.note_text() == "first second"

    def test_draft_from_bookmark_keeps_timestamps(self):
        note = Note(text="kept", created_at="2024-01-01T00:00:00.000000Z")
        bookmark = Bookmark(
            url="https://example.com/a",
            title="A",
            created_at="2024-01-02T00:00:00.000000Z",
            notes=[note],
        )

        draft = BookmarkDraft.from_bookmark(bookmark)

        assert draft.created_at == "2024-01-02T00:00:00.000000Z"
        assert draft.notes[0].created_at == "2024-01-01T00:00:00.000000Z"
        assert BookmarkDraft.from_bookmark(bookmark, notes=[]).notes == []

    def test_page_metadata_empty(self):
        assert PageMetadata().is_empty
        assert not PageMetadata(favicon="https://example.com/favicon.ico").is_empty


class TestTimeUtils:
    """Test timestamp helpers."""

    def test_parse_round_trips_now(self):
        now = utc_now_iso()
        assert parse_timestamp(now).tzinfo is not None

    def test_unparseable_sorts_oldest(self):
        assert parse_timestamp("not a date") < parse_timestamp("1970-01-01T00:00:00Z")
        assert parse_timestamp("") == parse_timestamp("garbage")

    def test_bump_adds_one_microsecond(self):
        assert bump_timestamp("2024-01-01T00:00:00.000000Z") == "2024-01-01T00:00:00.000001Z"

    def test_from_epoch_seconds(self):
        assert from_epoch_seconds("1700000000") == "2023-11-14T22:13:20.000000Z"

    def test_from_epoch_seconds_invalid_falls_back_to_now(self):
        before = parse_timestamp(utc_now_iso())
        assert parse_timestamp(from_epoch_seconds("soon")) >= before
        assert parse_timestamp(from_epoch_seconds("")) >= before

    def test_is_valid_timestamp(self):
        assert is_valid_timestamp("2024-01-01T00:00:00.123Z")
        assert is_valid_timestamp("2024-01-01T00:00:00+02:00")
        assert not is_valid_timestamp("yesterday")
        assert not is_valid_timestamp("  ")


class TestUrlUtils:
    """Test URL validation and partition keys."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.GitHub.com/python/cpython", "github.com"),
            ("http://docs.python.org/3/", "docs.python.org"),
            ("https://example.com:8443/x", "example.com"),
            ("not a url", UNKNOWN_DOMAIN),
            ("", UNKNOWN_DOMAIN),
        ],
    )
    def test_domain_key(self, url, expected):
        assert domain_key(url) == expected

    def test_is_valid_url(self):
        assert is_valid_url("https://example.com/page")
        assert not is_valid_url("ftp://example.com/file")
        assert not is_valid_url("https://exa mple.com")
        assert not is_valid_url("example.com")
        assert not is_valid_url("https://example.com:99999/")
