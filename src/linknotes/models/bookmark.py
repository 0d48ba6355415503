"""Bookmark data models."""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..utils.time_utils import utc_now_iso


def _empty_if_none(value: Any) -> Any:
    return "" if value is None else value


class Note(BaseModel):
    """A free-text note attached to a bookmark.

    ``created_at`` doubles as the note identifier within its bookmark.
    """

    text: str = Field(..., min_length=1, description="Note text")
    created_at: str = Field(
        default_factory=utc_now_iso,
        description="ISO-8601 creation timestamp (note id)",
    )

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Validate note text is not empty or whitespace."""
        if not v.strip():
            raise ValueError("Note text cannot be empty or whitespace")

        return v.strip()


class NoteDraft(BaseModel):
    """Note supplied to a save; timestamp is stamped by the store when absent."""

    text: str = Field(..., min_length=1)
    created_at: Optional[str] = None

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Note text cannot be empty or whitespace")

        return v.strip()


class Bookmark(BaseModel):
    """Stored bookmark record. ``url`` is unique across the whole store."""

    url: str = Field(..., min_length=1, description="The bookmarked URL")
    title: str = Field(default="", description="Bookmark title")
    description: str = Field(default="", description="Page description")
    favicon: str = Field(default="", description="Absolute favicon URL or empty")
    preview_image: str = Field(
        default="",
        validation_alias=AliasChoices("preview_image", "ogImage"),
        description="Absolute preview image URL (og:image) or empty",
    )
    created_at: str = Field(
        default_factory=utc_now_iso,
        description="ISO-8601 timestamp; partition sort key",
    )
    notes: List[Note] = Field(default_factory=list, description="Ordered notes")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "url": "https://github.com/python/cpython",
                "title": "CPython Official Repository",
                "description": "The Python programming language",
                "favicon": "https://github.com/favicon.ico",
                "preview_image": "https://opengraph.githubassets.com/cpython.png",
                "created_at": "2026-02-03T10:30:00.000000Z",
                "notes": [
                    {"text": "Read the contributing guide", "created_at": "2026-02-03T10:31:00.000000Z"}
                ],
            }
        },
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("URL cannot be empty")

        return v.strip()

    @field_validator("title", "description", "favicon", "preview_image", mode="before")
    @classmethod
    def coerce_missing_text(cls, v: Any) -> Any:
        """Older exports store missing text fields as null."""
        return _empty_if_none(v)

    @field_validator("notes", mode="before")
    @classmethod
    def coerce_missing_notes(cls, v: Any) -> Any:
        return [] if v is None else v

    def note_text(self) -> str:
        """All note texts joined by spaces, used for search."""
        return " ".join(note.text for note in self.notes)


class BookmarkDraft(BaseModel):
    """Input to a store save: a bookmark whose timestamps may be missing."""

    url: str = Field(..., min_length=1)
    title: str = ""
    description: str = ""
    favicon: str = ""
    preview_image: str = Field(
        default="",
        validation_alias=AliasChoices("preview_image", "ogImage"),
    )
    created_at: Optional[str] = None
    notes: List[NoteDraft] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("URL cannot be empty")

        return v.strip()

    @field_validator("title", "description", "favicon", "preview_image", mode="before")
    @classmethod
    def coerce_missing_text(cls, v: Any) -> Any:
        return _empty_if_none(v)

    @field_validator("notes", mode="before")
    @classmethod
    def coerce_missing_notes(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def from_bookmark(cls, bookmark: Bookmark, notes: Optional[List[Note]] = None) -> "BookmarkDraft":
        """Build a draft carrying every field of a stored bookmark.

        Args:
            bookmark: Source bookmark
            notes: Notes to carry instead of the bookmark's own notes
        """
        source_notes = bookmark.notes if notes is None else notes
        return cls(
            url=bookmark.url,
            title=bookmark.title,
            description=bookmark.description,
            favicon=bookmark.favicon,
            preview_image=bookmark.preview_image,
            created_at=bookmark.created_at,
            notes=[NoteDraft(text=n.text, created_at=n.created_at) for n in source_notes],
        )


class PageMetadata(BaseModel):
    """Metadata extracted from a fetched page. All-empty means unavailable."""

    title: str = ""
    description: str = ""
    favicon: str = ""
    preview_image: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.description or self.favicon or self.preview_image)
