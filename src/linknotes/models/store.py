"""Result and statistics models returned by the bookmark store."""

from typing import List

from pydantic import BaseModel, Field

from .bookmark import Bookmark


class SaveResult(BaseModel):
    """Outcome of a save: whether the URL was new, and the stored record."""

    created: bool
    bookmark: Bookmark


class ImportResult(BaseModel):
    """Outcome of importing a partition map."""

    merge: bool
    added: int = 0
    skipped: int = 0


class DomainCount(BaseModel):
    domain: str
    count: int


class StoreStats(BaseModel):
    """Partition and bookmark counts."""

    total_domains: int = 0
    total_bookmarks: int = 0
    domains: List[DomainCount] = Field(
        default_factory=list, description="Per-domain counts, largest first"
    )


class FileImportResult(BaseModel):
    """Outcome of importing an exported bookmark file record by record."""

    imported: int = Field(0, description="Valid records saved")
    created: int = Field(0, description="Saved records whose URL was new")
    invalid: int = Field(0, description="Records skipped as invalid")
