"""Error taxonomy shared by the store, sync and import layers."""

from typing import Optional


class LinknotesError(Exception):
    """Base class for engine errors."""

    pass


class NotFoundError(LinknotesError):
    """Operation targets a bookmark or note absent from the store."""

    pass


class StorageError(LinknotesError):
    """Persisted store could not be read or written."""

    pass


class FormatError(LinknotesError):
    """Document does not match the expected bookmark schema."""

    pass


class ImportInProgressError(LinknotesError):
    """A batch import is already running."""

    pass


class SyncError(LinknotesError):
    """Synchronization with the remote document failed."""

    pass


class UnauthenticatedError(SyncError):
    """Sync operation attempted without a token."""

    pass


class NoRemoteDocumentError(SyncError):
    """Pull attempted before any document was pushed or linked."""

    pass


class RemoteError(SyncError):
    """Non-success response from the remote API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
