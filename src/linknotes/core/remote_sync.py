"""Client for the single remote document (a private GitHub gist)."""

import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from ..models.sync import PushResult, RemoteInfo, SyncDocument, SyncState
from .errors import FormatError, NoRemoteDocumentError, RemoteError, UnauthenticatedError

logger = logging.getLogger(__name__)

GIST_DESCRIPTION = "linknotes - Bookmarks Backup"
GITHUB_ACCEPT = "application/vnd.github.v3+json"


class RemoteSyncClient:
    """Authenticated wrapper around one opaque remote document.

    Holds no bookmark state; only the token, the document id and the last
    sync time (``SyncState``). Every change to that state is handed to
    ``state_saver`` so it survives restarts.
    """

    def __init__(
        self,
        state: Optional[SyncState] = None,
        state_saver: Optional[Callable[[SyncState], None]] = None,
        base_url: str = "https://api.github.com",
        filename: str = "bookmarks.json",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.state = state or SyncState()
        self._state_saver = state_saver
        self.base_url = base_url.rstrip("/")
        self.filename = filename
        self.timeout = timeout
        self._transport = transport

    @property
    def is_authenticated(self) -> bool:
        return bool(self.state.access_token)

    @property
    def has_remote_document(self) -> bool:
        return bool(self.state.remote_document_id)

    async def initialize(self, fallback_token: Optional[str] = None) -> None:
        """Validate the stored token at startup, clearing it if rejected.

        Args:
            fallback_token: Token from the environment, tried when none is stored
        """
        if not self.state.access_token and fallback_token:
            if await self.connect(fallback_token):
                logger.info("Connected to remote using token from environment")
            return

        if self.state.access_token and not await self.verify_token():
            logger.warning("Stored access token was rejected; clearing sync credentials")
            self.disconnect()

    async def connect(self, token: str) -> bool:
        """Store ``token`` if the remote accepts it.

        Returns:
            True if the token was verified and stored
        """
        token = (token or "").strip()
        if not token:
            return False

        previous = self.state.access_token
        self.state.access_token = token

        if not await self.verify_token():
            self.state.access_token = previous
            return False

        self.persist_state()
        logger.info("Connected to remote document store")
        return True

    def disconnect(self) -> None:
        """Forget token and document id locally. Nothing is deleted remotely."""
        self.state = SyncState()
        self.persist_state()
        logger.info("Disconnected from remote document store")

    def persist_state(self) -> None:
        if self._state_saver is not None:
            self._state_saver(self.state)

    async def verify_token(self) -> bool:
        """Check the token with a lightweight authenticated GET. Never raises."""
        if not self.state.access_token:
            return False

        try:
            async with self._client() as client:
                response = await client.get("/user")
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Error verifying token: {e}")
            return False

    async def get_user_info(self) -> Dict[str, Any]:
        """Profile of the token owner.

        Raises:
            UnauthenticatedError: If no token is stored
            RemoteError: On non-success responses or network failure
        """
        self._require_token()
        response = await self._request("GET", "/user")
        return response.json()

    async def push(self, document: SyncDocument) -> PushResult:
        """Create or overwrite the remote document (last write wins).

        Raises:
            UnauthenticatedError: If no token is stored
            RemoteError: On non-success responses or network failure
            FormatError: If the response body is not a JSON object
        """
        self._require_token()

        payload = {
            "description": GIST_DESCRIPTION,
            "public": False,
            "files": {self.filename: {"content": document.model_dump_json(indent=2)}},
        }

        if self.state.remote_document_id:
            response = await self._request(
                "PATCH", f"/gists/{self.state.remote_document_id}", json=payload
            )
        else:
            response = await self._request("POST", "/gists", json=payload)

        data = self._json_object(response)
        document_id = str(data.get("id") or self.state.remote_document_id or "")
        if not document_id:
            raise RemoteError("Remote did not return a document id", response.status_code)

        if self.state.remote_document_id != document_id:
            self.state.remote_document_id = document_id
            self.persist_state()
            logger.info(f"Created remote document {document_id}")

        return PushResult(
            document_id=document_id,
            url=data.get("html_url"),
            updated_at=data.get("updated_at"),
        )

    async def pull(self) -> SyncDocument:
        """Fetch and parse the remote document.

        Raises:
            UnauthenticatedError: If no token is stored (no request is made)
            NoRemoteDocumentError: If no document id is known (no request is made)
            RemoteError: On non-success responses or network failure
            FormatError: If the document content is missing or invalid
        """
        self._require_token()
        if not self.state.remote_document_id:
            raise NoRemoteDocumentError("No remote document yet; push first")

        response = await self._request("GET", f"/gists/{self.state.remote_document_id}")
        gist = self._json_object(response)

        files = gist.get("files")
        file_entry = files.get(self.filename) if isinstance(files, dict) else None
        if not isinstance(file_entry, dict):
            raise FormatError(f"Bookmark data file '{self.filename}' not found in remote document")

        content = file_entry.get("content")
        if file_entry.get("truncated") and file_entry.get("raw_url"):
            # Large files are truncated in the gist payload
            raw_response = await self._request("GET", file_entry["raw_url"])
            content = raw_response.text

        if not isinstance(content, str):
            raise FormatError("Remote document has no content")

        try:
            return SyncDocument.model_validate(json.loads(content))
        except json.JSONDecodeError as e:
            raise FormatError(f"Remote document is not valid JSON: {e}") from e
        except ValidationError as e:
            raise FormatError(f"Remote document is not valid bookmark data: {e}") from e

    async def check_for_updates(self) -> Optional[RemoteInfo]:
        """Last update time of the remote document, or None if unavailable."""
        if not self.is_authenticated or not self.has_remote_document:
            return None

        try:
            async with self._client() as client:
                response = await client.get(f"/gists/{self.state.remote_document_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Error checking for remote updates: {e}")
            return None

        if not response.is_success:
            return None

        try:
            gist = self._json_object(response)
            return RemoteInfo(updated_at=gist.get("updated_at"), url=gist.get("html_url"))
        except (FormatError, ValidationError) as e:
            logger.warning(f"Unexpected remote document response: {e}")
            return None

    def _json_object(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a success response body that must be a JSON object.

        Raises:
            FormatError: If the body is not a JSON object
        """
        try:
            data = response.json()
        except ValueError as e:
            raise FormatError(f"Remote response is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise FormatError("Remote response is not a JSON object")
        return data

    def _require_token(self) -> None:
        if not self.state.access_token:
            raise UnauthenticatedError("Not authenticated with the remote document store")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"token {self.state.access_token}",
                "Accept": GITHUB_ACCEPT,
            },
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteError(f"Remote request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise RemoteError(f"Network error talking to remote: {e}") from e

        self._raise_for_status(response)
        return response

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return

        try:
            message = response.json().get("message") or response.reason_phrase
        except (ValueError, AttributeError):
            message = response.reason_phrase

        if response.status_code == 401:
            raise RemoteError(f"Remote rejected credentials: {message}", response.status_code)
        raise RemoteError(f"Remote API error: {response.status_code} - {message}", response.status_code)
