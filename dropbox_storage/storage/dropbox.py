"""Dropbox storage backend.

Talks to the Dropbox HTTP API v2 directly: content endpoints for blob
transfer, RPC endpoints (JSON in, JSON out) for delete and listing. Every
operation is exactly one POST; nothing is retried or cached.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from dropbox_storage.core.errors import (
    ErrorCode,
    NotFoundError,
    ParseError,
    RemoteRejectedError,
    StorageError,
    config_error,
    io_error,
    not_found_error,
    not_supported_error,
)
from dropbox_storage.core.logging_config import get_logger
from .protocol import Lister, RefInfo, StorageBackend


logger = get_logger(__name__)

# Option keys understood by new()
TOKEN_OPTION = "token"
PAGE_SIZE_OPTION = "page_size"
API_URL_OPTION = "api_url"
CONTENT_URL_OPTION = "content_url"

DEFAULT_PAGE_SIZE = 1000
API_URL = "https://api.dropboxapi.com"
CONTENT_URL = "https://content.dropboxapi.com"

# Dropbox reports semantic failures (missing path, conflicts, ...) as 409
# with a JSON body like {"error_summary": "path/not_found/..", "error": {...}}
CONFLICT_STATUS = 409
NOT_FOUND_MARKER = "not_found"

_OP = "storage/dropbox"


def classify_error(op: str, response: httpx.Response) -> StorageError:
    """Map a non-200 Dropbox response onto the storage error taxonomy.

    Only 409 bodies are inspected. A summary containing "not_found" becomes
    NotFoundError, any other 409 is RemoteRejectedError. Every other status
    is an opaque StorageIOError carrying the status line.

    Args:
        op: Operation name for the error context
        response: The failed response

    Returns:
        StorageError: The error to raise
    """
    status_line = f"{response.status_code} {response.reason_phrase}".strip()
    details: Dict[str, Any] = {"http_status": response.status_code, "status": status_line}

    if response.status_code == CONFLICT_STATUS:
        summary = _error_summary(response)
        details["error_summary"] = summary
        if summary is not None and NOT_FOUND_MARKER in summary:
            return not_found_error(op, f"not found: {summary}", details)
        return RemoteRejectedError(
            op,
            ErrorCode.STORAGE_REMOTE_REJECTED,
            f"request rejected by Dropbox: {summary or status_line}",
            details,
        )

    details["body"] = response.text[:200]
    return io_error(op, _failure_code(op), f"got an error from the endpoint: {status_line}", details)


def _error_summary(response: httpx.Response) -> Optional[str]:
    try:
        summary = response.json().get("error_summary")
    except (ValueError, AttributeError):
        return None
    return summary if isinstance(summary, str) else None


def _failure_code(op: str) -> ErrorCode:
    if op.endswith(".download"):
        return ErrorCode.STORAGE_READ_FAILED
    if op.endswith(".put"):
        return ErrorCode.STORAGE_WRITE_FAILED
    if op.endswith(".delete"):
        return ErrorCode.STORAGE_DELETE_FAILED
    return ErrorCode.STORAGE_LIST_FAILED


def _api_arg(value: Dict[str, Any]) -> str:
    """Encode a Dropbox-API-Arg header value.

    Header values must be ASCII, so non-ASCII characters in paths are sent
    as JSON \\u escapes.
    """
    return json.dumps(value, ensure_ascii=True)


class DropboxStorageBackend(StorageBackend, Lister):
    """Storage implementation backed by a user's Dropbox.

    References map to files in the root of the app folder: ref "abc" is
    stored at "/abc". The instance holds only immutable settings, so it is
    safe to share between concurrent tasks.

    If an httpx.AsyncClient is passed in, it is shared and not owned: the
    backend never closes it. Without one, each call opens a short-lived
    client.
    """

    def __init__(
        self,
        token: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = API_URL,
        content_url: str = CONTENT_URL,
    ):
        """Initialize Dropbox storage backend.

        Args:
            token: OAuth2 bearer token for the Dropbox account
            page_size: Max entries returned by one list call
            client: Optional shared HTTP client
            api_url: Base URL of the RPC host
            content_url: Base URL of the content host

        Raises:
            ConfigurationError: If token is empty or page_size is not positive
        """
        if not token:
            raise config_error(
                f"{_OP}.new",
                ErrorCode.CONFIG_MISSING_OPTION,
                f"{TOKEN_OPTION!r} option is required",
            )
        if page_size <= 0:
            raise config_error(
                f"{_OP}.new",
                ErrorCode.CONFIG_INVALID_OPTION,
                f"{PAGE_SIZE_OPTION!r} must be positive, got {page_size}",
            )

        self._token = token
        self.page_size = page_size
        self.client = client
        self.api_url = api_url.rstrip("/")
        self.content_url = content_url.rstrip("/")

        logger.info(
            "dropbox_storage_backend_initialized",
            page_size=self.page_size,
            api_url=self.api_url,
            content_url=self.content_url,
            shared_client=client is not None,
        )

    async def _post(
        self,
        op: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send one authenticated POST and return the successful response.

        Raises:
            StorageError: Classified failure for any non-200 status
            StorageIOError: On transport failure
        """
        headers = {"Authorization": f"Bearer {self._token}", **headers}

        try:
            if self.client is not None:
                response = await self.client.post(url, headers=headers, content=content, json=json_body)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, headers=headers, content=content, json=json_body)
        except httpx.RequestError as exc:
            logger.error(
                "dropbox_request_error",
                op=op,
                url=url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise io_error(
                op,
                _failure_code(op),
                f"request to Dropbox failed: {exc}",
                {"url": url, "error_type": type(exc).__name__},
            ) from exc

        if response.status_code != 200:
            raise classify_error(op, response)

        return response

    def _decode(self, op: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ParseError(
                op,
                ErrorCode.STORAGE_PARSE_FAILED,
                f"malformed JSON in response: {exc}",
                {"body": response.text[:200]},
            ) from exc
        if not isinstance(data, dict):
            raise ParseError(
                op,
                ErrorCode.STORAGE_PARSE_FAILED,
                f"expected a JSON object, got {type(data).__name__}",
            )
        return data

    def link_base(self) -> str:
        """Dropbox files have no stable public URL prefix.

        Raises:
            NotSupportedError: Always
        """
        raise not_supported_error(f"{_OP}.link_base", "Dropbox does not provide a link base")

    async def download(self, ref: str) -> bytes:
        """Download the object stored under ref.

        Args:
            ref: Object reference

        Returns:
            bytes: Object contents

        Raises:
            NotFoundError: If ref does not exist
            StorageIOError: On any other failure
        """
        op = f"{_OP}.download"
        logger.debug("dropbox_download_started", ref=ref)

        try:
            response = await self._post(
                op,
                f"{self.content_url}/2/files/download",
                headers={"Dropbox-API-Arg": _api_arg({"path": "/" + ref})},
            )
        except NotFoundError:
            logger.warning("dropbox_download_not_found", ref=ref)
            raise
        except StorageError as exc:
            logger.error("dropbox_download_failed", ref=ref, **exc.to_dict())
            raise

        data = response.content
        logger.info("dropbox_download_success", ref=ref, bytes_read=len(data))
        return data

    async def put(self, ref: str, contents: bytes) -> None:
        """Upload contents under ref in a single request.

        An existing object is overwritten. Dropbox caps single-request
        uploads at 150 MB; larger payloads are rejected by the remote.

        Args:
            ref: Object reference
            contents: Object contents

        Raises:
            StorageIOError: On failure
        """
        op = f"{_OP}.put"
        arg = {
            "path": "/" + ref,
            "mode": "overwrite",
            "autorename": True,
            "mute": True,
        }
        logger.debug("dropbox_put_started", ref=ref, size=len(contents))

        try:
            await self._post(
                op,
                f"{self.content_url}/2/files/upload",
                headers={
                    "Dropbox-API-Arg": _api_arg(arg),
                    "Content-Type": "application/octet-stream",
                },
                content=contents,
            )
        except StorageError as exc:
            logger.error("dropbox_put_failed", ref=ref, size=len(contents), **exc.to_dict())
            raise

        logger.info("dropbox_put_success", ref=ref, bytes_written=len(contents))

    async def delete(self, ref: str) -> None:
        """Delete the object stored under ref.

        Deleting a missing ref is reported as NotFoundError, not ignored.

        Args:
            ref: Object reference

        Raises:
            NotFoundError: If ref does not exist
            StorageIOError: On any other failure
        """
        op = f"{_OP}.delete"
        logger.debug("dropbox_delete_started", ref=ref)

        try:
            await self._post(
                op,
                f"{self.api_url}/2/files/delete_v2",
                headers={"Content-Type": "application/json"},
                json_body={"path": "/" + ref},
            )
        except NotFoundError:
            logger.warning("dropbox_delete_not_found", ref=ref)
            raise
        except StorageError as exc:
            logger.error("dropbox_delete_failed", ref=ref, **exc.to_dict())
            raise

        logger.info("dropbox_delete_success", ref=ref)

    async def list(self, token: str) -> Tuple[List[RefInfo], str]:
        """List one page of stored references.

        An empty token starts a new listing of the root folder with
        page_size as the limit. Any other token is a Dropbox cursor from a
        previous call; the limit is then fixed by the remote.

        Args:
            token: "" or the next_token of the previous page

        Returns:
            Tuple of (entries, next_token), next_token "" on the last page

        Raises:
            ParseError: If the response cannot be decoded
            StorageIOError: On any other failure
        """
        op = f"{_OP}.list"

        if token:
            url = f"{self.api_url}/2/files/list_folder/continue"
            body: Dict[str, Any] = {"cursor": token}
        else:
            url = f"{self.api_url}/2/files/list_folder"
            body = {"path": "", "limit": self.page_size}

        logger.debug("dropbox_list_started", first_page=not token, page_size=self.page_size)

        try:
            response = await self._post(
                op,
                url,
                headers={"Content-Type": "application/json"},
                json_body=body,
            )
            data = self._decode(op, response)
            refs, next_token = self._parse_page(op, data)
        except StorageError as exc:
            logger.error("dropbox_list_failed", first_page=not token, **exc.to_dict())
            raise

        logger.info(
            "dropbox_list_success",
            first_page=not token,
            entries=len(refs),
            has_more=bool(next_token),
        )
        return refs, next_token

    @staticmethod
    def _parse_page(op: str, data: Dict[str, Any]) -> Tuple[List[RefInfo], str]:
        """Extract file entries and the continuation token from a list response."""
        try:
            refs = [
                RefInfo(ref=entry["name"], size=int(entry["size"]))
                for entry in data["entries"]
                # folders and deleted entries have no size and are not refs
                if entry.get(".tag", "file") == "file"
            ]
            cursor = data["cursor"]
            has_more = data["has_more"]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ParseError(
                op,
                ErrorCode.STORAGE_PARSE_FAILED,
                f"unexpected list_folder response: {exc!r}",
            ) from exc

        if not isinstance(cursor, str) or not isinstance(has_more, bool):
            raise ParseError(
                op,
                ErrorCode.STORAGE_PARSE_FAILED,
                "list_folder response has invalid cursor or has_more",
            )

        return refs, cursor if has_more else ""

    async def close(self) -> None:
        """Nothing to release; a shared client belongs to its creator."""


def new(options: Mapping[str, str], client: Optional[httpx.AsyncClient] = None) -> DropboxStorageBackend:
    """Create a Dropbox backend from a string option bag.

    Recognized keys: "token" (required), "page_size", "api_url",
    "content_url". No network call is made.

    Raises:
        ConfigurationError: If the token is missing or an option is invalid
    """
    op = f"{_OP}.new"

    token = options.get(TOKEN_OPTION, "")
    if not token:
        raise config_error(op, ErrorCode.CONFIG_MISSING_OPTION, f"{TOKEN_OPTION!r} option is required")

    raw_page_size = options.get(PAGE_SIZE_OPTION)
    page_size = DEFAULT_PAGE_SIZE
    if raw_page_size is not None and raw_page_size != "":
        try:
            page_size = int(raw_page_size)
        except (TypeError, ValueError) as exc:
            raise config_error(
                op,
                ErrorCode.CONFIG_INVALID_OPTION,
                f"{PAGE_SIZE_OPTION!r} must be an integer, got {raw_page_size!r}",
            ) from exc

    return DropboxStorageBackend(
        token=token,
        page_size=page_size,
        client=client,
        api_url=options.get(API_URL_OPTION) or API_URL,
        content_url=options.get(CONTENT_URL_OPTION) or CONTENT_URL,
    )
