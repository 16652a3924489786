"""Google Drive v3 REST client — listing, download, upload, trash."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from app.config import settings
from app.exceptions import NotFoundError, UpstreamError, UpstreamListError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"
GOOGLE_APPS_PREFIX = "application/vnd.google-apps."
# Google-native files have no binary content; these export to text.
EXPORT_MIME_TYPES = {
    GOOGLE_DOC_MIME_TYPE: "text/plain",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
}
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class DriveFile:
    """One entry returned by a Drive listing."""
    id: str
    name: str
    mime_type: str = ""
    parents: tuple[str, ...] = ()

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def readable_as_text(self) -> bool:
        """Whether get_text can fetch this file (binary or exportable)."""
        if self.mime_type.startswith(GOOGLE_APPS_PREFIX):
            return self.mime_type in EXPORT_MIME_TYPES
        return True

    @property
    def kind(self) -> str:
        """Content classifier: image, text or other."""
        if self.mime_type.startswith("image/"):
            return "image"
        if self.mime_type == "text/plain" or self.mime_type == GOOGLE_DOC_MIME_TYPE:
            return "text"
        return "other"


def _quote(value: str) -> str:
    """Escape a literal for the Drive query language."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_children_query(parent_id: str, folders_only: bool | None = None) -> str:
    """Drive ``q`` for non-trashed direct children of *parent_id*.

    ``folders_only`` True selects folders, False selects non-folders,
    None selects both.
    """
    clauses = [f"'{_quote(parent_id)}' in parents"]
    if folders_only is True:
        clauses.append(f"mimeType = '{FOLDER_MIME_TYPE}'")
    elif folders_only is False:
        clauses.append(f"mimeType != '{FOLDER_MIME_TYPE}'")
    clauses.append("trashed = false")
    return " and ".join(clauses)


def _error_from_response(resp: httpx.Response) -> UpstreamError:
    """Map a failed Drive response to a domain error."""
    message = resp.reason_phrase or f"HTTP {resp.status_code}"
    try:
        error = resp.json().get("error")
        if isinstance(error, dict) and error.get("message"):
            message = error["message"]
        elif isinstance(error, str):
            message = error
    except (ValueError, AttributeError):
        pass

    if resp.status_code == 404:
        return NotFoundError(message, upstream_status=404)
    return UpstreamError(f"Drive API error ({resp.status_code}): {message}", upstream_status=resp.status_code)


def _drive_file(item: dict[str, Any], name: str = "", mime_type: str = "") -> DriveFile:
    return DriveFile(
        id=item["id"],
        name=item.get("name", name),
        mime_type=item.get("mimeType", mime_type),
        parents=tuple(item.get("parents") or ()),
    )


def _multipart_related(metadata: dict[str, Any], data: bytes, mime_type: str) -> tuple[bytes, str]:
    """Build a multipart/related body for a Drive media upload."""
    boundary = f"parts-{uuid.uuid4().hex}"
    body = b"".join([
        f"--{boundary}\r\n".encode(),
        b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
        json.dumps(metadata).encode("utf-8"),
        f"\r\n--{boundary}\r\n".encode(),
        f"Content-Type: {mime_type}\r\n\r\n".encode(),
        data,
        f"\r\n--{boundary}--\r\n".encode(),
    ])
    return body, f"multipart/related; boundary={boundary}"


class DriveClient:
    """Async Drive API client bound to one access token.

    Reads (listing, content download) are retried with exponential backoff on
    transport errors, 429 and 5xx. Writes are sent exactly once.
    """

    def __init__(
        self,
        access_token: str,
        *,
        api_url: str | None = None,
        upload_url: str | None = None,
        timeout: float | None = None,
        read_retries: int | None = None,
        retry_backoff: float | None = None,
        page_size: int | None = None,
        order_by: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_url = (api_url or settings.drive_api_url).rstrip("/")
        self._upload_url = (upload_url or settings.drive_upload_url).rstrip("/")
        self._read_retries = settings.drive_read_retries if read_retries is None else read_retries
        self._retry_backoff = settings.drive_retry_backoff_seconds if retry_backoff is None else retry_backoff
        self._page_size = page_size or settings.drive_page_size
        self._order_by = settings.drive_order_by if order_by is None else order_by
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.drive_timeout_seconds,
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DriveClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _send(self, method: str, url: str, *, idempotent: bool, **kwargs) -> httpx.Response:
        """Send one request, retrying idempotent calls on transient failures."""
        attempts = 1 + (self._read_retries if idempotent else 0)
        attempt = 0

        while True:
            try:
                resp = await self._client.request(method, url, **kwargs)
            except httpx.TimeoutException as exc:
                error = UpstreamTimeoutError(f"Drive API timed out: {method} {url} ({exc.__class__.__name__})")
            except httpx.TransportError as exc:
                error = UpstreamError(f"Drive API unreachable: {exc}")
            else:
                if resp.status_code < 400:
                    return resp
                error = _error_from_response(resp)
                if resp.status_code not in RETRYABLE_STATUS:
                    raise error

            attempt += 1
            if attempt >= attempts:
                raise error
            delay = self._retry_backoff * (2 ** (attempt - 1))
            logger.warning(
                "Drive %s %s failed (%s), retry %d/%d in %.1fs",
                method, url, error.message, attempt, self._read_retries, delay,
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _file_from(resp: httpx.Response, name: str = "", mime_type: str = "") -> DriveFile:
        """Decode a single-file response; malformed bodies become UpstreamError."""
        try:
            return _drive_file(resp.json(), name, mime_type)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise UpstreamError(f"Malformed Drive response: {exc!r}", upstream_status=resp.status_code)

    # --- Reads ---

    async def list_children(self, parent_id: str, folders_only: bool | None = None) -> list[DriveFile]:
        """List non-trashed direct children of a folder, following all pages."""
        params: dict[str, Any] = {
            "q": build_children_query(parent_id, folders_only),
            "fields": "nextPageToken, files(id, name, mimeType)",
            "pageSize": self._page_size,
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if self._order_by:
            params["orderBy"] = self._order_by

        files: list[DriveFile] = []
        while True:
            resp = await self._send("GET", f"{self._api_url}/files", idempotent=True, params=params)
            try:
                data = resp.json()
                files.extend(_drive_file(item) for item in data.get("files", []))
                token = data.get("nextPageToken")
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                raise UpstreamListError(
                    f"Malformed Drive listing for {parent_id}: {exc!r}", upstream_status=resp.status_code,
                )
            if not token:
                break
            params["pageToken"] = token

        logger.debug("Listed %d children of %s", len(files), parent_id)
        return files

    async def get_file(self, file_id: str) -> DriveFile:
        """Metadata of one file, including its parents. Trashed files are returned too."""
        resp = await self._send(
            "GET", f"{self._api_url}/files/{file_id}",
            idempotent=True,
            params={"fields": "id, name, mimeType, parents", "supportsAllDrives": "true"},
        )
        return self._file_from(resp)

    async def get_text(self, file: DriveFile) -> str:
        """Fetch a file's content as text (Google-native files are exported)."""
        export_type = EXPORT_MIME_TYPES.get(file.mime_type)
        if export_type:
            resp = await self._send(
                "GET", f"{self._api_url}/files/{file.id}/export",
                idempotent=True, params={"mimeType": export_type},
            )
        else:
            resp = await self._send(
                "GET", f"{self._api_url}/files/{file.id}",
                idempotent=True, params={"alt": "media", "supportsAllDrives": "true"},
            )
        return resp.content.decode("utf-8", errors="replace")

    # --- Writes ---

    async def create_folder(self, name: str, parent_id: str) -> DriveFile:
        resp = await self._send(
            "POST", f"{self._api_url}/files",
            idempotent=False,
            params={"fields": "id, name, mimeType", "supportsAllDrives": "true"},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
        )
        return self._file_from(resp, name, FOLDER_MIME_TYPE)

    async def upload_file(self, name: str, parent_id: str, data: bytes, mime_type: str) -> DriveFile:
        """Upload a small file with metadata in one multipart request."""
        body, content_type = _multipart_related(
            {"name": name, "parents": [parent_id]}, data, mime_type,
        )
        resp = await self._send(
            "POST", f"{self._upload_url}/files",
            idempotent=False,
            params={"uploadType": "multipart", "fields": "id, name, mimeType", "supportsAllDrives": "true"},
            content=body,
            headers={"Content-Type": content_type},
        )
        return self._file_from(resp, name, mime_type)

    async def update_metadata(self, file_id: str, patch: dict[str, Any]) -> None:
        await self._send(
            "PATCH", f"{self._api_url}/files/{file_id}",
            idempotent=False,
            params={"supportsAllDrives": "true"},
            json=patch,
        )
