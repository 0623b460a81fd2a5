"""Thin Google Drive v3 REST client bound to an OAuth client."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any
from urllib.parse import quote

import httpx

from conduit.errors import invalid_params
from conduit.oauth import OAuthClient

logger = logging.getLogger("conduit.drive")

API_URL = "https://www.googleapis.com/drive/v3"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
WORKSPACE_MIME_PREFIX = "application/vnd.google-apps."

# Google Workspace documents have no binary content; they must be exported.
EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.document": "text/plain",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
}
DEFAULT_EXPORT_MIME_TYPE = "text/plain"


def _file_url(file_id: str, suffix: str = "") -> str:
    # The ID must stay a single path segment under /files/.
    if file_id in (".", ".."):
        raise invalid_params(f"Invalid file ID: {file_id}")
    return f"{API_URL}/files/{quote(file_id, safe='')}{suffix}"


class DriveAPIError(RuntimeError):
    """Drive answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{message} (HTTP {status_code})")
        self.status_code = status_code


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = response.reason_phrase or "Drive request failed"
    try:
        error = response.json().get("error")
        if isinstance(error, dict) and error.get("message"):
            message = error["message"]
        elif isinstance(error, str):
            message = error
    except (ValueError, AttributeError):
        pass
    raise DriveAPIError(response.status_code, message)


class DriveClient:
    """Drive operations used by the tool handlers.

    The client reads the OAuth client's credential on every request, so
    refreshed tokens are picked up without rebuilding it.
    """

    def __init__(self, oauth: OAuthClient) -> None:
        self._oauth = oauth

    async def _call(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._oauth.request(method, url, **kwargs)
        _raise_for_status(response)
        return response

    async def list_files(
        self, query: str | None, page_size: int, fields: str, order_by: str
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"pageSize": page_size, "fields": fields, "orderBy": order_by}
        if query:
            params["q"] = query
        response = await self._call("GET", f"{API_URL}/files", params=params)
        return list(response.json().get("files") or [])

    async def get_file(self, file_id: str, fields: str) -> dict[str, Any]:
        response = await self._call("GET", _file_url(file_id), params={"fields": fields})
        return dict(response.json())

    async def download_text(self, file_id: str) -> str:
        response = await self._call("GET", _file_url(file_id), params={"alt": "media"})
        return response.text

    async def export_text(self, file_id: str, mime_type: str) -> str:
        response = await self._call(
            "GET", _file_url(file_id, "/export"), params={"mimeType": mime_type}
        )
        return response.text

    async def create_metadata(self, metadata: dict[str, Any], fields: str) -> dict[str, Any]:
        response = await self._call(
            "POST", f"{API_URL}/files", params={"fields": fields}, json=metadata
        )
        return dict(response.json())

    async def upload(
        self, metadata: dict[str, Any], content: str, mime_type: str, fields: str
    ) -> dict[str, Any]:
        """Create a file with content in one multipart request."""
        boundary = f"conduit-{uuid.uuid4().hex}"
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {mime_type}\r\n\r\n"
            f"{content}\r\n"
            f"--{boundary}--\r\n"
        ).encode("utf-8")
        response = await self._call(
            "POST",
            f"{UPLOAD_URL}/files",
            params={"uploadType": "multipart", "fields": fields},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        return dict(response.json())

    async def delete(self, file_id: str) -> None:
        await self._call("DELETE", _file_url(file_id))


__all__ = [
    "DEFAULT_EXPORT_MIME_TYPE",
    "EXPORT_MIME_TYPES",
    "FOLDER_MIME_TYPE",
    "WORKSPACE_MIME_PREFIX",
    "DriveAPIError",
    "DriveClient",
]
