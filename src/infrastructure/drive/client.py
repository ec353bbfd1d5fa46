"""
Google Drive blob store.

Uploads go into one configured folder and are shared as "anyone with the
link can view", which is what lets the public page embed the Drive
preview player.

Drive errors are translated into BlobStoreError with a structured kind
(expired credentials, missing file, transient, other) from the HTTP
status and exception type, never from the error message text.
"""

import asyncio
import io
import logging
import secrets
from typing import Any

from ...core.videos.service import BlobErrorKind, BlobStoreError

logger = logging.getLogger(__name__)


def translate_drive_error(error: Exception, operation: str) -> BlobStoreError:
    """Map a google-api-python-client / google-auth failure to a BlobStoreError."""
    from google.auth.exceptions import RefreshError, TransportError
    from googleapiclient.errors import HttpError

    message = f"Drive {operation} failed: {error}"

    if isinstance(error, RefreshError):
        return BlobStoreError(message, BlobErrorKind.AUTH_EXPIRED)

    if isinstance(error, HttpError):
        status_code = int(error.resp.status)
        if status_code == 401:
            return BlobStoreError(message, BlobErrorKind.AUTH_EXPIRED)
        if status_code == 404:
            return BlobStoreError(message, BlobErrorKind.NOT_FOUND)
        if status_code == 429 or status_code >= 500:
            return BlobStoreError(message, BlobErrorKind.TRANSIENT)
        return BlobStoreError(message, BlobErrorKind.FAILED)

    if isinstance(error, (TransportError, OSError)):
        return BlobStoreError(message, BlobErrorKind.TRANSIENT)

    return BlobStoreError(message, BlobErrorKind.FAILED)


class GoogleDriveBlobStore:
    """
    Drive v3 client.

    The Google client is synchronous, so every request runs in a worker
    thread; a long upload doesn't hold up the event loop.
    """

    def __init__(self, service) -> None:
        self._service = service

    @classmethod
    def from_credentials(cls, credentials) -> "GoogleDriveBlobStore":
        """
        Build the Drive service for one admin session.

        We import googleapiclient here (not at module level) because mock
        mode doesn't need it.
        """
        try:
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(
                "google-api-python-client is required for Drive storage. "
                "Install with: pip install google-api-python-client"
            )

        return cls(build("drive", "v3", credentials=credentials, cache_discovery=False))

    async def create(self, data: bytes, name: str, mime_type: str, folder_id: str) -> str:
        from googleapiclient.http import MediaIoBaseUpload

        body: dict[str, Any] = {"name": name, "mimeType": mime_type}
        if folder_id:
            body["parents"] = [folder_id]
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=True)

        request = self._service.files().create(body=body, media_body=media, fields="id")
        try:
            response = await asyncio.to_thread(request.execute)
        except Exception as e:
            raise translate_drive_error(e, "create") from e

        file_id = response["id"]
        logger.info(
            "Uploaded file to Drive",
            extra={"drive_id": file_id, "size_bytes": len(data)}
        )
        return file_id

    async def set_public_read_permission(self, file_id: str) -> None:
        request = self._service.permissions().create(
            fileId=file_id,
            body={"role": "reader", "type": "anyone"},
        )
        try:
            await asyncio.to_thread(request.execute)
        except Exception as e:
            raise translate_drive_error(e, "permission") from e

    async def delete(self, file_id: str) -> None:
        request = self._service.files().delete(fileId=file_id)
        try:
            await asyncio.to_thread(request.execute)
        except Exception as e:
            raise translate_drive_error(e, "delete") from e

        logger.info("Deleted file from Drive", extra={"drive_id": file_id})

    async def about(self) -> dict[str, Any]:
        request = self._service.about().get(fields="user")
        try:
            return await asyncio.to_thread(request.execute)
        except Exception as e:
            raise translate_drive_error(e, "about") from e


# ---------------------------------------------------------------------------
# Mock Drive for Local Development
# ---------------------------------------------------------------------------

class MockDriveBlobStore:
    """
    In-memory Drive.

    File IDs are random URL-safe tokens shaped like real Drive IDs, so
    direct-reference links behave the same in mock mode.
    """

    def __init__(self) -> None:
        self.files: dict[str, dict[str, Any]] = {}
        logger.info("Initialized mock Drive (in-memory)")

    async def create(self, data: bytes, name: str, mime_type: str, folder_id: str) -> str:
        file_id = secrets.token_urlsafe(24)
        self.files[file_id] = {
            "name": name,
            "mimeType": mime_type,
            "parents": [folder_id] if folder_id else [],
            "data": data,
            "public": False,
        }
        return file_id

    async def set_public_read_permission(self, file_id: str) -> None:
        if file_id not in self.files:
            raise BlobStoreError(f"File not found: {file_id}", BlobErrorKind.NOT_FOUND)
        self.files[file_id]["public"] = True

    async def delete(self, file_id: str) -> None:
        if file_id not in self.files:
            raise BlobStoreError(f"File not found: {file_id}", BlobErrorKind.NOT_FOUND)
        del self.files[file_id]

    async def about(self) -> dict[str, Any]:
        return {"user": {"displayName": "Mock Drive"}}
