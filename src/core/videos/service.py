"""
Upload and delete orchestration.

The order of operations matters here:
- Upload: Drive create, public permission, then the registry. A Drive
  failure aborts before anything is registered, and a file Drive already
  created is deleted again.
- Delete: Drive delete first, then the registry. A Drive failure leaves
  the registry untouched.

Every mutation ends with a live-update broadcast.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from .broadcaster import ChangeBroadcaster
from .models import LookupResult, UploadResult, VideoRecord, build_public_link
from .registry import RegistryFullError, VideoRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class BlobErrorKind(Enum):
    """Why a blob store call failed. Decides whether the admin must reconnect."""
    AUTH_EXPIRED = "auth_expired"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    FAILED = "failed"


class BlobStoreError(Exception):
    """Raised by blob store adapters with a structured failure kind."""

    def __init__(self, message: str, kind: BlobErrorKind = BlobErrorKind.FAILED) -> None:
        super().__init__(message)
        self.kind = kind


class VideoServiceError(Exception):
    """Base class for orchestration failures reported to the admin."""
    pass


class DriveNotConnectedError(VideoServiceError):
    """No usable Drive credentials for this session."""
    pass


class EmptyUploadError(VideoServiceError):
    """The upload carried no file content."""
    pass


class VideoNotFoundError(VideoServiceError):
    """The identifier matches no stored record."""
    pass


class DriveOperationError(VideoServiceError):
    """
    A Drive call failed and the operation was aborted.

    reconnect is True when the failure came from expired or revoked
    credentials, so the admin panel can prompt for a new connection.
    """

    def __init__(self, message: str, reconnect: bool = False, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.reconnect = reconnect
        self.details = details


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class BlobStore(Protocol):
    """
    Interface for the external file store.

    Implementations raise BlobStoreError with the matching kind.
    """

    async def create(self, data: bytes, name: str, mime_type: str, folder_id: str) -> str:
        """Store the bytes and return the opaque file ID."""
        ...

    async def set_public_read_permission(self, file_id: str) -> None:
        ...

    async def delete(self, file_id: str) -> None:
        ...

    async def about(self) -> dict[str, Any]:
        """Cheap call used to check the connection works."""
        ...


class CredentialProvider(Protocol):
    """Supplies and refreshes the bearer used by the blob store."""

    @property
    def can_refresh(self) -> bool:
        ...

    def is_expiring(self) -> bool:
        ...

    async def refresh(self) -> dict[str, Any]:
        """Refresh in place and return the new token data."""
        ...


# ---------------------------------------------------------------------------
# Video Service
# ---------------------------------------------------------------------------

class VideoService:
    """
    Drives the blob store, the registry and the broadcaster for one request.

    blob_store is None when the admin hasn't connected Drive; read paths
    still work, mutations raise DriveNotConnectedError.
    """

    def __init__(
        self,
        registry: VideoRegistry,
        broadcaster: ChangeBroadcaster,
        blob_store: Optional[BlobStore],
        folder_id: str,
        base_url: str,
        credentials: Optional[CredentialProvider] = None,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._blob_store = blob_store
        self._folder_id = folder_id
        self._base_url = base_url
        self._credentials = credentials

    async def upload(self, data: bytes, filename: str, mime_type: Optional[str]) -> UploadResult:
        """Store a file in Drive, make it public and register it under a new number."""
        blob_store = self._require_blob_store()
        if not data:
            raise EmptyUploadError("No file selected")

        mime_type = mime_type or "application/octet-stream"

        file_id: Optional[str] = None
        try:
            file_id = await self._call_drive(
                lambda: blob_store.create(data, filename, mime_type, self._folder_id)
            )
            await self._call_drive(lambda: blob_store.set_public_read_permission(file_id))
        except BlobStoreError as e:
            logger.error(
                "Upload error",
                extra={"video_filename": filename, "kind": e.kind.value, "error": str(e)}
            )
            if file_id is not None:
                await self._discard_blob(blob_store, file_id)
            raise DriveOperationError(
                "Upload failed",
                reconnect=e.kind is BlobErrorKind.AUTH_EXPIRED,
                details=str(e),
            ) from e

        try:
            number = await self._registry.generate_number()
        except RegistryFullError as e:
            logger.error("No free video number", extra={"drive_id": file_id})
            await self._discard_blob(blob_store, file_id)
            raise DriveOperationError("Upload failed", details=str(e)) from e

        await self._registry.add(
            VideoRecord(number=number, drive_id=file_id, name=filename, size=len(data))
        )
        await self._broadcaster.broadcast_videos()

        logger.info(
            "Video uploaded",
            extra={"number": number, "drive_id": file_id, "size_bytes": len(data)}
        )

        return UploadResult(
            link=build_public_link(self._base_url, number),
            id=file_id,
            number=number,
            name=filename,
        )

    async def remove(self, identifier: str) -> None:
        """
        Delete a video by number or Drive ID.

        A Drive file that is already gone doesn't block cleaning the
        registry. Raises VideoNotFoundError when no store knows the
        identifier, which is also what a repeated delete gets.
        """
        blob_store = self._require_blob_store()

        record = await self._registry.resolve_record(identifier)
        if record is None:
            raise VideoNotFoundError("Video not found")

        try:
            await self._call_drive(lambda: blob_store.delete(record.drive_id))
        except BlobStoreError as e:
            if e.kind is not BlobErrorKind.NOT_FOUND:
                logger.error(
                    "Delete error",
                    extra={"drive_id": record.drive_id, "kind": e.kind.value, "error": str(e)}
                )
                raise DriveOperationError(
                    "Error deleting video",
                    reconnect=e.kind is BlobErrorKind.AUTH_EXPIRED,
                    details=str(e),
                ) from e
            logger.warning(
                "Drive file already missing, removing registry entry",
                extra={"drive_id": record.drive_id}
            )

        await self._registry.delete(record.number)
        await self._broadcaster.broadcast_videos()

        logger.info(
            "Video deleted",
            extra={"number": record.number, "drive_id": record.drive_id}
        )

    async def list_videos(self) -> list[dict[str, Any]]:
        """Admin listing of every visible record."""
        records = await self._registry.get_all()
        return [record.to_admin(self._base_url) for record in records.values()]

    async def resolve(self, identifier: str) -> Optional[LookupResult]:
        """Public lookup. Counts a view when the identifier resolves."""
        result = await self._registry.find_by_identifier(identifier)
        if result is not None:
            counted = result.record.number if result.record else result.drive_id
            await self._registry.increment_views(counted)
        return result

    async def _discard_blob(self, blob_store: BlobStore, file_id: str) -> None:
        """Best-effort delete of a file that will never be registered."""
        try:
            await self._call_drive(lambda: blob_store.delete(file_id))
        except BlobStoreError as e:
            logger.warning(
                "Could not remove unregistered Drive file",
                extra={"drive_id": file_id, "kind": e.kind.value, "error": str(e)}
            )
            return
        logger.info("Removed unregistered Drive file", extra={"drive_id": file_id})

    def _require_blob_store(self) -> BlobStore:
        if self._blob_store is None:
            raise DriveNotConnectedError("Google Drive not connected")
        return self._blob_store

    async def _call_drive(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a Drive call, retrying once after a refresh if credentials were rejected."""
        try:
            return await operation()
        except BlobStoreError as e:
            if (
                e.kind is not BlobErrorKind.AUTH_EXPIRED
                or self._credentials is None
                or not self._credentials.can_refresh
            ):
                raise

            logger.info("Drive rejected credentials, refreshing and retrying once")
            try:
                await self._credentials.refresh()
            except Exception as refresh_error:
                logger.warning("Credential refresh failed", extra={"error": str(refresh_error)})
                raise e from refresh_error

            return await operation()
