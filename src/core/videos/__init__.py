"""
Video registry logic.

Contains the domain models, the two-tier registry facade, the live-update
broadcaster and the upload/delete orchestration.
"""

from .broadcaster import ChangeBroadcaster, Subscriber
from .models import (
    EventType,
    LiveEvent,
    LookupResult,
    UploadResult,
    VideoRecord,
    is_direct_reference,
)
from .registry import (
    RegistryError,
    RegistryFullError,
    StoreUnavailableError,
    VideoRegistry,
)
from .service import (
    BlobErrorKind,
    BlobStore,
    BlobStoreError,
    CredentialProvider,
    DriveNotConnectedError,
    DriveOperationError,
    EmptyUploadError,
    VideoNotFoundError,
    VideoService,
    VideoServiceError,
)

__all__ = [
    "ChangeBroadcaster",
    "Subscriber",
    "EventType",
    "LiveEvent",
    "LookupResult",
    "UploadResult",
    "VideoRecord",
    "is_direct_reference",
    "RegistryError",
    "RegistryFullError",
    "StoreUnavailableError",
    "VideoRegistry",
    "BlobErrorKind",
    "BlobStore",
    "BlobStoreError",
    "CredentialProvider",
    "DriveNotConnectedError",
    "DriveOperationError",
    "EmptyUploadError",
    "VideoNotFoundError",
    "VideoService",
    "VideoServiceError",
]
