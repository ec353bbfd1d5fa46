"""
Video endpoints.

Public:
- GET /get-video/{identifier}: resolve a short number (or a legacy raw
  Drive ID) to the Drive file the viewer page embeds.

Admin:
- GET /admin/videos: list every registered video
- POST /upload: upload a file to Drive and register a short number
- DELETE /delete-video/{identifier}: delete from Drive and the registry

Failures carry a reconnect flag so the admin panel knows when to send the
admin back through the Drive consent screen.
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status
from pydantic import BaseModel, Field

from ...config.settings import Settings
from ...core.videos.service import (
    DriveNotConnectedError,
    DriveOperationError,
    EmptyUploadError,
    VideoNotFoundError,
)
from ..dependencies import (
    AdminUser,
    DriveCredentialsDep,
    PublicVideoServiceDep,
    SettingsDep,
    VideoServiceDep,
    store_refreshed_tokens,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoLookupResponse(BaseModel):
    """Where the viewer page should point its player."""
    success: bool = True
    video_id: str = Field(serialization_alias="videoId", description="Drive file ID")
    is_direct: bool = Field(
        serialization_alias="isDirect",
        description="True if the identifier was itself a Drive file ID",
    )


class VideoListResponse(BaseModel):
    """Admin listing of registered videos."""
    success: bool = True
    videos: list[dict[str, Any]] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Response after a successful upload."""
    success: bool = True
    link: str = Field(description="Public viewer link")
    id: str = Field(description="Drive file ID")
    number: str = Field(description="Public video number")
    name: str = Field(description="Original filename")


class DeleteResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def failure(
    status_code: int,
    error: str,
    reconnect: bool = False,
    details: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> HTTPException:
    """Build the error body the admin panel understands."""
    body: dict[str, Any] = {"success": False, "error": error, "reconnect": reconnect}
    if details and settings is not None and settings.expose_error_details:
        body["details"] = details
    return HTTPException(status_code=status_code, detail=body)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/get-video/{identifier}",
    response_model=VideoLookupResponse,
    summary="Resolve a video link",
    responses={404: {"description": "Video not found"}},
)
async def get_video(identifier: str, service: PublicVideoServiceDep) -> VideoLookupResponse:
    result = await service.resolve(identifier)
    if result is None:
        logger.info("Video not found", extra={"identifier": identifier})
        raise failure(status.HTTP_404_NOT_FOUND, "Video not found")

    return VideoLookupResponse(video_id=result.drive_id, is_direct=result.is_direct)


@router.get(
    "/admin/videos",
    response_model=VideoListResponse,
    summary="List registered videos",
)
async def list_videos(admin: AdminUser, service: VideoServiceDep) -> VideoListResponse:
    return VideoListResponse(videos=await service.list_videos())


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Upload a video",
    description="Uploads the file to Google Drive, makes it public and assigns a short number.",
)
async def upload_video(
    request: Request,
    admin: AdminUser,
    video: Annotated[UploadFile, File(description="Video file")],
    settings: SettingsDep,
    service: VideoServiceDep,
    credentials: DriveCredentialsDep,
) -> UploadResponse:
    data = await video.read()

    max_size_bytes = settings.max_upload_size_mb * 1024 * 1024
    if len(data) > max_size_bytes:
        raise failure(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"Video too large. Maximum size: {settings.max_upload_size_mb}MB",
        )

    logger.info(
        "Video upload started",
        extra={
            "video_filename": video.filename,
            "content_type": video.content_type,
            "size_bytes": len(data),
        }
    )

    try:
        result = await service.upload(
            data=data,
            filename=video.filename or "video.mp4",
            mime_type=video.content_type,
        )
    except DriveNotConnectedError as e:
        raise failure(status.HTTP_401_UNAUTHORIZED, str(e), reconnect=True)
    except EmptyUploadError as e:
        raise failure(status.HTTP_400_BAD_REQUEST, str(e))
    except DriveOperationError as e:
        raise failure(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(e),
            reconnect=e.reconnect,
            details=e.details,
            settings=settings,
        )
    finally:
        store_refreshed_tokens(request, credentials)

    return UploadResponse(
        link=result.link,
        id=result.id,
        number=result.number,
        name=result.name,
    )


@router.delete(
    "/delete-video/{identifier}",
    response_model=DeleteResponse,
    summary="Delete a video",
    description="Accepts either the public number or the Drive file ID.",
)
async def delete_video(
    request: Request,
    identifier: str,
    admin: AdminUser,
    settings: SettingsDep,
    service: VideoServiceDep,
    credentials: DriveCredentialsDep,
) -> DeleteResponse:
    try:
        await service.remove(identifier)
    except DriveNotConnectedError as e:
        raise failure(status.HTTP_401_UNAUTHORIZED, str(e), reconnect=True)
    except VideoNotFoundError as e:
        raise failure(status.HTTP_404_NOT_FOUND, str(e))
    except DriveOperationError as e:
        raise failure(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(e),
            reconnect=e.reconnect,
            details=e.details,
            settings=settings,
        )
    finally:
        store_refreshed_tokens(request, credentials)

    return DeleteResponse()
