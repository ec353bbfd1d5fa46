"""
Domain models for the video registry.

A video is known to viewers by a short public number and to the blob
store by an opaque Drive file ID. Everything here is plain data with no
knowledge of how it's stored or transmitted.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


NUMBER_MIN = 1000
NUMBER_MAX = 9999

# Drive file IDs are long URL-safe base64 tokens. Old links embedded them
# directly instead of a public number.
DIRECT_REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{28,}$")


def is_direct_reference(identifier: str) -> bool:
    """True when the identifier looks like a raw Drive file ID."""
    return bool(DIRECT_REFERENCE_PATTERN.fullmatch(identifier))


def build_public_link(base_url: str, number: str) -> str:
    """Viewer-facing link for a video number."""
    return f"{base_url.rstrip('/')}/?video={number}"


def build_drive_link(drive_id: str) -> str:
    """Drive web UI link, shown in the admin panel."""
    return f"https://drive.google.com/file/d/{drive_id}/view"


@dataclass
class VideoRecord:
    """
    One entry of the registry.

    size, created_at and views only exist when the document store holds
    the record, and size is only known for uploads made by this service.
    """
    number: str
    drive_id: str
    name: str
    size: Optional[int] = None
    created_at: Optional[datetime] = None
    views: Optional[int] = None

    def __post_init__(self) -> None:
        self.number = str(self.number)
        if not self.number.strip():
            raise ValueError("Video number cannot be empty")
        if not self.drive_id:
            raise ValueError("Drive ID cannot be empty")

    def backfilled_from(self, other: "VideoRecord") -> "VideoRecord":
        """Fill fields missing here with the values held by another copy."""
        return replace(
            self,
            name=self.name or other.name,
            size=self.size if self.size is not None else other.size,
            created_at=self.created_at if self.created_at is not None else other.created_at,
            views=self.views if self.views is not None else other.views,
        )

    def to_file_entry(self) -> dict[str, Any]:
        """Shape stored under the number key in the JSON file."""
        entry: dict[str, Any] = {"driveId": self.drive_id, "name": self.name}
        if self.size is not None:
            entry["size"] = self.size
        return entry

    @classmethod
    def from_file_entry(cls, number: str, entry: dict[str, Any]) -> "VideoRecord":
        return cls(
            number=number,
            drive_id=entry["driveId"],
            name=entry.get("name", ""),
            size=entry.get("size"),
        )

    def to_public(self, base_url: str) -> dict[str, str]:
        """Shape pushed to live-update subscribers."""
        return {
            "number": self.number,
            "id": self.drive_id,
            "name": self.name,
            "link": build_public_link(base_url, self.number),
        }

    def to_admin(self, base_url: str) -> dict[str, Any]:
        """Shape listed in the admin panel."""
        item: dict[str, Any] = self.to_public(base_url)
        item["driveLink"] = build_drive_link(self.drive_id)
        if self.views is not None:
            item["views"] = self.views
        if self.created_at is not None:
            item["createdAt"] = self.created_at.isoformat()
        return item


@dataclass(frozen=True)
class LookupResult:
    """
    Outcome of resolving a public identifier.

    is_direct means the identifier was used as the Drive ID without
    consulting either store.
    """
    drive_id: str
    is_direct: bool = False
    record: Optional[VideoRecord] = None


@dataclass(frozen=True)
class UploadResult:
    """What the admin gets back after a successful upload."""
    link: str
    id: str
    number: str
    name: str


class EventType(Enum):
    """Envelope discriminators seen on the live-update channel."""
    VIDEOS_UPDATED = "videos_updated"
    SESSION_UPDATE = "session_update"
    UPLOAD_PROGRESS = "upload_progress"


@dataclass(frozen=True)
class LiveEvent:
    """A message pushed to live-update subscribers."""
    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.payload}
