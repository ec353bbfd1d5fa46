"""
JSON file store for the video registry.

The file maps public numbers to Drive references:

    {"4821": {"driveId": "1AbC...", "name": "clip.mp4"}}

Every write is a whole-file read-modify-write with no locking, so two
concurrent writers can lose an update (last writer wins). A corrupt file
reads as empty and is replaced by a valid document on the next write.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

from ...core.videos.models import VideoRecord

logger = logging.getLogger(__name__)


class JsonRecordStore:
    """
    Primary registry tier backed by a single JSON document.

    Methods are async to match the store protocol even though file I/O
    here is synchronous; the file is small.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def ensure_exists(self) -> None:
        """Create an empty registry file on first run."""
        if self._path.exists():
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._write_document({})
        logger.info("Created empty video registry file", extra={"path": str(self._path)})

    def is_readable(self) -> bool:
        """True when the file exists and parses as a JSON object."""
        try:
            return isinstance(self._read_raw(), dict)
        except (OSError, ValueError):
            return False

    async def read_all(self) -> dict[str, VideoRecord]:
        records: dict[str, VideoRecord] = {}
        for number, entry in self._load_document().items():
            try:
                records[number] = VideoRecord.from_file_entry(number, entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "Skipping malformed registry entry",
                    extra={"number": number, "error": str(e)}
                )
        return records

    async def upsert(self, record: VideoRecord) -> None:
        document = self._load_document()
        document[record.number] = record.to_file_entry()
        self._write_document(document)

    async def upsert_many(self, records: list[VideoRecord]) -> None:
        document = self._load_document()
        for record in records:
            document[record.number] = record.to_file_entry()
        self._write_document(document)

    async def remove(self, number: str) -> bool:
        document = self._load_document()
        if number not in document:
            return False
        del document[number]
        self._write_document(document)
        return True

    def _read_raw(self) -> Any:
        content = self._path.read_text(encoding="utf-8")
        return json.loads(content) if content.strip() else {}

    def _load_document(self) -> dict[str, Any]:
        """Current file content, or an empty document if missing or corrupt."""
        if not self._path.exists():
            return {}
        try:
            document = self._read_raw()
        except (OSError, ValueError) as e:
            logger.error(
                "Registry file unreadable, treating as empty",
                extra={"path": str(self._path), "error": str(e)}
            )
            return {}

        if not isinstance(document, dict):
            logger.error(
                "Registry file is not a JSON object, treating as empty",
                extra={"path": str(self._path)}
            )
            return {}
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(document, indent=2), encoding="utf-8")
