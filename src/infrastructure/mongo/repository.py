"""
MongoDB document store for video records.

Documents carry the same fields as the JSON file plus metadata:

    {"number": "4821", "driveId": "1AbC...", "name": "clip.mp4",
     "size": 1048576, "createdAt": <datetime>, "views": 12}

number has a unique index and driveId a secondary one, so every lookup
matches either field.
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from ...core.videos.models import VideoRecord
from .client import MongoHandle

logger = logging.getLogger(__name__)


def document_to_record(document: dict[str, Any]) -> VideoRecord:
    """Translate a MongoDB document into a domain record."""
    return VideoRecord(
        number=str(document["number"]),
        drive_id=document["driveId"],
        name=document.get("name", ""),
        size=document.get("size"),
        created_at=document.get("createdAt"),
        views=document.get("views"),
    )


def documents_to_records(documents: list[dict[str, Any]]) -> list[VideoRecord]:
    """Translate a listing, skipping documents that can't form a record."""
    records = []
    for document in documents:
        try:
            records.append(document_to_record(document))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Skipping malformed video document",
                extra={"number": document.get("number"), "error": str(e)}
            )
    return records


def identifier_filter(identifier: str) -> dict[str, Any]:
    """Match a record by public number or Drive ID."""
    return {"$or": [{"number": identifier}, {"driveId": identifier}]}


def upsert_update(record: VideoRecord, now: datetime) -> dict[str, Any]:
    """
    Update document for an upsert keyed by number.

    createdAt and views are only written when the document is first
    inserted, so re-adding a record keeps its history.
    """
    fields: dict[str, Any] = {
        "number": record.number,
        "driveId": record.drive_id,
        "name": record.name,
    }
    if record.size is not None:
        fields["size"] = record.size
    return {
        "$set": fields,
        "$setOnInsert": {"createdAt": record.created_at or now, "views": 0},
    }


class MongoRecordStore:
    """
    Secondary registry tier on a MongoDB collection.

    Every call goes through the handle, which raises StoreUnavailableError
    while MongoDB is not connected.
    """

    def __init__(self, handle: MongoHandle) -> None:
        self._handle = handle

    @property
    def is_ready(self) -> bool:
        return self._handle.is_ready

    async def list_records(self) -> list[VideoRecord]:
        cursor = self._handle.collection.find({}, {"_id": 0}).sort("createdAt", -1)
        documents = await cursor.to_list(length=None)
        return documents_to_records(documents)

    async def find(self, identifier: str) -> Optional[VideoRecord]:
        document = await self._handle.collection.find_one(identifier_filter(identifier), {"_id": 0})
        if document is None:
            return None
        return document_to_record(document)

    async def upsert(self, record: VideoRecord) -> None:
        await self._handle.collection.update_one(
            {"number": record.number},
            upsert_update(record, datetime.now(timezone.utc)),
            upsert=True,
        )

    async def upsert_many(self, records: list[VideoRecord]) -> int:
        from pymongo import UpdateOne

        if not records:
            return 0

        now = datetime.now(timezone.utc)
        operations = [
            UpdateOne({"number": record.number}, upsert_update(record, now), upsert=True)
            for record in records
        ]
        result = await self._handle.collection.bulk_write(operations, ordered=False)
        return result.upserted_count + result.matched_count

    async def delete(self, identifier: str) -> bool:
        result = await self._handle.collection.delete_one(identifier_filter(identifier))
        return result.deleted_count > 0

    async def increment_views(self, identifier: str) -> None:
        await self._handle.collection.update_one(
            identifier_filter(identifier),
            {"$inc": {"views": 1}},
        )


# ---------------------------------------------------------------------------
# Mock Document Store for Local Development
# ---------------------------------------------------------------------------

class MockDocumentStore:
    """
    In-memory document store.

    Implements the same interface as MongoRecordStore so the API can run
    with a secondary tier but without a MongoDB server. Setting ready to
    False simulates a lost connection.
    """

    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self._documents: dict[str, dict[str, Any]] = {}
        self._sequence = itertools.count()
        logger.info("Initialized mock document store (in-memory)")

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def list_records(self) -> list[VideoRecord]:
        documents = sorted(
            self._documents.values(),
            key=lambda document: (document["createdAt"], document["_seq"]),
            reverse=True,
        )
        return documents_to_records(documents)

    async def find(self, identifier: str) -> Optional[VideoRecord]:
        document = self._find_document(identifier)
        return document_to_record(document) if document else None

    async def upsert(self, record: VideoRecord) -> None:
        update = upsert_update(record, datetime.now(timezone.utc))
        document = self._documents.get(record.number)
        if document is None:
            document = {**update["$setOnInsert"], "_seq": next(self._sequence)}
            self._documents[record.number] = document
        document.update(update["$set"])

    async def upsert_many(self, records: list[VideoRecord]) -> int:
        for record in records:
            await self.upsert(record)
        return len(records)

    async def delete(self, identifier: str) -> bool:
        document = self._find_document(identifier)
        if document is None:
            return False
        del self._documents[document["number"]]
        return True

    async def increment_views(self, identifier: str) -> None:
        document = self._find_document(identifier)
        if document is not None:
            document["views"] = document.get("views", 0) + 1

    def _find_document(self, identifier: str) -> Optional[dict[str, Any]]:
        if identifier in self._documents:
            return self._documents[identifier]
        for document in self._documents.values():
            if document["driveId"] == identifier:
                return document
        return None
