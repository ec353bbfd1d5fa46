"""
Unit tests for the MongoDB tier that don't need a server.

Query shapes are checked as plain dicts; the connection loop is driven
with a handle whose connect() is scripted.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from src.core.videos.registry import StoreUnavailableError, VideoRegistry
from src.infrastructure.mongo.client import MongoConfig, MongoHandle
from src.infrastructure.mongo.repository import (
    MockDocumentStore,
    MongoRecordStore,
    document_to_record,
    documents_to_records,
    identifier_filter,
    upsert_update,
)

from conftest import make_record


class FakeCursor:
    """Just enough of an async cursor for list_records."""

    def __init__(self, documents):
        self._documents = documents

    def sort(self, key, direction):
        return self

    async def to_list(self, length=None):
        return list(self._documents)


class FakeCollection:
    def __init__(self, documents):
        self._documents = documents

    def find(self, query, projection=None):
        return FakeCursor(self._documents)


class ConnectedHandle(MongoHandle):
    """A handle that is already connected to the given collection."""

    def __init__(self, collection):
        super().__init__(MongoConfig(uri="mongodb://localhost"))
        self._collection = collection


class TestQueryShapes:
    """Documents and filters sent to MongoDB."""

    def test_identifier_filter_matches_number_or_drive_id(self):
        assert identifier_filter("4821") == {
            "$or": [{"number": "4821"}, {"driveId": "4821"}]
        }

    def test_upsert_only_sets_metadata_on_insert(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)

        update = upsert_update(make_record("4821", "abc", name="x.mp4"), now)

        assert update == {
            "$set": {"number": "4821", "driveId": "abc", "name": "x.mp4"},
            "$setOnInsert": {"createdAt": now, "views": 0},
        }

    def test_upsert_sets_size_when_known(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        update = upsert_update(make_record("4821", size=10), now)
        assert update["$set"]["size"] == 10

    def test_document_to_record(self):
        created = datetime(2024, 5, 1, tzinfo=timezone.utc)

        record = document_to_record({
            "number": 4821,
            "driveId": "abc",
            "name": "x.mp4",
            "createdAt": created,
            "views": 3,
        })

        assert record.number == "4821"
        assert record.created_at == created
        assert record.views == 3
        assert record.size is None


class TestMockDocumentStore:
    """The in-memory store follows the same upsert rules as MongoDB."""

    async def test_re_upsert_keeps_created_at_and_views(self, document_store):
        await document_store.upsert(make_record("4821", "abc"))
        await document_store.increment_views("4821")
        first = await document_store.find("4821")

        await document_store.upsert(make_record("4821", "abc", name="renamed.mp4"))
        second = await document_store.find("4821")

        assert second.name == "renamed.mp4"
        assert second.views == 1
        assert second.created_at == first.created_at

    async def test_find_and_delete_by_drive_id(self, document_store):
        await document_store.upsert(make_record("4821", "abc"))

        assert (await document_store.find("abc")).number == "4821"
        assert await document_store.delete("abc") is True
        assert await document_store.delete("abc") is False

    async def test_increment_unknown_identifier_is_a_no_op(self, document_store):
        await document_store.increment_views("missing")
        assert await document_store.list_records() == []


class TestMalformedDocuments:
    """One bad document must not hide the rest of the collection."""

    def test_documents_without_drive_id_are_skipped(self):
        records = documents_to_records([
            {"number": "1000", "name": "no-drive-id.mp4"},
            {"driveId": "no-number"},
            {"number": "2000", "driveId": "abc", "name": "ok.mp4"},
        ])

        assert [r.number for r in records] == ["2000"]

    async def test_listing_keeps_valid_documents(self):
        store = MongoRecordStore(ConnectedHandle(FakeCollection([
            {"number": "1000", "name": "broken.mp4"},
            {"number": "2000", "driveId": "abc", "name": "ok.mp4", "views": 4},
        ])))

        records = await store.list_records()

        assert [r.number for r in records] == ["2000"]
        assert records[0].views == 4

    async def test_registry_still_sees_document_store_records(self, json_store):
        store = MongoRecordStore(ConnectedHandle(FakeCollection([
            {"number": "1000", "name": "broken.mp4"},
            {"number": "2000", "driveId": "abc", "name": "ok.mp4", "views": 4},
        ])))
        registry = VideoRegistry(json_store, store)

        records = await registry.get_all()

        assert records["2000"].views == 4
        assert [r.number for r in await registry.snapshot()] == ["2000"]


class TestMongoHandle:
    """Readiness and the background connection loop."""

    def test_collection_before_connect_raises(self):
        handle = MongoHandle(MongoConfig(uri="mongodb://localhost"))

        assert handle.is_ready is False
        with pytest.raises(StoreUnavailableError):
            handle.collection

    async def test_store_on_unconnected_handle_raises(self):
        store = MongoRecordStore(MongoHandle(MongoConfig(uri="mongodb://localhost")))

        assert store.is_ready is False
        with pytest.raises(StoreUnavailableError):
            await store.find("4821")

    async def test_retry_until_connected_then_run_hook_once(self):
        hook_calls = []

        class ScriptedHandle(MongoHandle):
            attempts = 0

            async def connect(self):
                self.attempts += 1
                if self.attempts < 3:
                    raise ConnectionError("connection refused")
                self._collection = object()

        async def on_connect():
            hook_calls.append(True)

        handle = ScriptedHandle(
            MongoConfig(uri="mongodb://localhost", retry_delay_seconds=0),
            on_connect=on_connect,
        )

        await handle.start()

        assert handle.attempts == 3
        assert handle.is_ready
        assert hook_calls == [True]

    async def test_failing_hook_does_not_break_the_handle(self):
        class ImmediateHandle(MongoHandle):
            async def connect(self):
                self._collection = object()

        async def on_connect():
            raise RuntimeError("sync failed")

        handle = ImmediateHandle(MongoConfig(uri="mongodb://localhost"), on_connect=on_connect)

        await handle.start()

        assert handle.is_ready

    async def test_close_cancels_pending_retry(self):
        class NeverConnects(MongoHandle):
            async def connect(self):
                raise ConnectionError("connection refused")

        handle = NeverConnects(MongoConfig(uri="mongodb://localhost", retry_delay_seconds=60))
        task = handle.start()
        await asyncio.sleep(0)

        await handle.close()

        assert task.cancelled()
        assert handle.is_ready is False
