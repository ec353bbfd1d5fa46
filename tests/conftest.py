"""
Shared fixtures and fakes.

Stores and subscribers here are deliberately small: they fail or record
calls so tests can check how the registry reacts, without a database.
"""

import random
from typing import Optional

import pytest

from src.core.videos.broadcaster import ChangeBroadcaster
from src.core.videos.models import VideoRecord
from src.core.videos.registry import VideoRegistry
from src.core.videos.service import BlobErrorKind, BlobStoreError
from src.infrastructure.drive.client import MockDriveBlobStore
from src.infrastructure.mongo.repository import MockDocumentStore
from src.infrastructure.storage.json_store import JsonRecordStore


# a real Drive ID shape: 33 URL-safe characters
DRIVE_ID = "1a2B3c4D5e6F7g8H9i0JkLmNoPqRsTuVw"


class UnreachableSecondaryStore:
    """Claims to be connected but fails every call, like a dropped MongoDB."""

    is_ready = True

    def __init__(self) -> None:
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise ConnectionError("connection refused")

    list_records = _fail
    find = _fail
    upsert = _fail
    upsert_many = _fail
    delete = _fail
    increment_views = _fail


class BrokenPrimaryStore:
    """A JSON store whose file can't be read or written."""

    def __init__(self) -> None:
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise PermissionError("read-only filesystem")

    read_all = _fail
    upsert = _fail
    upsert_many = _fail
    remove = _fail


class SequenceRandom(random.Random):
    """Returns the given values from randint, in order, then repeats the last."""

    def __init__(self, *values: int) -> None:
        super().__init__()
        self._values = list(values)

    def randint(self, a: int, b: int) -> int:
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


class RecordingSubscriber:
    """Collects every message; can pretend to be closed or broken."""

    def __init__(self, is_open: bool = True, broken: bool = False) -> None:
        self.is_open = is_open
        self.broken = broken
        self.messages: list[str] = []

    async def send_text(self, message: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.messages.append(message)


class FlakyBlobStore(MockDriveBlobStore):
    """In-memory Drive that fails queued calls before behaving normally."""

    def __init__(self) -> None:
        super().__init__()
        self.failures: dict[str, list[BlobStoreError]] = {}
        self.calls: dict[str, int] = {}

    def fail(self, operation: str, kind: BlobErrorKind, times: int = 1) -> None:
        self.failures.setdefault(operation, []).extend(
            BlobStoreError(f"{operation} failed", kind) for _ in range(times)
        )

    def _maybe_fail(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    async def create(self, data: bytes, name: str, mime_type: str, folder_id: str) -> str:
        self._maybe_fail("create")
        return await super().create(data, name, mime_type, folder_id)

    async def set_public_read_permission(self, file_id: str) -> None:
        self._maybe_fail("permission")
        await super().set_public_read_permission(file_id)

    async def delete(self, file_id: str) -> None:
        self._maybe_fail("delete")
        await super().delete(file_id)


@pytest.fixture
def videos_file(tmp_path):
    return tmp_path / "public" / "videos.json"


@pytest.fixture
def json_store(videos_file) -> JsonRecordStore:
    store = JsonRecordStore(videos_file)
    store.ensure_exists()
    return store


@pytest.fixture
def document_store() -> MockDocumentStore:
    return MockDocumentStore()


@pytest.fixture
def registry(json_store, document_store) -> VideoRegistry:
    return VideoRegistry(json_store, document_store)


@pytest.fixture
def broadcaster(registry) -> ChangeBroadcaster:
    return ChangeBroadcaster(registry, "https://videos.example.com")


def make_record(number: str, drive_id: Optional[str] = None, name: str = "clip.mp4", **kwargs) -> VideoRecord:
    return VideoRecord(number=number, drive_id=drive_id or f"drive-{number}", name=name, **kwargs)
