"""
Unit tests for upload/delete orchestration.

Drive is the in-memory mock (or a flaky subclass of it); the registry
runs on a temp JSON file plus the in-memory document store.
"""

import json

import pytest

from src.core.videos.models import NUMBER_MAX, NUMBER_MIN
from src.core.videos.registry import VideoRegistry
from src.core.videos.service import (
    BlobErrorKind,
    DriveNotConnectedError,
    DriveOperationError,
    EmptyUploadError,
    VideoNotFoundError,
    VideoService,
)
from src.infrastructure.drive.client import MockDriveBlobStore
from src.infrastructure.drive.credentials import MockCredentialProvider

from conftest import DRIVE_ID, FlakyBlobStore, RecordingSubscriber, SequenceRandom, make_record


BASE_URL = "https://videos.example.com"


@pytest.fixture
def drive() -> FlakyBlobStore:
    return FlakyBlobStore()


@pytest.fixture
def credentials() -> MockCredentialProvider:
    return MockCredentialProvider()


@pytest.fixture
def service(registry, broadcaster, drive, credentials) -> VideoService:
    return VideoService(registry, broadcaster, drive, "folder-1", BASE_URL, credentials)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

class TestUpload:
    """Drive first, then the registry, then a broadcast."""

    async def test_upload_registers_and_returns_link(self, service, drive, registry):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert result.id in drive.files
        assert drive.files[result.id]["public"] is True
        assert drive.files[result.id]["parents"] == ["folder-1"]
        assert result.link == f"{BASE_URL}/?video={result.number}"
        assert result.name == "clip.mp4"

        found = await registry.find_by_identifier(result.number)
        assert found.drive_id == result.id

    async def test_uploaded_link_resolves_through_number(self, service):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")
        number = result.link.rsplit("=", 1)[1]

        lookup = await service.resolve(number)

        assert lookup.drive_id == result.id

    async def test_size_is_recorded_in_json_file(self, service, videos_file):
        result = await service.upload(b"12345", "clip.mp4", "video/mp4")

        entry = json.loads(videos_file.read_text())[result.number]

        assert entry == {"driveId": result.id, "name": "clip.mp4", "size": 5}

    async def test_upload_broadcasts_new_listing(self, service, broadcaster):
        subscriber = RecordingSubscriber()
        broadcaster.subscribe(subscriber)

        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        message = json.loads(subscriber.messages[-1])
        assert message["type"] == "videos_updated"
        assert [v["number"] for v in message["videos"]] == [result.number]

    async def test_missing_mime_type_defaults_to_octet_stream(self, service, drive):
        result = await service.upload(b"video-bytes", "clip.bin", None)
        assert drive.files[result.id]["mimeType"] == "application/octet-stream"

    async def test_empty_upload_is_rejected(self, service, drive):
        with pytest.raises(EmptyUploadError):
            await service.upload(b"", "clip.mp4", "video/mp4")
        assert drive.files == {}

    async def test_without_drive_connection(self, registry, broadcaster):
        service = VideoService(registry, broadcaster, None, "folder-1", BASE_URL)

        with pytest.raises(DriveNotConnectedError):
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

    async def test_drive_failure_registers_nothing(self, service, drive, registry):
        drive.fail("create", BlobErrorKind.FAILED)

        with pytest.raises(DriveOperationError) as exc_info:
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert exc_info.value.reconnect is False
        assert await registry.get_all() == {}

    async def test_permission_failure_registers_nothing(self, service, drive, registry):
        drive.fail("permission", BlobErrorKind.TRANSIENT)

        with pytest.raises(DriveOperationError):
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert await registry.get_all() == {}

    async def test_permission_failure_removes_created_file(self, service, drive):
        drive.fail("permission", BlobErrorKind.FAILED)

        with pytest.raises(DriveOperationError):
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert drive.files == {}
        assert drive.calls["delete"] == 1

    async def test_failed_cleanup_still_reports_the_upload_error(self, service, drive):
        drive.fail("permission", BlobErrorKind.FAILED)
        drive.fail("delete", BlobErrorKind.TRANSIENT)

        with pytest.raises(DriveOperationError) as exc_info:
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert exc_info.value.details == "permission failed"
        assert len(drive.files) == 1

    async def test_create_failure_has_nothing_to_clean_up(self, service, drive):
        drive.fail("create", BlobErrorKind.FAILED)

        with pytest.raises(DriveOperationError):
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert "delete" not in drive.calls

    async def test_expired_credentials_are_refreshed_and_retried(self, service, drive, credentials):
        drive.fail("create", BlobErrorKind.AUTH_EXPIRED)

        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert credentials.refresh_count == 1
        assert drive.calls["create"] == 2
        assert result.id in drive.files

    async def test_expired_credentials_without_refresh_token_ask_to_reconnect(
        self, registry, broadcaster, drive
    ):
        service = VideoService(
            registry, broadcaster, drive, "folder-1", BASE_URL,
            MockCredentialProvider(can_refresh=False),
        )
        drive.fail("create", BlobErrorKind.AUTH_EXPIRED)

        with pytest.raises(DriveOperationError) as exc_info:
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert exc_info.value.reconnect is True
        assert drive.calls["create"] == 1

    async def test_rejected_again_after_refresh_asks_to_reconnect(self, service, drive, credentials):
        drive.fail("create", BlobErrorKind.AUTH_EXPIRED, times=2)

        with pytest.raises(DriveOperationError) as exc_info:
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert exc_info.value.reconnect is True
        assert credentials.refresh_count == 1

    async def test_full_registry_fails_upload(self, json_store, document_store, broadcaster, drive):
        await json_store.upsert_many([
            make_record(str(n)) for n in range(NUMBER_MIN, NUMBER_MAX + 1)
        ])
        registry = VideoRegistry(json_store, document_store)
        service = VideoService(registry, broadcaster, drive, "folder-1", BASE_URL)

        with pytest.raises(DriveOperationError):
            await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert drive.files == {}

    async def test_generated_number_avoids_existing_ones(self, json_store, broadcaster, drive):
        await json_store.upsert(make_record("1000"))
        registry = VideoRegistry(json_store, rng=SequenceRandom(1000, 2000))
        service = VideoService(registry, broadcaster, drive, "folder-1", BASE_URL)

        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        assert result.number == "2000"


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

class TestRemove:
    """Drive delete first; the registry only changes once Drive agrees."""

    async def test_remove_by_number(self, service, drive, registry):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        await service.remove(result.number)

        assert result.id not in drive.files
        assert await registry.find_by_identifier(result.number) is None

    async def test_remove_by_drive_id(self, service, drive, registry):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")

        await service.remove(result.id)

        assert await registry.find_by_identifier(result.number) is None
        assert await registry.get_all() == {}

    async def test_second_remove_is_not_found(self, service):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")
        await service.remove(result.number)

        with pytest.raises(VideoNotFoundError):
            await service.remove(result.number)

    async def test_unknown_identifier_is_not_found(self, service, drive):
        with pytest.raises(VideoNotFoundError):
            await service.remove("1234")
        assert "delete" not in drive.calls

    async def test_drive_failure_keeps_registry_entry(self, service, drive, registry):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")
        drive.fail("delete", BlobErrorKind.TRANSIENT)

        with pytest.raises(DriveOperationError):
            await service.remove(result.number)

        assert await registry.find_by_identifier(result.number) is not None

    async def test_missing_drive_file_still_cleans_registry(self, service, registry):
        await registry.add(make_record("4821", "gone-from-drive"))

        await service.remove("4821")

        assert await registry.find_by_identifier("4821") is None

    async def test_remove_broadcasts(self, service, broadcaster):
        result = await service.upload(b"video-bytes", "clip.mp4", "video/mp4")
        subscriber = RecordingSubscriber()
        broadcaster.subscribe(subscriber)

        await service.remove(result.number)

        assert json.loads(subscriber.messages[-1])["videos"] == []

    async def test_without_drive_connection(self, registry, broadcaster):
        service = VideoService(registry, broadcaster, None, "folder-1", BASE_URL)

        with pytest.raises(DriveNotConnectedError):
            await service.remove("4821")


# ---------------------------------------------------------------------------
# Read paths
# ---------------------------------------------------------------------------

class TestReadPaths:
    """Listing and public resolution work without a Drive connection."""

    async def test_list_videos_uses_admin_shape(self, registry, broadcaster):
        await registry.add(make_record("4821", "drive-abc"))
        service = VideoService(registry, broadcaster, None, "folder-1", BASE_URL)

        videos = await service.list_videos()

        assert videos[0]["number"] == "4821"
        assert videos[0]["driveLink"] == "https://drive.google.com/file/d/drive-abc/view"
        assert videos[0]["views"] == 0

    async def test_resolve_counts_a_view(self, registry, broadcaster, document_store):
        await registry.add(make_record("4821", "drive-abc"))
        service = VideoService(registry, broadcaster, None, "folder-1", BASE_URL)

        await service.resolve("4821")

        assert (await document_store.find("4821")).views == 1

    async def test_resolve_direct_reference(self, registry, broadcaster):
        service = VideoService(registry, broadcaster, MockDriveBlobStore(), "folder-1", BASE_URL)

        result = await service.resolve(DRIVE_ID)

        assert result.is_direct is True
        assert result.drive_id == DRIVE_ID

    async def test_resolve_unknown_returns_none(self, registry, broadcaster):
        service = VideoService(registry, broadcaster, None, "folder-1", BASE_URL)
        assert await service.resolve("1234") is None
