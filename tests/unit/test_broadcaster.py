"""
Unit tests for the live-update broadcaster.
"""

import json

from src.core.videos.models import EventType, LiveEvent

from conftest import RecordingSubscriber, make_record


class TestPublish:
    """Delivery rules for a single event."""

    async def test_every_open_subscriber_gets_the_message(self, broadcaster):
        first, second = RecordingSubscriber(), RecordingSubscriber()
        broadcaster.subscribe(first)
        broadcaster.subscribe(second)

        delivered = await broadcaster.publish(
            LiveEvent(type=EventType.SESSION_UPDATE, payload={"connected": True})
        )

        assert delivered == 2
        assert json.loads(first.messages[0]) == {"type": "session_update", "connected": True}
        assert first.messages == second.messages

    async def test_closed_subscriber_is_skipped_but_kept(self, broadcaster):
        closed = RecordingSubscriber(is_open=False)
        broadcaster.subscribe(closed)

        delivered = await broadcaster.publish(LiveEvent(type=EventType.VIDEOS_UPDATED))

        assert delivered == 0
        assert closed.messages == []
        assert broadcaster.subscriber_count == 1

    async def test_failed_send_drops_subscriber(self, broadcaster):
        broken, healthy = RecordingSubscriber(broken=True), RecordingSubscriber()
        broadcaster.subscribe(broken)
        broadcaster.subscribe(healthy)

        delivered = await broadcaster.publish(LiveEvent(type=EventType.VIDEOS_UPDATED))

        assert delivered == 1
        assert len(healthy.messages) == 1
        assert broadcaster.subscriber_count == 1

    async def test_no_subscribers_is_fine(self, broadcaster):
        assert await broadcaster.publish(LiveEvent(type=EventType.VIDEOS_UPDATED)) == 0

    def test_unsubscribe_unknown_subscriber_is_a_no_op(self, broadcaster):
        broadcaster.unsubscribe(RecordingSubscriber())
        assert broadcaster.subscriber_count == 0


class TestBroadcastVideos:
    """videos_updated carries the registry snapshot in public form."""

    async def test_payload_lists_public_records(self, broadcaster, registry):
        await registry.add(make_record("4821", "drive-abc", name="clip.mp4"))
        subscriber = RecordingSubscriber()
        broadcaster.subscribe(subscriber)

        await broadcaster.broadcast_videos()

        message = json.loads(subscriber.messages[0])
        assert message == {
            "type": "videos_updated",
            "videos": [{
                "number": "4821",
                "id": "drive-abc",
                "name": "clip.mp4",
                "link": "https://videos.example.com/?video=4821",
            }],
        }

    async def test_newest_first_from_document_store(self, broadcaster, registry):
        await registry.add(make_record("1000"))
        await registry.add(make_record("2000"))
        subscriber = RecordingSubscriber()
        broadcaster.subscribe(subscriber)

        await broadcaster.broadcast_videos()

        videos = json.loads(subscriber.messages[0])["videos"]
        assert [v["number"] for v in videos] == ["2000", "1000"]

    async def test_empty_registry_sends_empty_list(self, broadcaster):
        subscriber = RecordingSubscriber()
        broadcaster.subscribe(subscriber)

        await broadcaster.broadcast_videos()

        assert json.loads(subscriber.messages[0])["videos"] == []
