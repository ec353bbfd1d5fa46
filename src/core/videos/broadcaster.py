"""
Live-update fan-out.

Subscribers are whatever the transport layer hands us (WebSockets in the
API). Delivery is fire-and-forget: closed subscribers are skipped, a
failed send drops the subscriber, nothing is queued or retried.
"""

import json
import logging
from typing import Protocol

from .models import EventType, LiveEvent
from .registry import VideoRegistry

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """An open live-update channel."""

    @property
    def is_open(self) -> bool:
        ...

    async def send_text(self, message: str) -> None:
        ...


class ChangeBroadcaster:
    """Pushes registry snapshots to every connected subscriber."""

    def __init__(self, registry: VideoRegistry, base_url: str) -> None:
        self._registry = registry
        self._base_url = base_url
        self._subscribers: set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.add(subscriber)
        logger.debug("Subscriber connected", extra={"subscribers": len(self._subscribers)})

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.discard(subscriber)
        logger.debug("Subscriber disconnected", extra={"subscribers": len(self._subscribers)})

    async def publish(self, event: LiveEvent) -> int:
        """Send an event to every open subscriber. Returns how many got it."""
        message = json.dumps(event.to_message())
        delivered = 0

        # copy, subscribers may disconnect while we await
        for subscriber in list(self._subscribers):
            if not subscriber.is_open:
                continue
            try:
                await subscriber.send_text(message)
                delivered += 1
            except Exception as e:
                logger.debug("Dropping subscriber after failed send", extra={"error": str(e)})
                self._subscribers.discard(subscriber)

        return delivered

    async def broadcast_videos(self) -> int:
        """Publish the current registry listing as a videos_updated event."""
        try:
            records = await self._registry.snapshot()
        except Exception as e:
            logger.error("Error building video update", extra={"error": str(e)})
            return 0

        videos = [record.to_public(self._base_url) for record in records]
        delivered = await self.publish(
            LiveEvent(type=EventType.VIDEOS_UPDATED, payload={"videos": videos})
        )

        logger.debug(
            "Broadcast video update",
            extra={"videos": len(videos), "delivered": delivered}
        )
        return delivered
