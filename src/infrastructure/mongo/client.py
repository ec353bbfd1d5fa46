"""
MongoDB connection management.

The handle owns the client and its lifecycle, and is injected into the
document store instead of living in a module-level global. It connects
once at startup; if MongoDB is unreachable it keeps retrying in the
background with a fixed delay, and until then the registry runs on the
JSON file alone.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ...core.videos.registry import StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class MongoConfig:
    """Configuration for the MongoDB connection."""
    uri: str
    database: str = "drivelink"
    collection: str = "videos"
    retry_delay_seconds: float = 5.0
    timeout_ms: int = 5000


class MongoHandle:
    """
    Connection handle with a readiness check.

    on_connect runs once after the first successful connection; the app
    uses it to sync the JSON registry into MongoDB.
    """

    def __init__(
        self,
        config: MongoConfig,
        on_connect: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> None:
        self._config = config
        self._on_connect = on_connect
        self._client = None
        self._collection = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self._collection is not None

    @property
    def collection(self):
        """The videos collection. Raises StoreUnavailableError until connected."""
        if self._collection is None:
            raise StoreUnavailableError("MongoDB is not connected")
        return self._collection

    def set_on_connect(self, callback: Callable[[], Awaitable[Any]]) -> None:
        self._on_connect = callback

    async def connect(self) -> None:
        """
        Open the client, ping the server and make sure indexes exist.

        We import pymongo here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            from pymongo import AsyncMongoClient
        except ImportError:
            raise ImportError(
                "pymongo is required for MongoDB storage. Install with: pip install pymongo"
            )

        client = AsyncMongoClient(
            self._config.uri,
            serverSelectionTimeoutMS=self._config.timeout_ms,
            connectTimeoutMS=self._config.timeout_ms,
            socketTimeoutMS=self._config.timeout_ms,
            tz_aware=True,
        )

        try:
            await client.admin.command("ping")
            collection = client[self._config.database][self._config.collection]
            await collection.create_index("number", unique=True)
            await collection.create_index("driveId")
        except Exception:
            await client.close()
            raise

        self._client = client
        self._collection = collection

        logger.info(
            "Connected to MongoDB",
            extra={
                "database": self._config.database,
                "collection": self._config.collection,
            }
        )

    def start(self) -> asyncio.Task:
        """Connect in the background, retrying until it works."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._connect_with_retry())
        return self._task

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        if self._client is not None:
            await self._client.close()
            logger.info("Closed MongoDB connection")
        self._client = None
        self._collection = None

    async def _connect_with_retry(self) -> None:
        attempt = 0
        while not self.is_ready:
            attempt += 1
            try:
                await self.connect()
            except Exception as e:
                logger.warning(
                    "MongoDB connection failed, retrying",
                    extra={
                        "attempt": attempt,
                        "delay_seconds": self._config.retry_delay_seconds,
                        "error": str(e),
                    }
                )
                await asyncio.sleep(self._config.retry_delay_seconds)

        if self._on_connect is not None:
            try:
                await self._on_connect()
            except Exception as e:
                logger.error("MongoDB on-connect hook failed", extra={"error": str(e)})
