"""
Registry facade over the two record stores.

The JSON file is the durable tier: always there, always the last resort.
The document store is the richer tier: preferred when reachable, carries
timestamps and view counts. Neither tier is allowed to break the other,
so every store call here is wrapped and logged rather than propagated.

Nothing is transactional across tiers. A write reaches whichever stores
were reachable at the time, and reads merge whatever each store returns.
"""

import logging
import random
from typing import Optional, Protocol

from .models import (
    NUMBER_MAX,
    NUMBER_MIN,
    LookupResult,
    VideoRecord,
    is_direct_reference,
)

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Base class for registry failures."""
    pass


class StoreUnavailableError(RegistryError):
    """Raised by a store that is not connected."""
    pass


class RegistryFullError(RegistryError):
    """Raised when every public number in the range is taken."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class PrimaryStore(Protocol):
    """The flat-file tier, keyed by public number."""

    async def read_all(self) -> dict[str, VideoRecord]:
        """All records in file order."""
        ...

    async def upsert(self, record: VideoRecord) -> None:
        ...

    async def upsert_many(self, records: list[VideoRecord]) -> None:
        ...

    async def remove(self, number: str) -> bool:
        """Remove one key. Returns False if it wasn't there."""
        ...


class SecondaryStore(Protocol):
    """The document-database tier. Lookups match number or driveId."""

    @property
    def is_ready(self) -> bool:
        ...

    async def list_records(self) -> list[VideoRecord]:
        """All records, newest first."""
        ...

    async def find(self, identifier: str) -> Optional[VideoRecord]:
        ...

    async def upsert(self, record: VideoRecord) -> None:
        ...

    async def upsert_many(self, records: list[VideoRecord]) -> int:
        ...

    async def delete(self, identifier: str) -> bool:
        ...

    async def increment_views(self, identifier: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Registry Facade
# ---------------------------------------------------------------------------

class VideoRegistry:
    """
    Unifies both stores behind one interface.

    Precedence: the document store wins on conflicts, and fields it lacks
    are backfilled from the JSON copy. Store failures never reach callers.
    """

    def __init__(
        self,
        primary: PrimaryStore,
        secondary: Optional[SecondaryStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._rng = rng or random.Random()

    @property
    def secondary_ready(self) -> bool:
        return self._secondary is not None and self._secondary.is_ready

    async def get_all(self) -> dict[str, VideoRecord]:
        """
        Union of both stores by number.

        Document store records come first (newest first), then records
        only the JSON file knows about, in file order. Returns an empty
        mapping if neither store can be read.
        """
        collected: dict[str, VideoRecord] = {}
        for record in await self._secondary_records():
            collected[record.number] = record

        for number, record in (await self._primary_records()).items():
            if number in collected:
                collected[number] = collected[number].backfilled_from(record)
            else:
                collected[number] = record

        return collected

    async def add(self, record: VideoRecord) -> None:
        """
        Upsert into both stores independently.

        Callers must assume the record reached only the stores that were
        reachable; neither failure is raised.
        """
        if self.secondary_ready:
            try:
                await self._secondary.upsert(record)
            except Exception as e:
                logger.error(
                    "Failed to write record to document store",
                    extra={"number": record.number, "error": str(e)}
                )

        try:
            await self._primary.upsert(record)
        except Exception as e:
            logger.error(
                "Failed to write record to JSON store",
                extra={"number": record.number, "error": str(e)}
            )

        logger.info(
            "Registered video",
            extra={"number": record.number, "drive_id": record.drive_id}
        )

    async def delete(self, identifier: str) -> bool:
        """
        Remove a record by number or driveId from both stores.

        Returns True if any store reported a removal.
        """
        removed = False

        primary = await self._primary_records()
        key = identifier if identifier in primary else None
        if key is None:
            key = next(
                (number for number, record in primary.items() if record.drive_id == identifier),
                None,
            )

        if key is not None:
            try:
                removed = await self._primary.remove(key) or removed
            except Exception as e:
                logger.error(
                    "Failed to remove record from JSON store",
                    extra={"number": key, "error": str(e)}
                )

        if self.secondary_ready:
            try:
                removed = await self._secondary.delete(identifier) or removed
            except Exception as e:
                logger.error(
                    "Failed to remove record from document store",
                    extra={"identifier": identifier, "error": str(e)}
                )

        return removed

    async def increment_views(self, identifier: str) -> None:
        """Bump the view counter. Document store only, best-effort."""
        if not self.secondary_ready:
            return
        try:
            await self._secondary.increment_views(identifier)
        except Exception as e:
            logger.debug(
                "View count not updated",
                extra={"identifier": identifier, "error": str(e)}
            )

    async def find_by_identifier(self, identifier: str) -> Optional[LookupResult]:
        """
        Resolve a public identifier to a Drive file.

        Raw Drive IDs are passed straight through so legacy links keep
        working. Otherwise the document store is asked first, then the
        JSON file by number and by driveId. Returns None if nothing matches.
        """
        identifier = identifier.strip()
        if not identifier:
            return None

        if is_direct_reference(identifier):
            return LookupResult(drive_id=identifier, is_direct=True)

        record = await self.resolve_record(identifier)
        if record is None:
            return None
        return LookupResult(drive_id=record.drive_id, record=record)

    async def resolve_record(self, identifier: str) -> Optional[VideoRecord]:
        """Find the stored record for a number or driveId, document store first."""
        if self.secondary_ready:
            try:
                found = await self._secondary.find(identifier)
                if found is not None:
                    return found
            except Exception as e:
                logger.warning(
                    "Document store lookup failed, using JSON store",
                    extra={"identifier": identifier, "error": str(e)}
                )

        primary = await self._primary_records()
        if identifier in primary:
            return primary[identifier]
        for record in primary.values():
            if record.drive_id == identifier:
                return record
        return None

    async def generate_number(self) -> str:
        """
        Draw a random public number not used by either store.

        Two uploads running at once can still draw the same number, since
        nothing is reserved between generation and add().
        """
        taken = set(await self.get_all())
        in_range = {n for n in taken if n.isdigit() and NUMBER_MIN <= int(n) <= NUMBER_MAX}
        if len(in_range) >= NUMBER_MAX - NUMBER_MIN + 1:
            raise RegistryFullError("No free video numbers left")

        while True:
            candidate = str(self._rng.randint(NUMBER_MIN, NUMBER_MAX))
            if candidate not in taken:
                return candidate

    async def snapshot(self) -> list[VideoRecord]:
        """
        List used for live updates.

        The document store listing when it has anything, otherwise the
        JSON file in file order.
        """
        records = await self._secondary_records()
        if records:
            return records
        return list((await self._primary_records()).values())

    async def sync_primary_to_secondary(self) -> int:
        """
        Copy every JSON record into the document store in one batch.

        Returns the number of records written, 0 if the document store
        isn't available.
        """
        if not self.secondary_ready:
            return 0

        records = list((await self._primary_records()).values())
        if not records:
            return 0

        try:
            count = await self._secondary.upsert_many(records)
        except Exception as e:
            logger.error(
                "Bulk sync to document store failed",
                extra={"count": len(records), "error": str(e)}
            )
            return 0

        logger.info("Synced JSON registry to document store", extra={"count": count})
        return count

    async def _secondary_records(self) -> list[VideoRecord]:
        if not self.secondary_ready:
            return []
        try:
            return await self._secondary.list_records()
        except Exception as e:
            logger.warning(
                "Document store unavailable, using JSON store only",
                extra={"error": str(e)}
            )
            return []

    async def _primary_records(self) -> dict[str, VideoRecord]:
        try:
            return await self._primary.read_all()
        except Exception as e:
            logger.error("Failed to read JSON store", extra={"error": str(e)})
            return {}
