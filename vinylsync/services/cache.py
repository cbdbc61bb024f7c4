"""Local cache of the normalized collection.

Records and their metadata live under two keys of a :class:`KeyValueStore`
and are always written together through one ``set_many`` call, so a reader
never observes a snapshot from one sync paired with metadata from another.
A snapshot without metadata is treated as absent.

Instances do no internal locking and must not be shared by independent
writers.
"""

from __future__ import annotations

import json
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import ValidationError

from vinylsync.domain.models import NormalizedRecord
from vinylsync.errors import CacheError, RecordNotFoundError
from vinylsync.infrastructure.db import KeyValueStore
from vinylsync.infrastructure.observability import get_logger
from vinylsync.services.dto import CacheMetadata, CacheSnapshot

logger = get_logger(__name__)

COLLECTION_KEY = "vinyl_collection"
METADATA_KEY = "collection_metadata"
CACHE_VERSION = "1.0.0"
DEFAULT_TTL_HOURS = 24.0


def epoch_ms() -> int:
    return int(time.time() * 1000)


def format_bytes(size: int) -> str:
    """Format a byte count as ``"1.5 KB"`` style text."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def format_age(ms: int) -> str:
    """Format an age in milliseconds as ``"3 hours ago"`` style text."""
    seconds = max(0, ms) // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    for amount, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if amount > 0:
            return f"{amount} {unit}{'s' if amount > 1 else ''} ago"
    return f"{seconds} second{'s' if seconds != 1 else ''} ago"


@dataclass
class CacheStatus:
    """Summary of the cached collection for status displays."""

    has_cache: bool
    is_valid: bool
    last_sync: datetime | None = None
    total_records: int | None = None
    cache_size: str | None = None
    age: str | None = None


class CollectionCache:
    """TTL cache of :class:`NormalizedRecord` lists over a key/value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.store = store
        self.ttl_ms = int(ttl_hours * 60 * 60 * 1000)
        self._clock = clock

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _dump_records(records: list[NormalizedRecord]) -> str:
        try:
            return json.dumps([r.to_dict() for r in records])
        except (TypeError, ValueError) as exc:
            raise CacheError(f"Failed to serialise collection: {exc}") from exc

    @staticmethod
    def _load_records(raw: str) -> list[NormalizedRecord]:
        try:
            data = json.loads(raw)
            return [NormalizedRecord.from_dict(item) for item in data]
        except (TypeError, ValueError, AttributeError) as exc:
            raise CacheError(f"Cached collection is corrupt: {exc}") from exc

    @staticmethod
    def _load_metadata(raw: str) -> CacheMetadata:
        try:
            return CacheMetadata.model_validate_json(raw)
        except ValidationError as exc:
            raise CacheError(f"Cached metadata is corrupt: {exc.error_count()} error(s)") from exc

    async def _load(self) -> tuple[list[NormalizedRecord], CacheMetadata] | None:
        entries = await self.store.get_many([COLLECTION_KEY, METADATA_KEY])
        raw_records = entries.get(COLLECTION_KEY)
        raw_metadata = entries.get(METADATA_KEY)
        if raw_records is None or raw_metadata is None:
            return None
        return self._load_records(raw_records), self._load_metadata(raw_metadata)

    async def _save(self, records: list[NormalizedRecord], metadata: CacheMetadata) -> None:
        await self.store.set_many(
            {
                COLLECTION_KEY: self._dump_records(records),
                METADATA_KEY: metadata.model_dump_json(),
            }
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def read(self) -> list[NormalizedRecord] | None:
        loaded = await self._load()
        return loaded[0] if loaded else None

    async def read_metadata(self) -> CacheMetadata | None:
        loaded = await self._load()
        return loaded[1] if loaded else None

    def _is_fresh(self, metadata: CacheMetadata) -> bool:
        return self._clock() - metadata.last_sync < self.ttl_ms

    async def is_valid(self) -> bool:
        """Whether a fresh, readable snapshot is cached. Corrupt entries count as stale."""
        try:
            metadata = await self.read_metadata()
        except CacheError as exc:
            logger.warning("Ignoring unreadable cache: %s", exc)
            return False
        return metadata is not None and self._is_fresh(metadata)

    async def status(self) -> CacheStatus:
        entries = await self.store.get_many([COLLECTION_KEY, METADATA_KEY])
        raw_records = entries.get(COLLECTION_KEY)
        raw_metadata = entries.get(METADATA_KEY)
        if raw_records is None or raw_metadata is None:
            return CacheStatus(has_cache=False, is_valid=False)
        try:
            metadata = self._load_metadata(raw_metadata)
        except CacheError as exc:
            logger.warning("Cache status unavailable: %s", exc)
            return CacheStatus(has_cache=False, is_valid=False)
        return CacheStatus(
            has_cache=True,
            is_valid=self._is_fresh(metadata),
            last_sync=datetime.fromtimestamp(metadata.last_sync / 1000, tz=timezone.utc),
            total_records=metadata.total_records,
            cache_size=format_bytes(len(raw_records.encode("utf-8"))),
            age=format_age(self._clock() - metadata.last_sync),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def write(
        self,
        records: list[NormalizedRecord],
        duration_ms: int = 0,
        errors: list[str] | None = None,
    ) -> CacheMetadata:
        """Replace the snapshot and its metadata in one store write."""
        metadata = CacheMetadata(
            last_sync=self._clock(),
            version=CACHE_VERSION,
            total_records=len(records),
            sync_duration=duration_ms,
            errors=list(errors) if errors else None,
        )
        await self._save(records, metadata)
        logger.info("Cached %d records", len(records))
        return metadata

    async def clear(self) -> None:
        await self.store.delete_many([COLLECTION_KEY, METADATA_KEY])
        logger.info("Cache cleared")

    async def _require(self) -> tuple[list[NormalizedRecord], CacheMetadata]:
        loaded = await self._load()
        if loaded is None:
            raise CacheError("No cached collection found")
        return loaded

    async def update_one(self, record_id: str, record: NormalizedRecord) -> None:
        records, metadata = await self._require()
        for i, existing in enumerate(records):
            if existing.id == record_id:
                records[i] = record
                break
        else:
            raise RecordNotFoundError(f"Record with ID {record_id} not found in cache")
        metadata.total_records = len(records)
        await self._save(records, metadata)
        logger.info("Updated record %s in cache", record_id)

    async def add_one(self, record: NormalizedRecord) -> None:
        """Insert ``record``, replacing any cached record with the same id.

        Without an existing cache a new snapshot is started whose
        ``last_sync`` is 0, so it never counts as a fresh sync.
        """
        loaded = await self._load()
        if loaded is None:
            records: list[NormalizedRecord] = []
            metadata = CacheMetadata(last_sync=0, version=CACHE_VERSION, total_records=0)
        else:
            records, metadata = loaded
        for i, existing in enumerate(records):
            if existing.id == record.id:
                records[i] = record
                break
        else:
            records.append(record)
        metadata.total_records = len(records)
        await self._save(records, metadata)
        logger.info("Added/updated record %s in cache", record.id)

    async def remove_one(self, record_id: str) -> None:
        records, metadata = await self._require()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            raise RecordNotFoundError(f"Record with ID {record_id} not found in cache")
        metadata.total_records = len(remaining)
        await self._save(remaining, metadata)
        logger.info("Removed record %s from cache", record_id)

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------
    async def export(self) -> CacheSnapshot | None:
        loaded = await self._load()
        if loaded is None:
            return None
        records, metadata = loaded
        return CacheSnapshot(records=records, metadata=metadata)

    async def import_snapshot(self, snapshot: CacheSnapshot) -> CacheMetadata:
        """Replace the cache with ``snapshot``, stamped as synced now."""
        duplicates = sorted(
            record_id
            for record_id, count in Counter(r.id for r in snapshot.records).items()
            if count > 1
        )
        if duplicates:
            raise CacheError(f"Backup contains duplicate record ids: {', '.join(duplicates)}")
        return await self.write(
            list(snapshot.records),
            snapshot.metadata.sync_duration,
            snapshot.metadata.errors,
        )


__all__ = [
    "CACHE_VERSION",
    "COLLECTION_KEY",
    "CacheStatus",
    "CollectionCache",
    "METADATA_KEY",
    "format_age",
    "format_bytes",
]
