import asyncio

import pytest

from discogs_fakes import ManualClock
from vinylsync.domain.models import NormalizedRecord, Track
from vinylsync.errors import CacheError, RecordNotFoundError
from vinylsync.infrastructure.db import MemoryKeyValueStore, SqliteKeyValueStore
from vinylsync.services.cache import (
    CACHE_VERSION,
    COLLECTION_KEY,
    METADATA_KEY,
    CollectionCache,
    format_age,
    format_bytes,
)
from vinylsync.services.dto import CacheMetadata, CacheSnapshot


def _record(record_id: str, title: str = "Kind of Blue") -> NormalizedRecord:
    return NormalizedRecord(
        id=record_id,
        title=title,
        artist="Miles Davis",
        year="1959",
        label="Columbia",
        catalog_number="CL 1355",
        cover_url="https://img.example/cover.jpg",
        tracks=[Track(1, "So What", "9:22")],
        genres=["Jazz"],
        master_id="7",
    )


def _cache(store=None, clock=None) -> CollectionCache:
    return CollectionCache(store or MemoryKeyValueStore(), clock=clock or ManualClock())


def test_write_then_read_returns_equal_records() -> None:
    store = MemoryKeyValueStore()
    cache = _cache(store)
    records = [_record("1"), _record("2", "Sketches of Spain")]

    async def run():
        metadata = await cache.write(records, duration_ms=1234, errors=["master 7 failed"])
        return metadata, await cache.read(), await cache.read_metadata()

    written, loaded, metadata = asyncio.run(run())

    assert loaded == records
    assert metadata == written
    assert metadata.version == CACHE_VERSION
    assert metadata.total_records == 2
    assert metadata.sync_duration == 1234
    assert metadata.errors == ["master 7 failed"]
    assert store.writes == 1
    assert set(store.data) == {COLLECTION_KEY, METADATA_KEY}


def test_empty_cache_reads_as_absent() -> None:
    cache = _cache()

    async def run():
        return await cache.read(), await cache.read_metadata(), await cache.is_valid()

    assert asyncio.run(run()) == (None, None, False)


def test_ttl_expiry() -> None:
    clock = ManualClock()
    cache = _cache(clock=clock)

    async def run() -> list[bool]:
        await cache.write([_record("1")])
        results = [await cache.is_valid()]
        clock.advance_hours(23.9)
        results.append(await cache.is_valid())
        clock.advance_hours(1.1)
        results.append(await cache.is_valid())
        return results

    assert asyncio.run(run()) == [True, True, False]


def test_status_reports_size_and_age() -> None:
    clock = ManualClock()
    cache = _cache(clock=clock)

    async def run():
        empty = await cache.status()
        await cache.write([_record("1")])
        clock.advance_hours(3)
        return empty, await cache.status()

    empty, status = asyncio.run(run())

    assert not empty.has_cache and not empty.is_valid
    assert status.has_cache
    assert status.is_valid
    assert status.total_records == 1
    assert status.age == "3 hours ago"
    assert status.cache_size.endswith("Bytes") or status.cache_size.endswith("KB")
    assert status.last_sync is not None
    assert int(status.last_sync.timestamp() * 1000) == clock.now_ms - 3 * 60 * 60 * 1000


def test_format_helpers() -> None:
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024) == "5 MB"
    assert format_age(0) == "0 seconds ago"
    assert format_age(1000) == "1 second ago"
    assert format_age(90 * 1000) == "1 minute ago"
    assert format_age(2 * 24 * 60 * 60 * 1000) == "2 days ago"


def test_snapshot_without_metadata_is_treated_as_absent() -> None:
    store = MemoryKeyValueStore({COLLECTION_KEY: "[]"})
    cache = _cache(store)

    async def run():
        return await cache.read(), (await cache.status()).has_cache

    assert asyncio.run(run()) == (None, False)


def test_corrupt_snapshot_raises_cache_error() -> None:
    metadata = CacheMetadata(last_sync=1, version=CACHE_VERSION, total_records=1)
    store = MemoryKeyValueStore(
        {COLLECTION_KEY: "{not json", METADATA_KEY: metadata.model_dump_json()}
    )
    with pytest.raises(CacheError):
        asyncio.run(_cache(store).read())


def test_corrupt_metadata_raises_cache_error() -> None:
    store = MemoryKeyValueStore({COLLECTION_KEY: "[]", METADATA_KEY: '{"version": 1}'})
    with pytest.raises(CacheError):
        asyncio.run(_cache(store).read())


def test_clear_removes_both_keys() -> None:
    store = MemoryKeyValueStore()
    cache = _cache(store)

    async def run():
        await cache.write([_record("1")])
        await cache.clear()
        return await cache.read()

    assert asyncio.run(run()) is None
    assert store.data == {}


def test_single_record_mutations() -> None:
    store = MemoryKeyValueStore()
    cache = _cache(store)

    async def run():
        await cache.write([_record("1"), _record("2")])
        await cache.update_one("1", _record("1", "Milestones"))
        await cache.add_one(_record("3"))
        await cache.add_one(_record("2", "Porgy and Bess"))
        await cache.remove_one("1")
        return await cache.read(), await cache.read_metadata()

    records, metadata = asyncio.run(run())

    assert [(r.id, r.title) for r in records] == [("2", "Porgy and Bess"), ("3", "Kind of Blue")]
    assert metadata.total_records == 2
    assert store.writes == 5


def test_mutations_of_unknown_ids_raise() -> None:
    cache = _cache()

    async def run() -> None:
        await cache.write([_record("1")])
        with pytest.raises(RecordNotFoundError):
            await cache.update_one("99", _record("99"))
        with pytest.raises(RecordNotFoundError):
            await cache.remove_one("99")

    asyncio.run(run())


def test_mutations_without_cache() -> None:
    cache = _cache()

    async def run():
        with pytest.raises(CacheError):
            await cache.update_one("1", _record("1"))
        with pytest.raises(CacheError):
            await cache.remove_one("1")
        await cache.add_one(_record("1"))
        return await cache.read(), await cache.read_metadata(), await cache.is_valid()

    records, metadata, valid = asyncio.run(run())

    assert [r.id for r in records] == ["1"]
    assert metadata.last_sync == 0
    assert metadata.total_records == 1
    assert not valid


def test_export_and_import_snapshot() -> None:
    source_clock = ManualClock(1_000)
    source = _cache(clock=source_clock)
    target_clock = ManualClock(5_000_000)
    target = _cache(clock=target_clock)

    async def run():
        assert await source.export() is None
        await source.write([_record("1"), _record("2")], duration_ms=50)
        snapshot = await source.export()
        restored = CacheSnapshot.model_validate_json(snapshot.model_dump_json())
        imported = await target.import_snapshot(restored)
        return snapshot, imported, await target.read()

    snapshot, imported, records = asyncio.run(run())

    assert [r.id for r in snapshot.records] == ["1", "2"]
    assert snapshot.metadata.last_sync == 1_000
    assert imported.last_sync == 5_000_000
    assert imported.sync_duration == 50
    assert records == snapshot.records


def test_sqlite_store_round_trip(tmp_path) -> None:
    db_path = tmp_path / "nested" / "vinylsync.db"
    cache = _cache(SqliteKeyValueStore(db_path))

    async def run():
        await cache.write([_record("1")])
        await cache.add_one(_record("2"))
        reopened = _cache(SqliteKeyValueStore(db_path))
        return await reopened.read()

    records = asyncio.run(run())

    assert [r.id for r in records] == ["1", "2"]
    assert records[0].tracks == [Track(1, "So What", "9:22")]


def test_sqlite_store_failures_become_cache_errors(tmp_path) -> None:
    cache = _cache(SqliteKeyValueStore(tmp_path))
    with pytest.raises(CacheError):
        asyncio.run(cache.read())


def test_unreadable_metadata_reports_no_valid_cache() -> None:
    store = MemoryKeyValueStore({COLLECTION_KEY: "[]", METADATA_KEY: "{not json"})
    cache = _cache(store)

    async def run():
        return await cache.is_valid(), await cache.status()

    valid, status = asyncio.run(run())

    assert valid is False
    assert not status.has_cache
    assert not status.is_valid
    assert status.total_records is None


def test_import_rejects_duplicate_record_ids() -> None:
    store = MemoryKeyValueStore()
    cache = _cache(store)
    metadata = CacheMetadata(last_sync=1, version=CACHE_VERSION, total_records=3)
    snapshot = CacheSnapshot(
        records=[_record("1"), _record("1", "Milestones"), _record("2")],
        metadata=metadata,
    )

    with pytest.raises(CacheError, match="duplicate record ids: 1"):
        asyncio.run(cache.import_snapshot(snapshot))

    assert store.writes == 0
    assert store.data == {}
