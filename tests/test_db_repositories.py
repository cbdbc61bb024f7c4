from vinylsync.infrastructure.db import get_connection
from vinylsync.infrastructure.db.repositories import CacheEntryRepository, SyncRunRepository


def test_cache_entries_upsert_and_delete(tmp_path) -> None:
    with get_connection(tmp_path / "cache.db") as conn:
        repo = CacheEntryRepository(conn)
        repo.set_many({"a": "1", "b": "2"})
        repo.set_many({"a": "3"})

        assert repo.get_many(["a", "b", "missing"]) == {"a": "3", "b": "2"}
        assert repo.get_many([]) == {}

        repo.delete_many(["a"])
        assert repo.get_many(["a", "b"]) == {"b": "2"}


def test_sync_runs_are_listed_newest_first(tmp_path) -> None:
    with get_connection(tmp_path / "runs.db") as conn:
        repo = SyncRunRepository(conn)
        repo.record({"kind": "full", "status": "completed", "processed": 10, "added": 10})
        repo.record(
            {"kind": "manual", "status": "failed", "errors": ["page 2 failed"], "duration_ms": 40}
        )

        runs = repo.list_recent()

        assert repo.count() == 2
        assert [r["sync_type"] for r in runs] == ["manual", "full"]
        assert runs[0]["errors"] == ["page 2 failed"]
        assert runs[0]["error_count"] == 1
        assert runs[1]["errors"] == []
        assert runs[1]["records_added"] == 10
        assert len(repo.list_recent(limit=1)) == 1
