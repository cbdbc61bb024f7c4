import asyncio
import random

from discogs_fakes import SETTINGS, ScriptedTransport, collection_entry, master_detail, ok, release_detail
from vinylsync.app.factory import build_orchestrator
from vinylsync.infrastructure.db import MemoryKeyValueStore


def test_wired_orchestrator_syncs_through_http_client() -> None:
    transport = ScriptedTransport(
        {
            "/users/digger": [ok({"username": "digger", "num_collection": 2})],
            "/folders/0/releases": [
                ok(
                    {
                        "pagination": {"page": 1, "pages": 1, "per_page": 100, "items": 2},
                        "releases": [collection_entry(1, master_id=7), collection_entry(2)],
                    }
                )
            ],
            "/releases/1": [ok(release_detail(1))],
            "/releases/2": [ok(release_detail(2, tracklist=[]))],
            "/masters/7": [ok(master_detail(7, title="Kind of Blue"))],
        }
    )
    store = MemoryKeyValueStore()
    orchestrator = build_orchestrator(
        SETTINGS, transport=transport, store=store, rng=random.Random(5)
    )

    async def run():
        try:
            return await orchestrator.sync()
        finally:
            await orchestrator.close()

    result = asyncio.run(run())

    assert result.success, result.errors
    assert [r.title for r in result.records] == ["Kind of Blue", "Record 2"]
    assert [t.title for t in result.records[0].tracks] == ["So What", "Freddie Freeloader"]
    assert len(result.records[1].tracks) >= 4
    assert orchestrator.run_log is None
    assert store.writes == 1
    assert transport.closed
    assert len(transport.requests) == 5
