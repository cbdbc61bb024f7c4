"""Construction of a fully wired :class:`SyncOrchestrator` from settings."""

from __future__ import annotations

import random

from vinylsync.app.config import SyncSettings
from vinylsync.infrastructure.db import (
    KeyValueStore,
    SqliteKeyValueStore,
    SqliteSyncRunLog,
)
from vinylsync.infrastructure.http import DiscogsApiClient, Transport
from vinylsync.services.cache import CollectionCache
from vinylsync.services.dto import EventPublisher, noop_event_publisher
from vinylsync.services.sync import (
    CollectionFetcher,
    EnrichmentEngine,
    RecordTransformer,
    SyncOrchestrator,
)


def build_orchestrator(
    settings: SyncSettings,
    *,
    transport: Transport | None = None,
    store: KeyValueStore | None = None,
    persist_runs: bool = True,
    skip_master_data: bool = False,
    event_publisher: EventPublisher = noop_event_publisher,
    rng: random.Random | None = None,
) -> SyncOrchestrator:
    """Wire client, pipeline stages and cache for one account.

    Without an explicit ``store`` the cache and the sync run log both live in
    the SQLite database at ``settings.db_path``.
    """
    api = DiscogsApiClient(settings, transport=transport)
    cache = CollectionCache(
        store or SqliteKeyValueStore(settings.db_path),
        ttl_hours=settings.cache_ttl_hours,
    )
    run_log = SqliteSyncRunLog(settings.db_path) if persist_runs and store is None else None
    return SyncOrchestrator(
        api,
        cache,
        fetcher=CollectionFetcher(api, per_page=settings.per_page),
        enricher=EnrichmentEngine(
            api, batch_size=settings.batch_size, skip_master_data=skip_master_data
        ),
        transformer=RecordTransformer(rng),
        run_log=run_log,
        event_publisher=event_publisher,
    )


__all__ = ["build_orchestrator"]
