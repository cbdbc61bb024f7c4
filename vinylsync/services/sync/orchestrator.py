"""End-to-end sync of the remote collection into the local cache.

The orchestrator drives one run through the phases ``connecting``,
``fetching``, ``transforming`` and ``caching``. A run either completes, or
fails and falls back to the last cached snapshot, or is cancelled at one of
three checkpoints: before fetching starts, right after the collection
listing, and right after enrichment. Only one run may be active per
orchestrator.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from vinylsync.domain.models import (
    NormalizedRecord,
    SyncKind,
    SyncPhase,
    SyncSession,
    SyncStatus,
)
from vinylsync.errors import (
    CacheError,
    CollectionFetchError,
    RemoteServiceError,
    SyncCancelledError,
    SyncInProgressError,
    VinylSyncError,
)
from vinylsync.infrastructure.observability import (
    get_logger,
    log_context,
    log_sync_failure,
    record_sync_run,
)
from vinylsync.services.cache import CacheStatus, CollectionCache
from vinylsync.services.dto import CacheMetadata, CacheSnapshot, EventPublisher, noop_event_publisher

from .collection import CollectionFetcher
from .enrichment import EnrichmentEngine
from .progress import ProgressCallback, SyncProgress, notify
from .transform import RecordTransformer, filter_valid_records

if TYPE_CHECKING:
    from vinylsync.infrastructure.db import SqliteSyncRunLog
    from vinylsync.infrastructure.http import ConnectionCheck, DiscogsApiClient

logger = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag observed at sync checkpoints."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise SyncCancelledError("Sync cancelled by user")


@dataclass
class SyncResult:
    """Outcome of :meth:`SyncOrchestrator.sync`.

    ``persisted`` tells whether ``records`` were written to the cache by this
    run. It is False for cache hits, fallbacks and failed cache writes.
    """

    success: bool
    records_processed: int
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    from_cache: bool = False
    records: list[NormalizedRecord] = field(default_factory=list)
    persisted: bool = False
    session: SyncSession | None = None


class _ProgressReporter:
    """Forwards progress events, never letting the percentage go down."""

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self.last = 0

    async def emit(self, phase: SyncPhase, progress: int, message: str, **extra: Any) -> None:
        self.last = max(self.last, min(100, progress))
        await notify(self._callback, SyncProgress(phase, self.last, message, **extra))


class SyncOrchestrator:
    """Coordinates fetcher, enrichment, transformer and cache for one account."""

    def __init__(
        self,
        api: "DiscogsApiClient",
        cache: CollectionCache,
        *,
        fetcher: CollectionFetcher | None = None,
        enricher: EnrichmentEngine | None = None,
        transformer: RecordTransformer | None = None,
        run_log: "SqliteSyncRunLog | None" = None,
        event_publisher: EventPublisher = noop_event_publisher,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.cache = cache
        self.fetcher = fetcher or CollectionFetcher(api)
        self.enricher = enricher or EnrichmentEngine(api)
        self.transformer = transformer or RecordTransformer()
        self.run_log = run_log
        self._event_publisher = event_publisher
        self._clock = clock
        self._running = False
        self._token: CancellationToken | None = None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------
    def is_syncing(self) -> bool:
        return self._running

    def cancel_current_sync(self) -> bool:
        """Request cancellation of the running sync. Returns False when idle."""
        if self._token is None:
            return False
        logger.info("Cancelling sync operation...")
        self._token.cancel()
        return True

    async def sync(
        self,
        force_refresh: bool = False,
        *,
        on_progress: ProgressCallback | None = None,
        skip_master_data: bool | None = None,
    ) -> SyncResult:
        """Return the collection, from cache when valid or from a fresh remote sync.

        Raises:
            SyncInProgressError: when another sync of this orchestrator is running.
        """
        # Checked and set before the first await so concurrent callers cannot both pass.
        if self._running:
            raise SyncInProgressError("Sync already in progress")
        self._running = True
        self._token = CancellationToken()
        try:
            reporter = _ProgressReporter(on_progress)
            if not force_refresh:
                cached = await self._valid_cached_records()
                if cached:
                    logger.info("Using cached collection: %d records", len(cached))
                    await reporter.emit(
                        SyncPhase.COMPLETE,
                        100,
                        f"Loaded {len(cached)} records from cache",
                        records_processed=len(cached),
                        total_records=len(cached),
                    )
                    return SyncResult(
                        success=True,
                        records_processed=len(cached),
                        from_cache=True,
                        records=cached,
                    )
            kind = SyncKind.MANUAL if force_refresh else SyncKind.FULL
            with log_context(sync_kind=kind.value):
                return await self._run(kind, self._token, reporter, skip_master_data)
        finally:
            self._running = False
            self._token = None

    async def _valid_cached_records(self) -> list[NormalizedRecord] | None:
        try:
            if not await self.cache.is_valid():
                return None
            return await self.cache.read()
        except CacheError as exc:
            logger.warning("Ignoring unreadable cache: %s", exc)
            return None

    async def _read_cache_safely(self) -> list[NormalizedRecord]:
        try:
            return await self.cache.read() or []
        except CacheError as exc:
            logger.warning("Cache unavailable: %s", exc)
            return []

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    async def _run(
        self,
        kind: SyncKind,
        token: CancellationToken,
        reporter: _ProgressReporter,
        skip_master_data: bool | None,
    ) -> SyncResult:
        started = self._clock()
        session = SyncSession(kind=kind)
        session.start()
        await self._publish({"type": "sync_started", "kind": kind.value})
        logger.info("Starting %s sync", kind.value)

        try:
            await reporter.emit(SyncPhase.CONNECTING, 0, "Connecting to Discogs API...")
            token.raise_if_cancelled()
            check = await self.api.test_connection()
            if not check.success:
                raise RemoteServiceError(check.message, endpoint="profile")
            username = check.user_info.username if check.user_info else None
            await reporter.emit(
                SyncPhase.CONNECTING, 10, f"Connected as {username or 'Unknown User'}"
            )

            session.enter(SyncPhase.FETCHING)
            await reporter.emit(SyncPhase.FETCHING, 20, "Fetching collection from Discogs...")

            async def _on_page(done: int, total: int) -> None:
                await reporter.emit(
                    SyncPhase.FETCHING,
                    20 + (20 * done) // total,
                    f"Fetched page {done} of {total}",
                    current_page=done,
                    total_pages=total,
                )

            items = await self.fetcher.fetch_all(on_page=_on_page)
            token.raise_if_cancelled()
            if not items:
                raise CollectionFetchError("No releases found in your Discogs collection")
            await reporter.emit(
                SyncPhase.FETCHING,
                40,
                f"Fetched {len(items)} releases",
                total_records=len(items),
            )

            skip = self.enricher.skip_master_data if skip_master_data is None else skip_master_data
            await reporter.emit(
                SyncPhase.FETCHING,
                50,
                "Skipping master data for faster sync..." if skip else "Fetching master release data...",
            )

            async def _on_batch(done: int, total: int) -> None:
                await reporter.emit(
                    SyncPhase.FETCHING,
                    50 + (10 * done) // total,
                    f"Enriched {done} of {total} releases",
                    records_processed=done,
                    total_records=total,
                )

            enriched = await self.enricher.enrich(
                items, on_batch=_on_batch, skip_master_data=skip
            )
            session.record_error(*self.enricher.errors)
            token.raise_if_cancelled()
            await reporter.emit(
                SyncPhase.FETCHING, 60, f"Enriched {len(enriched)} releases with master data"
            )

            session.enter(SyncPhase.TRANSFORMING)
            await reporter.emit(
                SyncPhase.TRANSFORMING, 70, "Converting releases to app format..."
            )
            normalized = [
                self.transformer.normalize(entry.item, entry.master, index)
                for index, entry in enumerate(enriched)
            ]
            records, rejected = filter_valid_records(normalized)
            if rejected:
                session.record_error(f"{len(rejected)} records were invalid and filtered out")
            if not records:
                raise CollectionFetchError("No valid records remained after transformation")
            session.processed = len(records)
            await reporter.emit(
                SyncPhase.TRANSFORMING, 80, f"Processed {len(records)} valid records"
            )

            session.enter(SyncPhase.CACHING)
            await reporter.emit(SyncPhase.CACHING, 90, "Saving to local cache...")
            previous = await self._read_cache_safely()
            try:
                await self.cache.write(records, self._elapsed_ms(started), session.errors)
            except CacheError as exc:
                session.record_error(f"Failed to cache collection data: {exc}")
                log_sync_failure(logger, "Cache write", exc, records=len(records))
                session.fail(self._elapsed_ms(started))
                await reporter.emit(SyncPhase.ERROR, reporter.last, f"Sync failed: {exc}")
                await self._finish(session, len(rejected))
                return SyncResult(
                    success=False,
                    records_processed=len(records),
                    errors=list(session.errors),
                    duration_ms=session.duration_ms,
                    from_cache=False,
                    records=records,
                    persisted=False,
                    session=session,
                )

            session.apply_diff({r.id for r in previous}, {r.id for r in records})
            session.complete(self._elapsed_ms(started))
            await reporter.emit(
                SyncPhase.COMPLETE,
                100,
                f"Sync complete! {len(records)} records cached",
                records_processed=len(records),
                total_records=len(records),
            )
            await self._finish(session, len(rejected))
            return SyncResult(
                success=True,
                records_processed=len(records),
                errors=list(session.errors),
                duration_ms=session.duration_ms,
                from_cache=False,
                records=records,
                persisted=True,
                session=session,
            )
        except SyncCancelledError as exc:
            session.record_error(str(exc))
            session.cancel(self._elapsed_ms(started))
            await reporter.emit(SyncPhase.CANCELLED, reporter.last, str(exc))
            return await self._fallback(session)
        except VinylSyncError as exc:
            session.record_error(str(exc))
            log_sync_failure(logger, "Sync", exc, phase=session.phase.value)
            session.fail(self._elapsed_ms(started))
            await reporter.emit(SyncPhase.ERROR, reporter.last, f"Sync failed: {exc}")
            return await self._fallback(session)

    async def _fallback(self, session: SyncSession) -> SyncResult:
        await self._finish(session)
        cached = await self._read_cache_safely()
        if cached:
            logger.warning("Sync did not complete, using cached data as fallback")
        return SyncResult(
            success=False,
            records_processed=len(cached),
            errors=list(session.errors),
            duration_ms=session.duration_ms,
            from_cache=bool(cached),
            records=cached,
            persisted=False,
            session=session,
        )

    async def _finish(self, session: SyncSession, rejected: int = 0) -> None:
        record_sync_run(
            session.kind.value,
            session.status.value,
            session.duration_ms / 1000,
            session.processed,
            rejected,
        )
        if self.run_log is not None:
            try:
                await self.run_log.record(session.to_dict())
            except CacheError as exc:
                logger.warning("Failed to record sync run: %s", exc)
        await self._publish({"type": "sync_finished", "session": session.to_dict()})
        if session.status is SyncStatus.COMPLETED:
            logger.info(
                "Sync finished: %d records (%d added, %d updated, %d removed) in %dms",
                session.processed,
                session.added,
                session.updated,
                session.removed,
                session.duration_ms,
            )

    async def _publish(self, payload: dict[str, object]) -> None:
        await self._event_publisher(payload)

    # ------------------------------------------------------------------
    # Cache passthroughs
    # ------------------------------------------------------------------
    async def get_cache_status(self) -> CacheStatus:
        return await self.cache.status()

    async def clear_cache(self) -> None:
        await self.cache.clear()

    async def update_record(self, record_id: str, record: NormalizedRecord) -> None:
        await self.cache.update_one(record_id, record)

    async def add_record(self, record: NormalizedRecord) -> None:
        await self.cache.add_one(record)

    async def remove_record(self, record_id: str) -> None:
        await self.cache.remove_one(record_id)

    async def export_collection(self) -> CacheSnapshot | None:
        return await self.cache.export()

    async def import_collection(self, snapshot: CacheSnapshot | dict[str, Any]) -> CacheMetadata:
        if not isinstance(snapshot, CacheSnapshot):
            try:
                snapshot = CacheSnapshot.model_validate(snapshot)
            except ValidationError as exc:
                raise CacheError(f"Invalid collection backup: {exc.error_count()} error(s)") from exc
        return await self.cache.import_snapshot(snapshot)

    async def test_connection(self) -> "ConnectionCheck":
        return await self.api.test_connection()

    async def recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        if self.run_log is None:
            return []
        return await self.run_log.recent(limit)

    async def close(self) -> None:
        await self.api.close()


__all__ = ["CancellationToken", "SyncOrchestrator", "SyncResult"]
