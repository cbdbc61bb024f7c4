"""Per-item detail and shared master enrichment.

Items are processed in fixed-size batches. Within a batch every detail and
master lookup runs concurrently; batches run one after another. Master
records are memoised per run as futures keyed by master id, so items that
share a master (even inside the same batch) cause exactly one request.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from vinylsync.errors import RemoteServiceError
from vinylsync.infrastructure.observability import get_logger
from vinylsync.services.dto import MasterPayload, ReleasePayload

from .progress import notify

if TYPE_CHECKING:
    from vinylsync.infrastructure.http import DiscogsApiClient

logger = get_logger(__name__)

BatchCallback = Callable[[int, int], Any]


@dataclass
class EnrichedItem:
    """An item paired with its master record, when one could be fetched."""

    item: ReleasePayload
    master: MasterPayload | None = None


@dataclass
class EnrichmentRun:
    """Per-run state: the master memo and accumulated error messages."""

    skip_master_data: bool = False
    masters: dict[int, asyncio.Future] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class EnrichmentEngine:
    """Adds release detail and master data to collection items."""

    def __init__(
        self,
        api: "DiscogsApiClient",
        *,
        batch_size: int = 10,
        skip_master_data: bool = False,
    ) -> None:
        self.api = api
        self.batch_size = max(1, batch_size)
        self.skip_master_data = skip_master_data
        self.last_run: EnrichmentRun | None = None

    @property
    def errors(self) -> list[str]:
        return list(self.last_run.errors) if self.last_run else []

    async def _detail(self, item: ReleasePayload, run: EnrichmentRun) -> ReleasePayload:
        release_id = item.release_id
        try:
            detail = await self.api.get_release(release_id)
        except RemoteServiceError as exc:
            message = f"Failed to fetch release {release_id}: {exc}"
            logger.warning(message)
            run.errors.append(message)
            return item
        if item.basic_information is not None:
            # keep the collection summary alongside the detail payload
            detail = detail.model_copy(update={"basic_information": item.basic_information})
        return detail

    async def _fetch_master(self, master_id: int, run: EnrichmentRun) -> MasterPayload | None:
        try:
            master = await self.api.get_master(master_id)
        except RemoteServiceError as exc:
            message = f"Failed to fetch master {master_id}: {exc}"
            logger.warning(message)
            run.errors.append(message)
            return None
        logger.debug("Master %s: %r (%s)", master_id, master.title, master.year or "no year")
        return master

    async def _master(self, master_id: int | None, run: EnrichmentRun) -> MasterPayload | None:
        if run.skip_master_data or not master_id:
            return None
        future = run.masters.get(master_id)
        if future is None:
            future = asyncio.ensure_future(self._fetch_master(master_id, run))
            run.masters[master_id] = future
        return await asyncio.shield(future)

    async def _enrich_one(self, item: ReleasePayload, run: EnrichmentRun) -> EnrichedItem:
        detail, master = await asyncio.gather(
            self._detail(item, run), self._master(item.resolved_master_id, run)
        )
        return EnrichedItem(item=detail, master=master)

    async def enrich(
        self,
        items: list[ReleasePayload],
        on_batch: BatchCallback | None = None,
        *,
        skip_master_data: bool | None = None,
    ) -> list[EnrichedItem]:
        """Return one :class:`EnrichedItem` per input item, in input order.

        ``on_batch(items_done, total_items)`` is called after each batch.
        ``skip_master_data`` overrides the engine default for this run.
        """
        run = EnrichmentRun(
            skip_master_data=self.skip_master_data if skip_master_data is None else skip_master_data
        )
        self.last_run = run
        total = len(items)
        batches = (total + self.batch_size - 1) // self.batch_size
        enriched: list[EnrichedItem] = []
        try:
            for start in range(0, total, self.batch_size):
                batch = items[start : start + self.batch_size]
                enriched.extend(await asyncio.gather(*(self._enrich_one(i, run) for i in batch)))
                logger.info(
                    "Processed batch %d/%d - %d/%d releases",
                    start // self.batch_size + 1,
                    batches,
                    len(enriched),
                    total,
                )
                await notify(on_batch, len(enriched), total)
        finally:
            for future in run.masters.values():
                if not future.done():
                    future.cancel()
        logger.info(
            "Enrichment complete: %d releases processed, %d unique masters",
            len(enriched),
            len(run.masters),
        )
        return enriched


__all__ = ["BatchCallback", "EnrichedItem", "EnrichmentEngine", "EnrichmentRun"]
