"""Paginated retrieval of the user's full collection listing."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from vinylsync.errors import CollectionFetchError, RemoteServiceError
from vinylsync.infrastructure.observability import get_logger
from vinylsync.services.dto import CollectionPagePayload, ReleasePayload

from .progress import notify

if TYPE_CHECKING:
    from vinylsync.infrastructure.http import DiscogsApiClient

logger = get_logger(__name__)

PageCallback = Callable[[int, int], Any]


class CollectionFetcher:
    """Fetches every page of the collection and concatenates them in page order.

    Page 1 is fetched alone to learn the page count; the remaining pages are
    requested concurrently and the client's limits bound how many actually
    run at once. Any page failure aborts the whole fetch.
    """

    def __init__(self, api: "DiscogsApiClient", *, per_page: int = 100) -> None:
        self.api = api
        self.per_page = per_page

    async def _fetch_page(self, page: int) -> CollectionPagePayload:
        try:
            return await self.api.get_collection_page(page, self.per_page)
        except RemoteServiceError as exc:
            raise CollectionFetchError(
                f"Failed to fetch collection page {page}: {exc}", page=page
            ) from exc

    async def fetch_all(self, on_page: PageCallback | None = None) -> list[ReleasePayload]:
        """Return every collection item, newest additions first.

        ``on_page(pages_done, total_pages)`` is called after each page.

        Raises:
            CollectionFetchError: when any page could not be fetched.
        """
        first = await self._fetch_page(1)
        total_pages = max(1, first.pagination.pages)
        logger.info(
            "Found %d page(s) with %d total releases", total_pages, first.pagination.items
        )
        await notify(on_page, 1, total_pages)

        pages = [first]
        if total_pages > 1:
            pages.extend(await self._fetch_remaining(total_pages, on_page))

        items: list[ReleasePayload] = []
        seen: set[int] = set()
        for page in pages:
            for item in page.releases:
                if item.release_id in seen:
                    logger.debug("Skipping repeated collection item %s", item.release_id)
                    continue
                seen.add(item.release_id)
                items.append(item)

        expected = first.pagination.items
        if expected and len(items) != expected:
            logger.warning(
                "Collection listing reported %d items but %d were returned", expected, len(items)
            )
        logger.info("Collection fetch complete: %d releases", len(items))
        return items

    async def _fetch_remaining(
        self, total_pages: int, on_page: PageCallback | None
    ) -> list[CollectionPagePayload]:
        done = 1

        async def _tracked(page: int) -> CollectionPagePayload:
            nonlocal done
            result = await self._fetch_page(page)
            done += 1
            await notify(on_page, done, total_pages)
            return result

        tasks = [asyncio.create_task(_tracked(p)) for p in range(2, total_pages + 1)]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


__all__ = ["CollectionFetcher", "PageCallback"]
