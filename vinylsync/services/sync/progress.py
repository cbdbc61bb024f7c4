"""Progress reporting shared by the sync pipeline stages."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from vinylsync.domain.models import SyncPhase


@dataclass(frozen=True)
class SyncProgress:
    """One progress event of a running sync."""

    phase: SyncPhase
    progress: int
    message: str
    records_processed: int | None = None
    total_records: int | None = None
    current_page: int | None = None
    total_pages: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        return data


ProgressCallback = Callable[[SyncProgress], Any]


async def notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a sync or async listener; a ``None`` listener is ignored."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


__all__ = ["ProgressCallback", "SyncProgress", "notify"]
