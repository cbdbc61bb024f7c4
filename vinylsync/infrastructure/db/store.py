"""Async key/value stores backing the collection cache.

The SQLite store opens a short-lived connection per call and runs the
blocking work in a worker thread via :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol, TypeVar

from vinylsync.errors import CacheError

from .connection import DatabaseError, get_connection
from .repositories import CacheEntryRepository, SyncRunRepository

T = TypeVar("T")


class KeyValueStore(Protocol):
    async def get_many(self, keys: Iterable[str]) -> dict[str, str]: ...

    async def set_many(self, values: Mapping[str, str]) -> None: ...

    async def delete_many(self, keys: Iterable[str]) -> None: ...


class MemoryKeyValueStore:
    """In-process store for tests and embedding."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0

    async def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        return {k: self.data[k] for k in keys if k in self.data}

    async def set_many(self, values: Mapping[str, str]) -> None:
        self.writes += 1
        self.data.update(values)

    async def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class _SqliteBacked:
    def __init__(self, db_path: str | Path, *, timeout: float | None = None) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    def _run(self, repo_cls: type, fn: Callable[[Any], T]) -> T:
        try:
            with get_connection(self.db_path, timeout=self.timeout) as conn:
                return fn(repo_cls(conn))
        except (sqlite3.Error, DatabaseError) as exc:
            raise CacheError(f"Local store at {self.db_path} failed: {exc}") from exc

    async def _call(self, repo_cls: type, fn: Callable[[Any], T]) -> T:
        return await asyncio.to_thread(self._run, repo_cls, fn)


class SqliteKeyValueStore(_SqliteBacked):
    """Store persisting entries in the ``cache_entries`` table."""

    async def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        wanted = list(keys)
        return await self._call(CacheEntryRepository, lambda repo: repo.get_many(wanted))

    async def set_many(self, values: Mapping[str, str]) -> None:
        payload = dict(values)
        await self._call(CacheEntryRepository, lambda repo: repo.set_many(payload))

    async def delete_many(self, keys: Iterable[str]) -> None:
        wanted = list(keys)
        await self._call(CacheEntryRepository, lambda repo: repo.delete_many(wanted))


class SqliteSyncRunLog(_SqliteBacked):
    """Persists finished sync sessions through :class:`SyncRunRepository`."""

    async def record(self, session: dict[str, Any]) -> int:
        return await self._call(SyncRunRepository, lambda repo: repo.record(session))

    async def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        return await self._call(SyncRunRepository, lambda repo: repo.list_recent(limit))


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    "SqliteSyncRunLog",
]
