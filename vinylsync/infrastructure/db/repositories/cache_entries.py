from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Mapping

from ..connection import iso_utcnow
from ..schema import ensure_schema
from .base import BaseRepository


class CacheEntryRepository(BaseRepository):
    """Key/value rows of the ``cache_entries`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        wanted = list(keys)
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        rows = self._fetch_all_as_dicts(
            f"SELECT key, value FROM cache_entries WHERE key IN ({placeholders})",
            tuple(wanted),
        )
        return {row["key"]: row["value"] for row in rows}

    def set_many(self, values: Mapping[str, str]) -> None:
        """Upsert all values in one transaction."""
        now = iso_utcnow()
        with self.conn:
            for key, value in values.items():
                self._execute(
                    "INSERT INTO cache_entries (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = excluded.updated_at",
                    (key, value, now),
                )

    def delete_many(self, keys: Iterable[str]) -> None:
        with self.conn:
            for key in keys:
                self._execute("DELETE FROM cache_entries WHERE key = ?", (key,))
