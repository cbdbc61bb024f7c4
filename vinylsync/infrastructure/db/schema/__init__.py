from __future__ import annotations

import sqlite3

from .tables import SCHEMA_CACHE_ENTRIES_SQL, SCHEMA_SYNC_RUNS_SQL


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the cache and sync log tables when they do not exist yet."""

    conn.executescript(SCHEMA_CACHE_ENTRIES_SQL)
    conn.executescript(SCHEMA_SYNC_RUNS_SQL)


__all__ = ["SCHEMA_CACHE_ENTRIES_SQL", "SCHEMA_SYNC_RUNS_SQL", "ensure_schema"]
