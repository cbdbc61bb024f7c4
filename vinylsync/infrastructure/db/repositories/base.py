"""Base repository class with shared database query helpers."""

from __future__ import annotations

import sqlite3
from typing import Any


class BaseRepository:
    """Base class for the repositories of the local store.

    Repositories wrap one open connection and never commit on their own
    unless a method documents otherwise; callers own the transaction.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _fetch_all_as_dicts(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query and return all rows as dictionaries keyed by column name."""
        cur = self.conn.execute(query, params or ())
        columns = [c[0] for c in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

    def _fetch_scalar(self, query: str, params: tuple[Any, ...] | None = None) -> Any:
        """Execute query and return first column of first row, or None."""
        cur = self.conn.execute(query, params or ())
        row = cur.fetchone()
        return row[0] if row else None

    def _execute_insert(self, query: str, params: tuple[Any, ...] | None = None) -> int:
        """Execute INSERT query and return last row ID."""
        cur = self.conn.execute(query, params or ())
        return cur.lastrowid or 0

    def _execute(self, query: str, params: tuple[Any, ...] | None = None) -> sqlite3.Cursor:
        return self.conn.execute(query, params or ())
