from __future__ import annotations

import json
import sqlite3
from typing import Any

from ..schema import ensure_schema
from .base import BaseRepository


class SyncRunRepository(BaseRepository):
    """Log of finished sync runs in the ``sync_runs`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def record(self, session: dict[str, Any]) -> int:
        """Insert one finished session (as produced by ``SyncSession.to_dict``)."""
        errors = session.get("errors") or []
        run_id = self._execute_insert(
            """
            INSERT INTO sync_runs (
                sync_type, status, started_at, finished_at, records_processed,
                records_added, records_updated, records_removed, error_count,
                errors, duration_ms
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.get("kind"),
                session.get("status"),
                session.get("started_at"),
                session.get("finished_at"),
                session.get("processed", 0),
                session.get("added", 0),
                session.get("updated", 0),
                session.get("removed", 0),
                len(errors),
                json.dumps(errors) if errors else None,
                session.get("duration_ms", 0),
            ),
        )
        self.conn.commit()
        return run_id

    def list_recent(self, limit: int = 10) -> list[dict[str, Any]]:
        rows = self._fetch_all_as_dicts(
            "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?", (limit,)
        )
        for row in rows:
            row["errors"] = json.loads(row["errors"]) if row["errors"] else []
        return rows

    def count(self) -> int:
        return int(self._fetch_scalar("SELECT COUNT(*) FROM sync_runs") or 0)
