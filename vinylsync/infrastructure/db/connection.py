from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_DB_TIMEOUT = 30.0


class DatabaseError(Exception):
    """Custom exception for database connection errors."""


def iso_utcnow() -> str:
    """Return an ISO-8601 timestamp in UTC with ``Z`` suffix."""

    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def apply_pragmas(
    conn: sqlite3.Connection,
    *,
    enable_wal: bool = True,
    busy_timeout_ms: int | None = None,
) -> None:
    """Apply the SQLite PRAGMAs used by the local store."""

    try:
        if enable_wal:
            conn.execute("PRAGMA journal_mode=WAL;")
        if busy_timeout_ms is not None:
            conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)};")
    except sqlite3.Error as exc:
        raise DatabaseError(f"Failed to apply PRAGMAs: {exc}") from exc


@contextmanager
def get_connection(
    db_path: str | Path,
    *,
    timeout: float | None = None,
    enable_wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Yield a configured SQLite connection, closing it afterwards."""

    resolved_db_path = Path(db_path)
    resolved_db_path.parent.mkdir(parents=True, exist_ok=True)
    timeout_value = timeout if timeout is not None else DEFAULT_DB_TIMEOUT
    try:
        conn = sqlite3.connect(resolved_db_path, timeout=timeout_value)
    except sqlite3.Error as exc:
        raise DatabaseError(f"Failed to connect to database: {exc}") from exc
    try:
        apply_pragmas(
            conn,
            enable_wal=enable_wal,
            busy_timeout_ms=int(timeout_value * 1000),
        )
        yield conn
    finally:
        conn.close()
