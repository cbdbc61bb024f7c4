from .connection import DatabaseError, apply_pragmas, get_connection, iso_utcnow
from .schema import ensure_schema
from .store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    SqliteSyncRunLog,
)

__all__ = [
    "DatabaseError",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    "SqliteSyncRunLog",
    "apply_pragmas",
    "ensure_schema",
    "get_connection",
    "iso_utcnow",
]
