from .base import BaseRepository
from .cache_entries import CacheEntryRepository
from .sync_runs import SyncRunRepository

__all__ = ["BaseRepository", "CacheEntryRepository", "SyncRunRepository"]
