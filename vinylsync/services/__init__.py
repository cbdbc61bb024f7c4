"""Service layer modules for vinylsync."""

from .cache import CacheStatus, CollectionCache  # noqa: F401
from .sync import *  # noqa: F401,F403
from .sync import __all__ as _sync_all

__all__ = ["CacheStatus", "CollectionCache", *_sync_all]
