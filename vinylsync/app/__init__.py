"""Application-level wiring for vinylsync."""

from .config import SyncSettings, load_config

__all__ = ["SyncSettings", "load_config"]
