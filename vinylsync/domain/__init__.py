"""Domain layer for vinylsync.

This package contains the domain entities produced and owned by the sync
pipeline. They carry no I/O and can be used freely by the surrounding
application.
"""

from .models import NormalizedRecord, SyncKind, SyncPhase, SyncSession, SyncStatus, Track

__all__ = [
    "NormalizedRecord",
    "SyncKind",
    "SyncPhase",
    "SyncSession",
    "SyncStatus",
    "Track",
]
