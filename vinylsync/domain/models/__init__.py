from .record import UNKNOWN, NormalizedRecord, Track
from .session import SyncKind, SyncPhase, SyncSession, SyncStatus

__all__ = [
    "NormalizedRecord",
    "SyncKind",
    "SyncPhase",
    "SyncSession",
    "SyncStatus",
    "Track",
    "UNKNOWN",
]
