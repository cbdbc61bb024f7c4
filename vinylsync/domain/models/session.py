"""Sync session domain model with its state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class SyncStatus(str, Enum):
    """Lifecycle status of one sync run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.FAILED, SyncStatus.CANCELLED)


class SyncPhase(str, Enum):
    """Pipeline phase reported to progress listeners."""

    CONNECTING = "connecting"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    CACHING = "caching"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


class SyncKind(str, Enum):
    FULL = "full"
    MANUAL = "manual"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncSession:
    """One end-to-end run of fetch, enrich, transform and cache.

    Owned by the orchestrator; created when a sync starts and finalized
    exactly once through :meth:`complete`, :meth:`fail` or :meth:`cancel`.
    """

    kind: SyncKind = SyncKind.FULL
    status: SyncStatus = SyncStatus.PENDING
    phase: SyncPhase = SyncPhase.CONNECTING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    processed: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def start(self, now: datetime | None = None) -> None:
        if self.status is not SyncStatus.PENDING:
            raise ValueError(f"Cannot start a session in state {self.status.value}")
        self.status = SyncStatus.RUNNING
        self.started_at = now or _utcnow()

    def enter(self, phase: SyncPhase) -> None:
        if self.status is not SyncStatus.RUNNING:
            raise ValueError(f"Cannot enter {phase.value} while {self.status.value}")
        self.phase = phase

    def record_error(self, *messages: str) -> None:
        self.errors.extend(messages)

    def apply_diff(self, previous_ids: set[str], current_ids: set[str]) -> None:
        """Derive added/updated/removed counters from two id sets."""
        self.added = len(current_ids - previous_ids)
        self.updated = len(current_ids & previous_ids)
        self.removed = len(previous_ids - current_ids)

    def _finish(self, status: SyncStatus, duration_ms: int, now: datetime | None) -> None:
        if self.status.is_terminal:
            raise ValueError(f"Session already finalized as {self.status.value}")
        self.status = status
        self.finished_at = now or _utcnow()
        self.duration_ms = duration_ms

    def complete(self, duration_ms: int, now: datetime | None = None) -> None:
        self.phase = SyncPhase.COMPLETE
        self._finish(SyncStatus.COMPLETED, duration_ms, now)

    def fail(self, duration_ms: int, now: datetime | None = None) -> None:
        self.phase = SyncPhase.ERROR
        self._finish(SyncStatus.FAILED, duration_ms, now)

    def cancel(self, duration_ms: int, now: datetime | None = None) -> None:
        self.phase = SyncPhase.CANCELLED
        self._finish(SyncStatus.CANCELLED, duration_ms, now)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "status": self.status.value,
            "phase": self.phase.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": self.processed,
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


__all__ = ["SyncKind", "SyncPhase", "SyncSession", "SyncStatus"]
