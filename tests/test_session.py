from datetime import datetime, timezone

import pytest

from vinylsync.domain.models import SyncKind, SyncPhase, SyncSession, SyncStatus


def test_session_lifecycle_and_serialisation() -> None:
    started = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    finished = datetime(2024, 5, 1, 12, 1, tzinfo=timezone.utc)
    session = SyncSession(kind=SyncKind.MANUAL)

    session.start(started)
    session.enter(SyncPhase.FETCHING)
    session.record_error("master 7 failed")
    session.apply_diff({"1", "2", "3"}, {"2", "3", "4"})
    session.processed = 3
    session.complete(1500, finished)

    assert session.status is SyncStatus.COMPLETED
    assert session.phase is SyncPhase.COMPLETE
    assert session.to_dict() == {
        "kind": "manual",
        "status": "completed",
        "phase": "complete",
        "started_at": "2024-05-01T12:00:00+00:00",
        "finished_at": "2024-05-01T12:01:00+00:00",
        "processed": 3,
        "added": 1,
        "updated": 2,
        "removed": 1,
        "errors": ["master 7 failed"],
        "duration_ms": 1500,
    }


def test_session_is_finalized_once() -> None:
    session = SyncSession()
    session.start()
    session.cancel(10)

    assert session.status is SyncStatus.CANCELLED
    with pytest.raises(ValueError):
        session.fail(20)
    with pytest.raises(ValueError):
        session.enter(SyncPhase.CACHING)


def test_session_cannot_start_twice() -> None:
    session = SyncSession()
    session.start()
    with pytest.raises(ValueError):
        session.start()
