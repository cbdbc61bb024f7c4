import io
import logging

import pytest

from vinylsync.infrastructure.observability import (
    current_log_context,
    format_prometheus,
    get_metrics_summary,
    get_registry,
    log_context,
    record_api_request,
    record_rate_limit_usage,
    record_sync_run,
)
from vinylsync.errors import CacheError
from vinylsync.infrastructure.observability.logging import SyncContextFormatter, log_sync_failure


@pytest.fixture(autouse=True)
def _fresh_registry():
    get_registry().reset()
    yield
    get_registry().reset()


def test_api_request_metrics() -> None:
    record_api_request("release", "ok", 0.2)
    record_api_request("release", "ok", 0.4)
    record_api_request("master", "rate_limited", 0.1)

    registry = get_registry()
    counter = registry.counter("api_requests_total")
    assert counter.get({"endpoint": "release", "outcome": "ok"}) == 2
    assert counter.get({"endpoint": "master", "outcome": "rate_limited"}) == 1
    stats = registry.histogram("api_request_duration_seconds").get_stats({"endpoint": "release"})
    assert stats["count"] == 2
    assert stats["avg"] == pytest.approx(0.3)


def test_sync_run_metrics_and_prometheus_output() -> None:
    record_sync_run("full", "completed", 1.5, 40, 2)
    record_rate_limit_usage(used=10, remaining=50)

    text = format_prometheus()
    assert '# TYPE sync_runs_total counter' in text
    assert 'sync_runs_total{kind="full",status="completed"} 1.0' in text
    assert "sync_records_rejected_total 2.0" in text
    assert "api_rate_limit_remaining 50.0" in text

    summary = get_metrics_summary()
    assert summary["counters"]["sync_records_processed_total"] == {"default": 40.0}


def test_log_context_is_scoped_and_formatted() -> None:
    formatter = SyncContextFormatter("%(message)s")

    with log_context(sync_kind="full"):
        with log_context(page=2):
            assert current_log_context() == {"sync_kind": "full", "page": 2}
            record = logging.LogRecord("vinylsync", logging.INFO, __file__, 1, "Fetched", (), None)
            assert formatter.format(record) == "Fetched [sync_kind=full page=2]"
            assert record.getMessage() == "Fetched"
        assert current_log_context() == {"sync_kind": "full"}
    assert current_log_context() == {}


def _capturing_logger(name: str) -> tuple[logging.Logger, io.StringIO]:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(SyncContextFormatter("%(levelname)s %(message)s"))
    logger = logging.getLogger(name)
    logger.handlers = [handler]
    logger.propagate = False
    logger.setLevel(logging.INFO)
    return logger, stream


def test_expected_sync_failure_is_one_line_with_fields() -> None:
    logger, stream = _capturing_logger("vinylsync.tests.expected_failure")

    with log_context(sync_kind="manual"):
        log_sync_failure(logger, "Cache write", CacheError("disk full"), records=3)

    assert stream.getvalue() == (
        "ERROR Cache write failed: disk full "
        "[sync_kind=manual stage=Cache write error=CacheError records=3]\n"
    )


def test_unexpected_sync_failure_includes_traceback() -> None:
    logger, stream = _capturing_logger("vinylsync.tests.unexpected_failure")

    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        log_sync_failure(logger, "Sync", exc)

    output = stream.getvalue()
    assert output.startswith("ERROR Sync failed: boom [stage=Sync error=RuntimeError]\n")
    assert "Traceback (most recent call last)" in output
