"""Observability and logging facades."""

from .logging import (
    configure_logging,
    current_log_context,
    get_logger,
    log_context,
    log_sync_failure,
)
from .metrics import (
    format_prometheus,
    get_metrics_summary,
    get_registry,
    increment_counter,
    observe_histogram,
    record_api_request,
    record_api_retry,
    record_rate_limit_usage,
    record_sync_run,
)

__all__ = [
    # Logging
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "log_sync_failure",
    # Metrics
    "format_prometheus",
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_api_request",
    "record_api_retry",
    "record_rate_limit_usage",
    "record_sync_run",
]
