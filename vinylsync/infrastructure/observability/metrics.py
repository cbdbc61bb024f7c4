"""Simple in-process metrics collection for vinylsync.

Lightweight counters and histograms for tracking sync health without an
external metrics backend. Metrics live in memory and can be dumped as a
summary dictionary or in Prometheus text format.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping

LabelKey = tuple[tuple[str, str | None], ...]


def _labels_to_key(labels: Mapping[str, str | None] | None) -> LabelKey:
    if labels is None:
        return ()
    return tuple(sorted(labels.items()))


# ---------------------------------------------------------------------------
# Metric storage
# ---------------------------------------------------------------------------


@dataclass
class Counter:
    """A monotonically increasing counter."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(default_factory=lambda: defaultdict(float))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(self, value: float = 1.0, labels: Mapping[str, str | None] | None = None) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float:
        key = _labels_to_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)


@dataclass
class Gauge:
    """A value that can go up and down (last observation wins)."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def set(self, value: float, labels: Mapping[str, str | None] | None = None) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._values[key] = value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float | None:
        key = _labels_to_key(labels)
        with self._lock:
            return self._values.get(key)


@dataclass
class Histogram:
    """Records a distribution of values as sum/count per label set."""

    name: str
    help_text: str = ""
    _observations: dict[LabelKey, list[float]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(self, value: float, labels: Mapping[str, str | None] | None = None) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._observations[key].append(value)

    def get_stats(self, labels: Mapping[str, str | None] | None = None) -> dict[str, float]:
        key = _labels_to_key(labels)
        with self._lock:
            values = list(self._observations.get(key, []))
        if not values:
            return {"count": 0, "sum": 0.0, "avg": 0.0}
        return {"count": len(values), "sum": sum(values), "avg": sum(values) / len(values)}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class MetricRegistry:
    """Registry for all metrics of one process (or one test)."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)
            return self._counters[name]

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name=name, help_text=help_text)
            return self._gauges[name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name=name, help_text=help_text)
            return self._histograms[name]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return dict(self._counters)

    def all_gauges(self) -> dict[str, Gauge]:
        with self._lock:
            return dict(self._gauges)

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return dict(self._histograms)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


# Default global registry
_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    """Increment a counter by name, creating it if needed."""
    _registry.counter(name, help_text).inc(value, labels)


def set_gauge(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    _registry.gauge(name, help_text).set(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    """Record an observation in a histogram, creating it if needed."""
    _registry.histogram(name, help_text).observe(value, labels)


# ---------------------------------------------------------------------------
# Predefined metrics for vinylsync
# ---------------------------------------------------------------------------

API_REQUESTS = "api_requests_total"
API_REQUEST_DURATION = "api_request_duration_seconds"
API_RETRIES = "api_retries_total"
RATE_LIMIT_REMAINING = "api_rate_limit_remaining"
RATE_LIMIT_USED = "api_rate_limit_used"

SYNC_RUNS = "sync_runs_total"
SYNC_RUN_DURATION = "sync_run_duration_seconds"
SYNC_RECORDS_PROCESSED = "sync_records_processed_total"
SYNC_RECORDS_REJECTED = "sync_records_rejected_total"


def record_api_request(endpoint: str, outcome: str, duration: float) -> None:
    """Record one remote request attempt with its outcome and duration."""
    increment_counter(
        API_REQUESTS,
        labels={"endpoint": endpoint, "outcome": outcome},
        help_text="Total remote API request attempts",
    )
    observe_histogram(
        API_REQUEST_DURATION,
        duration,
        labels={"endpoint": endpoint},
        help_text="Remote API request duration in seconds",
    )


def record_api_retry(endpoint: str, error_type: str) -> None:
    increment_counter(
        API_RETRIES,
        labels={"endpoint": endpoint, "error": error_type},
        help_text="Total retried remote API requests",
    )


def record_rate_limit_usage(used: int | None, remaining: int | None) -> None:
    """Record the rate-limit usage the server reported on its last response."""
    if used is not None:
        set_gauge(RATE_LIMIT_USED, float(used), help_text="Requests used in the current window")
    if remaining is not None:
        set_gauge(
            RATE_LIMIT_REMAINING,
            float(remaining),
            help_text="Requests remaining in the current window",
        )


def record_sync_run(
    kind: str, status: str, duration: float, records_processed: int, records_rejected: int = 0
) -> None:
    """Record a finished sync run."""
    increment_counter(
        SYNC_RUNS,
        labels={"kind": kind, "status": status},
        help_text="Total sync runs",
    )
    observe_histogram(
        SYNC_RUN_DURATION,
        duration,
        labels={"kind": kind},
        help_text="Sync run duration in seconds",
    )
    increment_counter(
        SYNC_RECORDS_PROCESSED,
        value=float(records_processed),
        help_text="Total records produced by sync",
    )
    if records_rejected:
        increment_counter(
            SYNC_RECORDS_REJECTED,
            value=float(records_rejected),
            help_text="Total records dropped by validation",
        )


# ---------------------------------------------------------------------------
# Export utilities
# ---------------------------------------------------------------------------


def _label_str(key: LabelKey) -> str:
    return ",".join(f"{k}={v}" for k, v in key) if key else "default"


def get_metrics_summary() -> dict[str, object]:
    """Return a summary of all metrics for logging or CLI display."""
    result: dict[str, dict[str, object]] = {"counters": {}, "gauges": {}, "histograms": {}}

    for name, counter in _registry.all_counters().items():
        result["counters"][name] = {_label_str(k): v for k, v in counter._values.items()}

    for name, gauge in _registry.all_gauges().items():
        result["gauges"][name] = {_label_str(k): v for k, v in gauge._values.items()}

    for name, histogram in _registry.all_histograms().items():
        result["histograms"][name] = {
            _label_str(k): histogram.get_stats(dict(k) if k else None)
            for k in list(histogram._observations)
        }

    return dict(result)


def format_prometheus() -> str:
    """Format metrics in Prometheus text exposition format."""
    lines: list[str] = []

    def _emit(name: str, key: LabelKey, suffix: str, value: float) -> None:
        if key:
            label_str = ",".join(f'{k}="{v}"' for k, v in key)
            lines.append(f"{name}{suffix}{{{label_str}}} {value}")
        else:
            lines.append(f"{name}{suffix} {value}")

    for name, counter in _registry.all_counters().items():
        if counter.help_text:
            lines.append(f"# HELP {name} {counter.help_text}")
        lines.append(f"# TYPE {name} counter")
        for key, value in counter._values.items():
            _emit(name, key, "", value)

    for name, gauge in _registry.all_gauges().items():
        if gauge.help_text:
            lines.append(f"# HELP {name} {gauge.help_text}")
        lines.append(f"# TYPE {name} gauge")
        for key, value in gauge._values.items():
            _emit(name, key, "", value)

    for name, histogram in _registry.all_histograms().items():
        if histogram.help_text:
            lines.append(f"# HELP {name} {histogram.help_text}")
        lines.append(f"# TYPE {name} histogram")
        for key in list(histogram._observations):
            stats = histogram.get_stats(dict(key) if key else None)
            _emit(name, key, "_count", stats["count"])
            _emit(name, key, "_sum", stats["sum"])

    return "\n".join(lines)
