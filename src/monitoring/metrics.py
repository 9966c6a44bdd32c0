"""
Metrics collection for DropMint.

A thread-safe, in-process collector for:
- Counters: mints, units minted, payments per currency, rejected calls
- Gauges: registered collections, supply, in-flight HTTP requests
- Histograms: cross-collection execution and HTTP latency (milliseconds)

Every series is keyed by metric name plus an optional label set, and the
whole collector can be rendered in the Prometheus text exposition format.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

METRIC_PREFIX = "dropmint"

# Upper bounds (ms) for latency histograms; +Inf is always appended
LATENCY_BUCKETS_MS = (1, 5, 10, 25, 50, 100, 250, 500, 1000, 5000)

METRIC_HELP = {
    "mints_total": "Successful mint calls by payment currency and entrypoint",
    "tokens_minted_total": "Units minted across all collections",
    "payments_total": "Payment consumed by mints, in the currency's base unit",
    "rejected_calls_total": "Entrypoint calls rolled back, by entrypoint and error",
    "cross_collection_batches_total": "Cross-collection batches executed",
    "execution_groups_total": "Execution groups run by the cross-collection resolver",
    "cross_collection_execution_ms": "Time spent executing a cross-collection plan",
    "http_requests_total": "HTTP requests by method, path and status",
    "http_request_duration_ms": "HTTP request latency",
}


@dataclass
class Histogram:
    """Cumulative bucket counts plus sum and count of observations."""

    bounds: tuple[float, ...] = LATENCY_BUCKETS_MS
    counts: list[int] = field(default_factory=list)
    sum: float = 0.0
    count: int = 0

    def __post_init__(self):
        self.bounds = tuple(self.bounds) + (float("inf"),)
        self.counts = [0] * len(self.bounds)

    def observe(self, value: float) -> None:
        self.sum += value
        self.count += 1
        for index, bound in enumerate(self.bounds):
            if value <= bound:
                self.counts[index] += 1

    def summary(self) -> dict[str, float]:
        return {
            "count": self.count,
            "sum": self.sum,
            "avg": self.sum / self.count if self.count else 0,
        }


def _label_key(labels: dict[str, str] | None) -> str:
    """Render labels as a sorted `k="v"` list, usable as a dict key."""
    if not labels:
        return ""
    return ",".join(f'{name}="{value}"' for name, value in sorted(labels.items()))


class MetricsCollector:
    """Counters, gauges and histograms guarded by one re-entrant lock."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: dict[str, dict[str, int]] = defaultdict(dict)
        self._gauges: dict[str, dict[str, float]] = defaultdict(dict)
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)
        self._start_time = time.time()

    # Counters

    def increment(self, name: str, value: int = 1, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._counters[name]
            series[key] = series.get(key, 0) + value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counters.get(name, {}).get(_label_key(labels), 0)

    # Gauges

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._gauges[name][_label_key(labels)] = value

    def increment_gauge(self, name: str, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._gauges[name]
            series[key] = series.get(key, 0) + value

    def decrement_gauge(self, name: str, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        self.increment_gauge(name, -value, labels)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._gauges.get(name, {}).get(_label_key(labels), 0.0)

    # Histograms

    def timing(self, name: str, value_ms: float, labels: dict[str, str] | None = None) -> None:
        """Record one latency observation in milliseconds."""
        key = _label_key(labels)
        with self._lock:
            histogram = self._histograms[name].get(key)
            if histogram is None:
                histogram = self._histograms[name][key] = Histogram()
            histogram.observe(value_ms)

    @contextmanager
    def timer(self, name: str, labels: dict[str, str] | None = None):
        """
        Time a block, recording the duration even when it raises.

        Usage:
            with metrics.timer("cross_collection_execution_ms", labels={"mixed": "true"}):
                run_groups()
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timing(name, (time.perf_counter() - start) * 1000, labels)

    # Export

    def get_all(self) -> dict[str, Any]:
        """
        Snapshot of every series.

        Unlabelled counters and gauges collapse to a bare value; histograms
        report count/sum/avg per label set ("_total" when unlabelled).
        """

        def collapse(series: dict[str, Any]) -> Any:
            if set(series) == {""}:
                return series[""]
            return dict(series)

        with self._lock:
            return {
                "uptime_seconds": time.time() - self._start_time,
                "counters": {name: collapse(series) for name, series in self._counters.items()},
                "gauges": {name: collapse(series) for name, series in self._gauges.items()},
                "histograms": {
                    name: {key or "_total": h.summary() for key, h in series.items()}
                    for name, series in self._histograms.items()
                },
            }

    def to_prometheus(self) -> str:
        """Render all series in Prometheus text format."""
        uptime_name = f"{METRIC_PREFIX}_uptime_seconds"
        lines = [
            f"# HELP {uptime_name} Seconds since the collector started",
            f"# TYPE {uptime_name} gauge",
            f"{uptime_name} {time.time() - self._start_time:.2f}",
            "",
        ]

        with self._lock:
            for kind, families in (("counter", self._counters), ("gauge", self._gauges)):
                for name, series in families.items():
                    lines.extend(self._header(name, kind))
                    for key, value in series.items():
                        lines.append(f"{_series_name(name, key)} {value}")
                    lines.append("")

            for name, series in self._histograms.items():
                lines.extend(self._header(name, "histogram"))
                for key, histogram in series.items():
                    for bound, count in zip(histogram.bounds, histogram.counts):
                        le = "+Inf" if bound == float("inf") else bound
                        labels = f'{key},le="{le}"' if key else f'le="{le}"'
                        lines.append(f"{METRIC_PREFIX}_{name}_bucket{{{labels}}} {count}")
                    lines.append(f"{_series_name(name + '_sum', key)} {histogram.sum:.2f}")
                    lines.append(f"{_series_name(name + '_count', key)} {histogram.count}")
                lines.append("")

        return "\n".join(lines)

    @staticmethod
    def _header(name: str, kind: str) -> list[str]:
        lines = []
        if name in METRIC_HELP:
            lines.append(f"# HELP {METRIC_PREFIX}_{name} {METRIC_HELP[name]}")
        lines.append(f"# TYPE {METRIC_PREFIX}_{name} {kind}")
        return lines

    def reset(self) -> None:
        """Drop every series (used between tests)."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._start_time = time.time()


def _series_name(name: str, key: str) -> str:
    return f"{METRIC_PREFIX}_{name}{{{key}}}" if key else f"{METRIC_PREFIX}_{name}"


# Global metrics instance
metrics = MetricsCollector()
