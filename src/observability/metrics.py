"""
Metrics — In-process counters, gauges and histograms for sync runs.

Values live in memory for the lifetime of the process and can be
exported in Prometheus text format or as JSON.

## Usage

    from src.observability.metrics import metrics

    metrics.increment("transfers_total", labels={"status": "ok"})
    metrics.set_gauge("admission_tokens_in_use", 3)
    metrics.timing("transfer_duration_seconds", 12.5)

    output = metrics.export_prometheus()

Components take an optional registry argument so tests can use an
isolated MetricsRegistry instead of the global one.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class MetricPoint:
    """A single exported sample."""

    name: str
    value: float
    timestamp: float
    labels: Dict[str, str] = field(default_factory=dict)


def _labels_key(labels: Optional[Dict[str, str]]) -> str:
    if not labels:
        return ""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def _labels_from_key(key: str) -> Dict[str, str]:
    labels: Dict[str, str] = {}
    if key:
        for pair in key.split(","):
            k, v = pair.split("=", 1)
            labels[k] = v
    return labels


class Counter:
    """A monotonically increasing counter."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._values: Dict[str, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[_labels_key(labels)] += value

    def get(self, labels: Optional[Dict[str, str]] = None) -> float:
        return self._values.get(_labels_key(labels), 0)

    def total(self) -> float:
        """Sum over every label combination."""
        with self._lock:
            return sum(self._values.values())

    def export(self) -> List[MetricPoint]:
        now = time.time()
        with self._lock:
            items = list(self._values.items())
        return [MetricPoint(self.name, v, now, _labels_from_key(k)) for k, v in items]


class Gauge:
    """A value that can go up and down."""

    kind = "gauge"

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._values: Dict[str, float] = {}
        self._lock = Lock()

    def set(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        with self._lock:
            self._values[_labels_key(labels)] = value

    def inc(self, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        key = _labels_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def dec(self, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        self.inc(-value, labels)

    def get(self, labels: Optional[Dict[str, str]] = None) -> float:
        return self._values.get(_labels_key(labels), 0)

    def export(self) -> List[MetricPoint]:
        now = time.time()
        with self._lock:
            items = list(self._values.items())
        return [MetricPoint(self.name, v, now, _labels_from_key(k)) for k, v in items]


class Histogram:
    """Distribution of observed durations, in seconds."""

    kind = "histogram"

    # Image pulls and pushes take seconds to minutes
    DEFAULT_BUCKETS = (0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600, float("inf"))

    def __init__(self, name: str, help_text: str = "", buckets: Optional[tuple] = None):
        self.name = name
        self.help_text = help_text
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._counts: Dict[str, Dict[float, int]] = defaultdict(lambda: defaultdict(int))
        self._sums: Dict[str, float] = defaultdict(float)
        self._totals: Dict[str, int] = defaultdict(int)
        self._lock = Lock()

    def observe(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = _labels_key(labels)
        with self._lock:
            self._sums[key] += value
            self._totals[key] += 1
            for bucket in self.buckets:
                if value <= bucket:
                    self._counts[key][bucket] += 1
                    break

    def count(self, labels: Optional[Dict[str, str]] = None) -> int:
        return self._totals.get(_labels_key(labels), 0)

    def sum(self, labels: Optional[Dict[str, str]] = None) -> float:
        return self._sums.get(_labels_key(labels), 0.0)

    def export(self) -> List[MetricPoint]:
        points = []
        now = time.time()
        with self._lock:
            keys = list(self._totals.keys())
            for key in keys:
                labels = _labels_from_key(key)
                cumulative = 0
                for bucket in self.buckets:
                    cumulative += self._counts[key].get(bucket, 0)
                    le = "+Inf" if bucket == float("inf") else str(bucket)
                    points.append(
                        MetricPoint(f"{self.name}_bucket", cumulative, now, {**labels, "le": le})
                    )
                points.append(MetricPoint(f"{self.name}_sum", self._sums[key], now, labels))
                points.append(MetricPoint(f"{self.name}_count", self._totals[key], now, labels))
        return points


class MetricsRegistry:
    """
    Central registry for all metrics.

    Names are prefixed (`gcrsync_` by default) on registration.
    """

    def __init__(self, prefix: str = "gcrsync"):
        self.prefix = prefix
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._histograms: Dict[str, Histogram] = {}
        self._lock = Lock()

        self._register_common_metrics()

    def _register_common_metrics(self) -> None:
        # Runs
        self.counter("sync_runs_total", "Sync runs started")
        self.counter("sync_deadline_exceeded_total", "Sync runs cut short by the deadline")
        self.histogram("sync_duration_seconds", "Wall-clock duration of a sync run")

        # Plan and transfers
        self.gauge("source_images", "Images listed in the source registry")
        self.gauge("target_images", "Images listed in the target registry")
        self.gauge("images_planned", "Images waiting to be mirrored in the current run")
        self.counter("transfers_total", "Transfer tasks by terminal status")
        self.histogram("transfer_duration_seconds", "Duration of a single image transfer")
        self.gauge("admission_tokens_in_use", "Transfer admission tokens currently held")

        # Changelog
        self.counter("changelog_commits_total", "Changelog commits by outcome")
        self.gauge("changelog_batch_size", "Images in the last changelog batch")

        # Monitor
        self.counter("listing_errors_total", "Registry listing failures")
        self.gauge("monitor_waiting_images", "Images waiting, as seen by the monitor")

    def counter(self, name: str, help_text: str = "") -> Counter:
        """Get or create a counter."""
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            if full_name not in self._counters:
                self._counters[full_name] = Counter(full_name, help_text)
            return self._counters[full_name]

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        """Get or create a gauge."""
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            if full_name not in self._gauges:
                self._gauges[full_name] = Gauge(full_name, help_text)
            return self._gauges[full_name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        """Get or create a histogram."""
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            if full_name not in self._histograms:
                self._histograms[full_name] = Histogram(full_name, help_text)
            return self._histograms[full_name]

    # Convenience methods
    def increment(self, name: str, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        self.counter(name).inc(value, labels)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        self.gauge(name).set(value, labels)

    def timing(self, name: str, seconds: float, labels: Optional[Dict[str, str]] = None) -> None:
        self.histogram(name).observe(seconds, labels)

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        counters, gauges, histograms = self._snapshot()
        families = list(counters.values()) + list(gauges.values()) + list(histograms.values())
        for family in families:
            lines.append(f"# HELP {family.name} {family.help_text}")
            lines.append(f"# TYPE {family.name} {family.kind}")
            for point in family.export():
                lines.append(f"{point.name}{self._format_labels(point.labels)} {point.value}")
        return "\n".join(lines)

    def export_json(self) -> Dict[str, Any]:
        counters, gauges, histograms = self._snapshot()
        result: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": {},
            "gauges": {},
            "histograms": {},
        }
        for name, counter in counters.items():
            result["counters"][name] = {
                (_labels_key(p.labels) or "total"): p.value for p in counter.export()
            }
        for name, gauge in gauges.items():
            result["gauges"][name] = gauge.get()
        for name, histogram in histograms.items():
            result["histograms"][name] = {
                "sum": histogram.sum(),
                "count": histogram.count(),
            }
        return result

    def _snapshot(self) -> Tuple[Dict[str, Counter], Dict[str, Gauge], Dict[str, Histogram]]:
        with self._lock:
            return dict(self._counters), dict(self._gauges), dict(self._histograms)

    def _format_labels(self, labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(pairs) + "}"


# Global metrics instance
metrics = MetricsRegistry()
