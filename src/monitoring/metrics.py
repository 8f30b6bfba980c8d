"""
Metrics collection for the issuance controller.

Thread-safe counters, gauges and latency histograms, exported as a
dictionary (for /status style endpoints) or Prometheus text.

Metrics recorded by the controller:
- issuer_authorizations_total, issuer_deauthorizations_total, issuer_transfers_total
- mints_total, burns_total, units_minted_total, units_burned_total
- rejected_operations_total{operation, code}
- active_issuers, total_supply (gauges)
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

METRIC_PREFIX = "issuance_"

METRIC_HELP = {
    "issuer_authorizations_total": "Issuers authorized",
    "issuer_deauthorizations_total": "Issuers removed (voluntary or expired)",
    "issuer_transfers_total": "Issuer authorizations transferred",
    "mints_total": "Successful mint operations",
    "burns_total": "Successful burn operations",
    "units_minted_total": "Units created by mints, including floor top-ups",
    "units_burned_total": "Units destroyed by burns",
    "rejected_operations_total": "Operations rejected by a guard",
    "active_issuers": "Issuers currently in the registry",
    "total_supply": "Ledger total supply after the last operation",
}

DEFAULT_LATENCY_BOUNDS_MS = (5, 10, 25, 50, 100, 250, 500, 1000, 2500)


@dataclass
class Histogram:
    """Cumulative-bucket histogram of observed values."""

    bounds: tuple[float, ...] = DEFAULT_LATENCY_BOUNDS_MS
    counts: list[int] = field(default_factory=list)
    sum: float = 0.0
    count: int = 0

    def __post_init__(self):
        if not self.counts:
            self.counts = [0] * (len(self.bounds) + 1)  # last slot is +Inf

    def observe(self, value: float) -> None:
        self.sum += value
        self.count += 1
        for i, bound in enumerate(self.bounds):
            if value <= bound:
                self.counts[i] += 1
        self.counts[-1] += 1

    def to_dict(self) -> dict[str, Any]:
        labels = [str(b) for b in self.bounds] + ["+Inf"]
        return {
            "count": self.count,
            "sum": self.sum,
            "avg": self.sum / self.count if self.count else 0,
            "buckets": dict(zip(labels, self.counts)),
        }


class MetricsCollector:
    """Thread-safe collector of labeled counters, gauges and histograms."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._gauges: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)
        self._start_time = time.time()

    @staticmethod
    def _labels_key(labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    # Counters

    def increment(self, name: str, value: int = 1, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._counters[name][self._labels_key(labels)] += value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counters[name].get(self._labels_key(labels), 0)

    # Gauges

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._gauges[name][self._labels_key(labels)] = value

    def increment_gauge(
        self, name: str, value: float = 1.0, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            self._gauges[name][self._labels_key(labels)] += value

    def decrement_gauge(
        self, name: str, value: float = 1.0, labels: dict[str, str] | None = None
    ) -> None:
        self.increment_gauge(name, -value, labels)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._gauges[name].get(self._labels_key(labels), 0.0)

    # Histograms

    def timing(self, name: str, value_ms: float, labels: dict[str, str] | None = None) -> None:
        """Record a timing observation in milliseconds."""
        with self._lock:
            key = self._labels_key(labels)
            if key not in self._histograms[name]:
                self._histograms[name][key] = Histogram()
            self._histograms[name][key].observe(value_ms)

    @contextmanager
    def timer(self, name: str, labels: dict[str, str] | None = None):
        """Context manager for timing code blocks."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timing(name, (time.perf_counter() - start) * 1000, labels)

    # Export

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            return {
                "uptime_seconds": time.time() - self._start_time,
                "counters": {name: self._flatten(values) for name, values in self._counters.items()},
                "gauges": {name: self._flatten(values) for name, values in self._gauges.items()},
                "histograms": {
                    name: {key or "_total": hist.to_dict() for key, hist in hists.items()}
                    for name, hists in self._histograms.items()
                },
            }

    @staticmethod
    def _flatten(values: dict[str, Any]) -> Any:
        if len(values) == 1 and "" in values:
            return values[""]
        return dict(values)

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []

        with self._lock:
            lines.append(f"# TYPE {METRIC_PREFIX}uptime_seconds gauge")
            lines.append(f"{METRIC_PREFIX}uptime_seconds {time.time() - self._start_time:.2f}")
            lines.append("")

            for kind, series in (("counter", self._counters), ("gauge", self._gauges)):
                for name, values in series.items():
                    metric_name = f"{METRIC_PREFIX}{name}"
                    if name in METRIC_HELP:
                        lines.append(f"# HELP {metric_name} {METRIC_HELP[name]}")
                    lines.append(f"# TYPE {metric_name} {kind}")
                    for key, value in values.items():
                        label_part = f"{{{key}}}" if key else ""
                        lines.append(f"{metric_name}{label_part} {value}")
                    lines.append("")

            for name, hists in self._histograms.items():
                metric_name = f"{METRIC_PREFIX}{name}"
                lines.append(f"# TYPE {metric_name} histogram")
                for key, hist in hists.items():
                    prefix = f"{key}," if key else ""
                    bounds = [str(b) for b in hist.bounds] + ["+Inf"]
                    for bound, count in zip(bounds, hist.counts):
                        lines.append(f'{metric_name}_bucket{{{prefix}le="{bound}"}} {count}')
                    label_part = f"{{{key}}}" if key else ""
                    lines.append(f"{metric_name}_sum{label_part} {hist.sum:.2f}")
                    lines.append(f"{metric_name}_count{label_part} {hist.count}")
                lines.append("")

        return "\n".join(lines)

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._start_time = time.time()


# Global metrics instance
metrics = MetricsCollector()
