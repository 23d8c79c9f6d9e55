from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from math import sqrt
from time import perf_counter
from typing import Dict, Iterator

METRIC_PREFIX = "outlier"


@dataclass(slots=True)
class TimingStats:
    """Running aggregates for one timing label (Welford mean/variance)."""

    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    _mean_ms: float = 0.0
    _m2: float = 0.0

    def update(self, elapsed_ms: float) -> None:
        value = float(elapsed_ms)
        self.count += 1
        self.total_ms += value
        if value > self.max_ms:
            self.max_ms = value
        delta = value - self._mean_ms
        self._mean_ms += delta / self.count
        self._m2 += delta * (value - self._mean_ms)

    @property
    def variance_ms(self) -> float:
        return self._m2 / (self.count - 1) if self.count > 1 else 0.0

    def snapshot(self) -> Dict[str, float]:
        variance = self.variance_ms
        return {
            "count": float(self.count),
            "total_ms": self.total_ms,
            "max_ms": self.max_ms,
            "avg_ms": self._mean_ms,
            "variance_ms": variance,
            "stddev_ms": sqrt(variance) if variance > 0.0 else 0.0,
        }


class _MetricsRegistry:
    """Thread-safe in-process registry of timings and counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timings: Dict[str, TimingStats] = {}
        self._counters: Dict[str, float] = {}

    def record(self, label: str, elapsed_ms: float) -> None:
        if not label:
            return
        with self._lock:
            self._timings.setdefault(label, TimingStats()).update(elapsed_ms)

    def inc(self, label: str, amount: float = 1.0) -> None:
        if not label:
            return
        with self._lock:
            self._counters[label] = self._counters.get(label, 0.0) + float(amount)

    def timings_snapshot(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {label: stats.snapshot() for label, stats in self._timings.items()}

    def counters_snapshot(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._counters)

    def reset(self) -> None:
        with self._lock:
            self._timings.clear()
            self._counters.clear()


metrics_registry = _MetricsRegistry()

_INSTRUMENTATION_ENABLED: bool = True


def set_instrumentation_enabled(enabled: bool) -> None:
    global _INSTRUMENTATION_ENABLED
    _INSTRUMENTATION_ENABLED = bool(enabled)


def instrumentation_enabled() -> bool:
    return _INSTRUMENTATION_ENABLED


@contextmanager
def timer(label: str) -> Iterator[None]:
    """Context manager to time a code block and record it under `label`."""
    if not instrumentation_enabled():
        yield
        return
    t0 = perf_counter()
    try:
        yield
    finally:
        metrics_registry.record(label, (perf_counter() - t0) * 1000.0)


def operation_timer(operation: str):
    """Instrument hook for the orchestrator: times ``decode``/``compute`` as ``outlier.<operation>``."""

    return timer(f"{METRIC_PREFIX}.{operation}")


def inc_counter(label: str, amount: float = 1.0) -> None:
    if instrumentation_enabled():
        metrics_registry.inc(label, amount)


def get_metrics() -> Dict[str, Dict[str, float]]:
    return metrics_registry.timings_snapshot()


def get_counters() -> Dict[str, float]:
    return metrics_registry.counters_snapshot()


__all__ = [
    "METRIC_PREFIX",
    "timer",
    "operation_timer",
    "inc_counter",
    "get_metrics",
    "get_counters",
    "metrics_registry",
    "set_instrumentation_enabled",
    "instrumentation_enabled",
]
