"""Registry of named benchmark metrics.

Solver runs report their wall-clock time here so a caller (the command line,
the benchmark script, a monitoring hook) can print rolling
percentiles without the solver knowing who is listening. Timing is advisory
instrumentation: nothing in the solver reads these values back.

Region batches may record from worker threads, so recording takes a lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import NamedTuple

import numpy as np


class SampleWindow:
    """The most recent ``size`` samples of a timing, oldest first.

    Solve times are recorded in milliseconds. Once the window is full each new
    sample overwrites the oldest one, so summaries track recent behaviour.
    """

    def __init__(self, size: int = 1000) -> None:
        if size < 1:
            raise ValueError(f"Window size must be positive, got {size}")
        self.size = size
        self._buffer = np.zeros(size, dtype=np.float64)
        self._next = 0
        self._total = 0

    def record(self, value: float) -> None:
        self._buffer[self._next] = value
        self._next = (self._next + 1) % self.size
        self._total += 1

    @property
    def count(self) -> int:
        return min(self._total, self.size)

    def values(self) -> np.ndarray:
        if self._total <= self.size:
            return self._buffer[: self._total].copy()
        return np.roll(self._buffer, -self._next)

    @property
    def mean(self) -> float:
        return float(self.values().mean()) if self.count else 0.0

    @property
    def max(self) -> float:
        return float(self.values().max()) if self.count else 0.0

    def percentile(self, q: float) -> float:
        return float(np.percentile(self.values(), q)) if self.count else 0.0

    @property
    def p50(self) -> float:
        return self.percentile(50)

    @property
    def p95(self) -> float:
        return self.percentile(95)

    def summary(self) -> str:
        if not self.count:
            return "No samples"
        return (
            f"n={self.count} mean={self.mean:.2f} p50={self.p50:.2f} "
            f"p95={self.p95:.2f} max={self.max:.2f}"
        )


class MetricSpec(NamedTuple):
    """Definition for a metric to register in batch."""

    name: str
    description: str
    num_samples: int = 100


@dataclass
class Metric:
    """A named statistic fed by repeated measurements."""

    name: str
    description: str
    samples: SampleWindow

    def record_value(self, value: float) -> None:
        self.samples.record(value)


class MetricRegistry:
    """Registry for all ``Metric`` instances.

    When ``strict`` is ``True`` (the default), recording a metric that has
    not been registered raises immediately. Test fixtures that clear the
    registry set ``strict = False`` so timing in unrelated code keeps working.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()
        self.strict: bool = True

    def register_metric(
        self, name: str, description: str = "", num_samples: int = 1000
    ) -> Metric:
        """Register a metric backed by a rolling window of ``num_samples``.

        Raises:
            ValueError: If ``name`` is already registered.
        """
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"Metric '{name}' already registered")
            metric = Metric(name, description, SampleWindow(num_samples))
            self._metrics[name] = metric
        return metric

    def register_metrics(self, specs: Sequence[MetricSpec]) -> None:
        """Register every spec not already present."""
        with self._lock:
            for spec in specs:
                if spec.name not in self._metrics:
                    self._metrics[spec.name] = Metric(
                        spec.name, spec.description, SampleWindow(spec.num_samples)
                    )

    def get_metric(self, name: str) -> Metric | None:
        return self._metrics.get(name)

    def get_all_metrics(self) -> list[Metric]:
        return sorted(self._metrics.values(), key=lambda m: m.name)

    def record_metric(self, name: str, value: float) -> None:
        """Record a value to a metric.

        Raises:
            KeyError: If the metric name is not registered.
        """
        metric = self.get_metric(name)
        if metric is None:
            raise KeyError(f"Metric '{name}' is not registered")
        with self._lock:
            metric.record_value(value)

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()


# Global registry instance used throughout the application
metric_registry = MetricRegistry()


def record_metric_value(metric_name: str, value: float) -> None:
    """Record ``value`` to the named metric.

    In strict mode, raises ``KeyError`` if the metric is not registered.
    Otherwise unregistered metrics are silently skipped.
    """
    if not metric_registry.strict and metric_registry.get_metric(metric_name) is None:
        return
    metric_registry.record_metric(metric_name, value)


@contextmanager
def record_time(metric_name: str) -> Iterator[None]:
    """Record elapsed wall-clock time (ms) of the block to the named metric."""
    start = perf_counter()
    try:
        yield
    finally:
        record_metric_value(metric_name, (perf_counter() - start) * 1000)
