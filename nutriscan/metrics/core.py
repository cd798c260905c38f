"""Tagged counters and latency aggregates for one analysis pipeline.

A registry belongs to a single orchestrator (through AnalysisMetrics),
so tests read exact values without resetting shared state. Histograms
keep running aggregates rather than samples: memory stays constant
however many model calls are timed.
"""

from __future__ import annotations

from threading import Lock
from typing import Dict, List, Tuple, TypedDict

SeriesKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def _series(name: str, tags: Dict[str, str]) -> SeriesKey:
    return name, tuple(sorted(tags.items()))


class Counter:
    """Monotonic count for one (name, tags) series."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        return self._value


class HistogramSummary(TypedDict):
    count: int
    avg: float
    min: float
    max: float


class Histogram:
    """Count, sum, min and max of observed values (e.g. latency in ms)."""

    def __init__(self) -> None:
        self._count = 0
        self._total = 0.0
        self._min = 0.0
        self._max = 0.0
        self._lock = Lock()

    def observe(self, value: float) -> None:
        with self._lock:
            if self._count == 0:
                self._min = self._max = value
            else:
                self._min = min(self._min, value)
                self._max = max(self._max, value)
            self._count += 1
            self._total += value

    def summary(self) -> HistogramSummary:
        with self._lock:
            if self._count == 0:
                return {"count": 0, "avg": 0.0, "min": 0.0, "max": 0.0}
            return {
                "count": self._count,
                "avg": self._total / self._count,
                "min": self._min,
                "max": self._max,
            }


class SeriesSnapshot(TypedDict):
    name: str
    tags: Dict[str, str]


class CounterSnapshot(SeriesSnapshot):
    value: int


class HistogramSnapshot(SeriesSnapshot, HistogramSummary):
    pass


class RegistrySnapshot(TypedDict):
    counters: List[CounterSnapshot]
    histograms: List[HistogramSnapshot]


class MetricsRegistry:
    """
    Counters and histograms addressed by name plus keyword tags.

    Tag order does not matter: counter("x", a="1", b="2") and
    counter("x", b="2", a="1") are the same series.
    """

    def __init__(self) -> None:
        self._counters: Dict[SeriesKey, Counter] = {}
        self._histograms: Dict[SeriesKey, Histogram] = {}
        self._lock = Lock()

    def counter(self, name: str, **tags: str) -> Counter:
        with self._lock:
            return self._counters.setdefault(_series(name, tags), Counter())

    def histogram(self, name: str, **tags: str) -> Histogram:
        with self._lock:
            return self._histograms.setdefault(_series(name, tags), Histogram())

    def counter_value(self, name: str, **tags: str) -> int:
        """Current value of a series, 0 if it was never incremented."""
        with self._lock:
            ctr = self._counters.get(_series(name, tags))
        return ctr.value if ctr is not None else 0

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            counters = list(self._counters.items())
            histograms = list(self._histograms.items())
        return {
            "counters": [
                {"name": name, "tags": dict(tags), "value": ctr.value}
                for (name, tags), ctr in counters
            ],
            "histograms": [
                {"name": name, "tags": dict(tags), **hist.summary()}  # type: ignore[typeddict-item]
                for (name, tags), hist in histograms
            ],
        }
