"""
Metrics — counters and timings for one configuration run.

No external dependencies. One registry lives on each Config and is
updated from many analysis workers at once, so every mutation takes
a lock. Exported as JSON by ``buildconf configure --json``.

Names recorded by the core:

    env.reads                        first reads through the ledger
    once.hit / once.miss             memo table lookups
    mixed_build.modules{enabled}     modules logged by analysis
    config.load_product_variables    load-or-create timing (ms)
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

ENV_READS = "env.reads"
ONCE_HIT = "once.hit"
ONCE_MISS = "once.miss"
MIXED_BUILD_MODULES = "mixed_build.modules"
LOAD_PRODUCT_VARIABLES = "config.load_product_variables"

_Key = tuple[str, tuple[tuple[str, str], ...]]


def _key(name: str, labels: dict[str, str]) -> _Key:
    return name, tuple(sorted(labels.items()))


@dataclass
class Counter:
    """Count of events, optionally split by labels."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self.value += n

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "counter", "value": self.value, "labels": self.labels}


@dataclass
class Histogram:
    """Running summary of observed values: count, total, min, max."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    count: int = 0
    total: float = 0.0
    min: float = 0.0
    max: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def observe(self, value: float) -> None:
        with self._lock:
            if self.count == 0:
                self.min = self.max = value
            else:
                self.min = min(self.min, value)
                self.max = max(self.max, value)
            self.count += 1
            self.total += value

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "histogram",
            "count": self.count,
            "total": round(self.total, 3),
            "mean": round(self.mean, 3),
            "min": self.min,
            "max": self.max,
            "labels": self.labels,
        }


class MetricsRegistry:
    """Get-or-create store for the metrics of one configuration."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[_Key, Counter] = {}
        self._histograms: dict[_Key, Histogram] = {}

    def _get(self, table: dict, factory: type, name: str, labels: dict[str, str]) -> Any:
        key = _key(name, labels)
        with self._lock:
            metric = table.get(key)
            if metric is None:
                metric = table[key] = factory(name=name, labels=labels)
            return metric

    def counter(self, name: str, **labels: str) -> Counter:
        return self._get(self._counters, Counter, name, labels)

    def histogram(self, name: str, **labels: str) -> Histogram:
        return self._get(self._histograms, Histogram, name, labels)

    def timer(self, name: str, **labels: str) -> TimerContext:
        """Time a block in milliseconds into the histogram ``name``."""
        return TimerContext(self.histogram(name, **labels))

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            return {
                "counters": [c.to_dict() for c in self._counters.values()],
                "histograms": [h.to_dict() for h in self._histograms.values()],
            }


class TimerContext:
    """Context manager that records elapsed wall time to a histogram."""

    def __init__(self, histogram: Histogram):
        self._histogram = histogram
        self._start = 0.0

    def __enter__(self) -> TimerContext:
        self._start = time.monotonic()
        return self

    def __exit__(self, *args: Any) -> None:
        self._histogram.observe((time.monotonic() - self._start) * 1000)
