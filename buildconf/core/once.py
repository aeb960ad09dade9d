"""
Memoization cache ("once") — compute derived values at most once.

Derived values that are expensive to build from product variables
(directory maps, boot jar lists, toolchain settings) are computed on
first use and shared by every analysis worker afterwards.

Thread safety: a per-key lock makes concurrent callers of the same key
wait for the single computation and observe the same object. Different
keys compute in parallel. If the computation raises, nothing is stored
and the next caller retries.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from buildconf.core.observability.metrics import ONCE_HIT, ONCE_MISS, MetricsRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OnceKey:
    """Stable identifier for a memoized value."""

    name: str


class OncePer:
    """Per-instance memoization table keyed by ``OnceKey``."""

    def __init__(self, metrics: MetricsRegistry | None = None) -> None:
        self._values: dict[OnceKey, Any] = {}
        self._key_locks: dict[OnceKey, threading.Lock] = {}
        self._guard = threading.Lock()
        self._metrics = metrics

    def _key_lock(self, key: OnceKey) -> threading.Lock:
        with self._guard:
            if key not in self._key_locks:
                self._key_locks[key] = threading.Lock()
            return self._key_locks[key]

    def once(self, key: OnceKey, compute: Callable[[], T]) -> T:
        """Return the value for ``key``, calling ``compute()`` on first use."""
        with self._guard:
            if key in self._values:
                self._count(ONCE_HIT)
                return self._values[key]

        with self._key_lock(key):
            with self._guard:
                if key in self._values:
                    self._count(ONCE_HIT)
                    return self._values[key]

            value = compute()
            logger.debug("once: computed %s", key.name)

            with self._guard:
                self._values[key] = value
            self._count(ONCE_MISS)
            return value

    def once_string_list(self, key: OnceKey, compute: Callable[[], list[str]]) -> list[str]:
        return self.once(key, compute)

    def peek(self, key: OnceKey) -> tuple[Any, bool]:
        """Return ``(value, True)`` if ``key`` was computed, else ``(None, False)``."""
        with self._guard:
            if key in self._values:
                return self._values[key], True
            return None, False

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.counter(name).inc()
