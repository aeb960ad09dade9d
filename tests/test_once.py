"""
Tests for the memoization cache.
"""

import threading
import time

import pytest

from buildconf.core.observability.metrics import MetricsRegistry
from buildconf.core.once import OnceKey, OncePer


class TestOnce:
    def test_computes_once(self):
        once = OncePer()
        calls = []

        def compute():
            calls.append(1)
            return ["value"]

        first = once.once(OnceKey("k"), compute)
        second = once.once(OnceKey("k"), compute)
        assert first is second
        assert len(calls) == 1

    def test_keys_are_independent(self):
        once = OncePer()
        assert once.once(OnceKey("a"), lambda: 1) == 1
        assert once.once(OnceKey("b"), lambda: 2) == 2
        assert once.once(OnceKey("a"), lambda: 3) == 1

    def test_instances_are_independent(self):
        key = OnceKey("shared")
        assert OncePer().once(key, lambda: "x") == "x"
        assert OncePer().once(key, lambda: "y") == "y"

    def test_string_list(self):
        once = OncePer()
        assert once.once_string_list(OnceKey("l"), lambda: ["a", "b"]) == ["a", "b"]

    def test_peek(self):
        once = OncePer()
        key = OnceKey("p")
        assert once.peek(key) == (None, False)
        once.once(key, lambda: 42)
        assert once.peek(key) == (42, True)

    def test_exception_not_cached(self):
        once = OncePer()
        key = OnceKey("flaky")

        def boom():
            raise ValueError("first call fails")

        with pytest.raises(ValueError):
            once.once(key, boom)
        assert once.once(key, lambda: "ok") == "ok"

    def test_metrics(self):
        metrics = MetricsRegistry()
        once = OncePer(metrics)
        once.once(OnceKey("m"), lambda: 1)
        once.once(OnceKey("m"), lambda: 1)
        once.once(OnceKey("m"), lambda: 1)
        assert metrics.counter("once.miss").value == 1
        assert metrics.counter("once.hit").value == 2


class TestOnceConcurrency:
    """Concurrent callers of the same key share one computation."""

    def test_concurrent_same_key(self):
        once = OncePer()
        key = OnceKey("slow")
        calls = []
        calls_lock = threading.Lock()
        start = threading.Barrier(16)
        results = []

        def compute():
            with calls_lock:
                calls.append(1)
            time.sleep(0.05)
            return object()

        def worker():
            start.wait()
            results.append(once.once(key, compute))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(results) == 16
        assert all(r is results[0] for r in results)

    def test_different_keys_run_in_parallel(self):
        once = OncePer()
        gate = threading.Event()
        done = []

        def blocked():
            gate.wait(timeout=5)
            return "blocked"

        t = threading.Thread(target=lambda: done.append(once.once(OnceKey("a"), blocked)))
        t.start()
        # A second key must not wait for the first key's computation.
        assert once.once(OnceKey("b"), lambda: "free") == "free"
        gate.set()
        t.join()
        assert done == ["blocked"]
