"""Lightweight in-process metrics for development and tests.

Keys recorded by the dispatcher:

- ``dispatcher.enqueued`` / ``completed`` / ``failed`` / ``cancelled``: UI queue callbacks
- ``workers.spawned`` / ``failed`` / ``cancelled``: background tasks
- ``dispatcher.callback_duration`` (timing, seconds): time spent in each UI callback

Usage:
    from uibind.metrics import metrics
    metrics.inc("dispatcher.enqueued")
    with metrics.timed("dispatcher.callback_duration"):
        ...
    snapshot = metrics.snapshot()
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from threading import RLock
from typing import Any


class _Metrics:
    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, list[float]] = defaultdict(list)
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def record(self, key: str, seconds: float) -> None:
        with self._lock:
            self._timings[key].append(float(seconds))

    def timed(self, key: str):
        @contextmanager
        def _ctx():
            start = time.perf_counter()
            try:
                yield
            finally:
                self.record(key, time.perf_counter() - start)

        return _ctx()

    def counter(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: list(v) for k, v in self._timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = _Metrics()
