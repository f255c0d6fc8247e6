from __future__ import annotations

import threading
import time as _time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from identity_pool.core.errors import StoreError
from identity_pool.core.stores.memory import InMemoryStore


class FakeClock:
    """Deterministic clock; sleep() advances time instead of blocking."""

    def __init__(self, start: float = 1_700_000_000.0):
        self._t = float(start)
        self._lock = threading.Lock()
        self.sleeps: List[float] = []

    def time(self) -> float:
        with self._lock:
            return self._t

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._t += float(seconds)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(float(seconds))
        self.advance(seconds)


class FlakyStore(InMemoryStore):
    """InMemoryStore whose push/pull can be switched to fail."""

    def __init__(self, *a: Any, **k: Any):
        super().__init__(*a, **k)
        self.fail = False

    def pull(self, wait_until=None, message=None, timeout=None):  # noqa: ANN001
        if self.fail:
            raise StoreError("store down")
        return super().pull(wait_until=wait_until, message=message, timeout=timeout)

    def push(self, partial):  # noqa: ANN001
        if self.fail:
            raise StoreError("store down")
        return super().push(partial)


@dataclass
class RecordingFatal:
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def __call__(self, code: str, message: str, **ctx: Any) -> None:
        self.calls.append({"code": code, "message": message, **ctx})


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.005) -> bool:
    deadline = _time.monotonic() + timeout
    while _time.monotonic() < deadline:
        if predicate():
            return True
        _time.sleep(interval)
    return bool(predicate())


def run_threads(n: int, target: Callable[[int], Any]) -> List[threading.Thread]:
    threads = [threading.Thread(target=target, args=(i,), daemon=True) for i in range(n)]
    for t in threads:
        t.start()
    return threads
