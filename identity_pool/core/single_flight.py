"""Thread-based single-flight execution: one in-flight call per key."""

from __future__ import annotations

import functools
import threading
from typing import Any, Callable, Dict, Optional


class _Call:
    __slots__ = ("done", "result", "error", "waiters")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.waiters = 0


class SingleFlight:
    """
    Collapses concurrent calls sharing a key into one execution.

    The first caller for a key (the leader) runs ``fn``; callers arriving
    while it runs block and receive the same return value or the same
    exception. The key is cleared as soon as the leader finishes, so a later
    call starts a fresh execution and an earlier failure is not cached.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[str, _Call] = {}

    def run(self, key: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if call is None:
                call = _Call()
                self._calls[key] = call
            else:
                call.waiters += 1

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            call.result = fn(*args, **kwargs)
        except BaseException as e:  # noqa: BLE001
            call.error = e
            raise
        finally:
            with self._lock:
                self._calls.pop(key, None)
            call.done.set()
        return call.result

    def bind(self, key: str) -> Callable[..., Any]:
        """Fixed-key view: every call through it shares ``key``."""
        return functools.partial(self.run, key)

    def inflight(self) -> int:
        with self._lock:
            return len(self._calls)

    def waiters(self, key: str) -> int:
        with self._lock:
            call = self._calls.get(key)
            return call.waiters if call is not None else 0
