from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional

from identity_pool.core.logger import get_logger


class Coalescer:
    """
    Rate-limited, coalescing trigger for an idempotent side effect (store sync).

    - schedule() never blocks: the call is recorded as pending and a single
      background worker runs fn.
    - fn starts at most once per min_interval (measured between starts).
    - calls that land inside the window collapse into one trailing run.
    - fn errors are logged and swallowed.
    """

    def __init__(
        self,
        fn: Callable[[], Any],
        *,
        min_interval: float,
        name: str = "coalescer",
        logger=None,
        now: Callable[[], float] = time.monotonic,
    ):
        self._fn = fn
        self._min_interval = max(0.0, float(min_interval))
        self._name = name
        self.logger = logger or get_logger()
        self._now = now

        self._cond = threading.Condition()
        self._stop = threading.Event()
        self._pending = False
        self._worker_alive = False
        self._executing = False
        self._closed = False
        self._last_start: Optional[float] = None
        self._runs = 0
        self._failures = 0

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def set_interval(self, seconds: float) -> None:
        with self._cond:
            self._min_interval = max(0.0, float(seconds))

    def schedule(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._pending = True
            if self._worker_alive:
                return
            self._worker_alive = True
        t = threading.Thread(target=self._worker, name=f"{self._name}-sync", daemon=True)
        t.start()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is running or pending. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._worker_alive, timeout=timeout)

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._pending = False
            self._cond.notify_all()
        self._stop.set()

    def stats(self) -> Dict[str, Any]:
        with self._cond:
            return {
                "runs": self._runs,
                "failures": self._failures,
                "pending": self._pending,
                "executing": self._executing,
                "min_interval": self._min_interval,
            }

    def _worker(self) -> None:
        while True:
            with self._cond:
                if self._closed or not self._pending:
                    self._worker_alive = False
                    self._cond.notify_all()
                    return
                now = float(self._now())
                delay = 0.0
                if self._last_start is not None:
                    delay = self._last_start + self._min_interval - now
                if delay <= 0:
                    self._pending = False
                    self._last_start = now
                    self._executing = True
            if delay > 0:
                # trailing run: sleep out the rest of the window
                self._stop.wait(delay)
                continue
            try:
                self._fn()
            except Exception as e:  # noqa: BLE001
                with self._cond:
                    self._failures += 1
                self.logger.warning(f"{self._name}: scheduled run failed: {e}")
            finally:
                with self._cond:
                    self._executing = False
                    self._runs += 1
                    self._cond.notify_all()
