from __future__ import annotations

import copy
import threading
import time
from typing import Any, Callable, Dict, Optional

from identity_pool.core.errors import StoreTimeoutError
from identity_pool.core.logger import get_logger
from identity_pool.core.stores.base import Snapshot, WaitPredicate, bounded_timeout, merge_snapshot


class InMemoryStore:
    """
    Process-local document store. Waiters on pull(wait_until=...) wake on
    every push/put and re-check at least every poll_interval seconds, since
    availability can also change just by time passing.
    """

    def __init__(
        self,
        initial: Optional[Snapshot] = None,
        *,
        poll_interval: float = 0.5,
        wait_timeout: Optional[float] = None,
        logger=None,
        now: Callable[[], float] = time.monotonic,
    ):
        self._doc: Snapshot = copy.deepcopy(initial or {})
        self._cond = threading.Condition()
        self.poll_interval = float(poll_interval)
        self.wait_timeout = wait_timeout
        self.logger = logger or get_logger()
        self._now = now
        self.pulls = 0
        self.pushes = 0

    def pull(
        self,
        wait_until: Optional[WaitPredicate] = None,
        message: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Snapshot:
        with self._cond:
            self.pulls += 1
            if wait_until is None or wait_until(copy.deepcopy(self._doc)):
                return copy.deepcopy(self._doc)
            if message:
                self.logger.info(message)
            limit = bounded_timeout(self.wait_timeout, timeout)
            deadline = (self._now() + limit) if limit is not None else None
            while not wait_until(copy.deepcopy(self._doc)):
                remaining = self.poll_interval
                if deadline is not None:
                    left = deadline - self._now()
                    if left <= 0:
                        raise StoreTimeoutError(message or "Timed out waiting for the identity store.", timeout=limit)
                    remaining = min(remaining, left)
                self._cond.wait(timeout=remaining)
            return copy.deepcopy(self._doc)

    def push(self, partial: Snapshot) -> Snapshot:
        with self._cond:
            self.pushes += 1
            self._doc = merge_snapshot(self._doc, partial)
            self._cond.notify_all()
            return copy.deepcopy(self._doc)

    def put(self, name: str, entry: Dict[str, Any]) -> None:
        """Replace one pool entry wholesale (seeding, or another process writing)."""
        with self._cond:
            self._doc[name] = copy.deepcopy(entry)
            self._cond.notify_all()

    def document(self) -> Snapshot:
        with self._cond:
            return copy.deepcopy(self._doc)
