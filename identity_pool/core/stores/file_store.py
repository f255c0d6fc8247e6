from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from identity_pool.core.errors import StoreError
from identity_pool.core.io import atomic_write_json, read_json
from identity_pool.core.logger import get_logger
from identity_pool.core.stores.base import Snapshot, WaitPredicate, bounded_timeout, merge_snapshot, poll_until


@dataclass
class JsonFileStore:
    """
    Identity document kept in one JSON file.

    Writes are atomic (temp file + replace) with rolling backups next to the
    file. Missing file reads as an empty document; a corrupt file is an error,
    it is never overwritten by a push.
    """

    path: str
    backups_dir: Optional[str] = None
    max_backups: int = 10
    poll_interval: float = 1.0
    wait_timeout: Optional[float] = None
    logger: Any = None
    sleep: Callable[[float], None] = time.sleep
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.backups_dir is None:
            self.backups_dir = os.path.join(os.path.dirname(self.path) or ".", "backups")
        if self.logger is None:
            self.logger = get_logger()

    def pull(
        self,
        wait_until: Optional[WaitPredicate] = None,
        message: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Snapshot:
        if wait_until is None:
            return self._read()
        snap = self._read()
        if wait_until(snap):
            return snap
        if message:
            self.logger.info(message)
        return poll_until(
            self._read,
            wait_until,
            poll_interval=self.poll_interval,
            timeout=bounded_timeout(self.wait_timeout, timeout),
            message=message,
            sleep=self.sleep,
        )

    def push(self, partial: Snapshot) -> Snapshot:
        with self._lock:
            doc = self._read()
            merged = merge_snapshot(doc, partial)
            try:
                atomic_write_json(self.path, merged, backups_dir=self.backups_dir, keep=self.max_backups)
            except OSError as e:
                raise StoreError("Identity store file could not be written.", path=self.path, error=str(e)) from e
            return merged

    def write(self, doc: Dict[str, Any]) -> None:
        with self._lock:
            atomic_write_json(self.path, doc, backups_dir=self.backups_dir, keep=self.max_backups)

    def _read(self) -> Snapshot:
        ok, data, err = read_json(self.path)
        if ok:
            return data
        if err == "missing":
            return {}
        raise StoreError("Identity store file could not be read.", path=self.path, error=err)
