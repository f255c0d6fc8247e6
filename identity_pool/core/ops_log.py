from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from identity_pool.core.events import redact


@dataclass(frozen=True)
class OpsLogger:
    """
    Structured ops log (JSONL) for pool lifecycle and store sync outcomes.
    """

    path: str = os.path.join("logs", "identity_pool.ops.jsonl")
    _lock: threading.Lock = field(default_factory=threading.Lock, compare=False, repr=False)

    def log(self, *, pool: str, event: str, outcome: str, details: Optional[Dict[str, Any]] = None) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "pool": pool,
            "event": event,
            "outcome": outcome,
            "details": redact(details or {}),
        }
        line = json.dumps(payload, ensure_ascii=False, default=str)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
                try:
                    f.flush()
                    os.fsync(f.fileno())
                except OSError:
                    pass


class NullOpsLogger:
    def log(self, *, pool: str, event: str, outcome: str, details: Optional[Dict[str, Any]] = None) -> None:
        return
