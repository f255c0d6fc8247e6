from __future__ import annotations

import copy
import time
from typing import Any, Callable, Dict, Optional, Protocol

from identity_pool.core.errors import StoreTimeoutError

Snapshot = Dict[str, Any]
WaitPredicate = Callable[[Snapshot], bool]


class IdentityStore(Protocol):
    """
    Shared document holding pool entries:
    {pool_name: {"options": {...}, "identities": {id: record | None}}}
    """

    def pull(
        self,
        wait_until: Optional[WaitPredicate] = None,
        message: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Snapshot:
        ...

    def push(self, partial: Snapshot) -> Snapshot:
        ...


def merge_snapshot(doc: Snapshot, partial: Snapshot) -> Snapshot:
    """
    Fold a pushed partial document into `doc` and return the result.
    Per pool: options are replaced when present; identities are merged per
    id, a None value deletes the id.
    """
    out = copy.deepcopy(doc or {})
    for name, entry in (partial or {}).items():
        if not isinstance(entry, dict):
            continue
        cur = out.setdefault(name, {})
        if "options" in entry and entry["options"] is not None:
            cur["options"] = copy.deepcopy(entry["options"])
        idents = cur.setdefault("identities", {})
        for identity_id, record in (entry.get("identities") or {}).items():
            if record is None:
                idents.pop(identity_id, None)
            else:
                idents[identity_id] = copy.deepcopy(record)
    return out


def bounded_timeout(configured: Optional[float], requested: Optional[float]) -> Optional[float]:
    """The tighter of the store's own wait limit and the caller's; None means unbounded."""
    if requested is None:
        return None if configured is None else float(configured)
    if configured is None:
        return max(0.0, float(requested))
    return max(0.0, min(float(configured), float(requested)))


def poll_until(
    fetch: Callable[[], Snapshot],
    predicate: WaitPredicate,
    *,
    poll_interval: float,
    timeout: Optional[float],
    message: Optional[str] = None,
    now: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Snapshot:
    """Fetch repeatedly until predicate(snapshot) holds."""
    deadline = (now() + float(timeout)) if timeout is not None else None
    while True:
        snap = fetch()
        if predicate(snap):
            return snap
        if deadline is not None and now() >= deadline:
            raise StoreTimeoutError(message or "Timed out waiting for the identity store.", timeout=timeout)
        sleep(poll_interval)
