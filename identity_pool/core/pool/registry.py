from __future__ import annotations

import threading
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from identity_pool.core.pool.models import AcquiredIdentity, IdentityRecord, new_identity_id

RecordLike = Union[Mapping[str, Any], IdentityRecord, AcquiredIdentity]


def _as_mapping(raw: RecordLike) -> Dict[str, Any]:
    if isinstance(raw, (IdentityRecord, AcquiredIdentity)):
        return raw.model_dump()
    return dict(raw)


class IdentityRegistry:
    """
    id -> record, or None for a tombstone (removed, waiting for the store to
    confirm the deletion).

    All reads and writes go through `lock`; it is re-entrant so callers can
    hold it across a select-then-mutate sequence. Nothing here does I/O.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._slots: Dict[str, Optional[IdentityRecord]] = {}

    def __len__(self) -> int:
        with self.lock:
            return len(self._slots)

    def __contains__(self, identity_id: object) -> bool:
        with self.lock:
            return identity_id in self._slots

    def is_empty(self) -> bool:
        with self.lock:
            return not self._slots

    def add(self, raw: RecordLike, *, drop_lock: bool = False, revive: bool = False) -> Tuple[str, bool]:
        """
        Insert a record; returns (id, inserted).

        If the id is already known, the local copy wins: incoming values only
        fill a missing payload. A local tombstone also wins until it is purged,
        unless `revive` is set (a freshly created record replaces it).
        """
        fields = _as_mapping(raw)
        identity_id = str(fields.pop("id", None) or new_identity_id())
        if drop_lock:
            fields.pop("locked_at", None)
        incoming = IdentityRecord.model_validate(fields)
        with self.lock:
            if identity_id in self._slots:
                local = self._slots[identity_id]
                if local is None and revive:
                    self._slots[identity_id] = incoming
                    return identity_id, True
                if local is not None and local.data is None and incoming.data is not None:
                    local.data = incoming.data
                return identity_id, False
            self._slots[identity_id] = incoming
        return identity_id, True

    def get(self, identity_id: str) -> Optional[IdentityRecord]:
        """Live record or None (unknown or tombstoned). Caller holds `lock` to mutate."""
        with self.lock:
            return self._slots.get(identity_id)

    def iter_live(self) -> Iterator[Tuple[str, IdentityRecord]]:
        with self.lock:
            items = [(k, v) for k, v in self._slots.items() if v is not None]
        return iter(items)

    def live_ids(self) -> List[str]:
        return [k for k, _ in self.iter_live()]

    def tombstone(self, identity_id: str) -> Optional[IdentityRecord]:
        with self.lock:
            record = self._slots.get(identity_id)
            if record is None:
                return None
            self._slots[identity_id] = None
            return record

    def tombstones(self) -> List[str]:
        with self.lock:
            return [k for k, v in self._slots.items() if v is None]

    def dump(self) -> Dict[str, Optional[Dict[str, Any]]]:
        with self.lock:
            return {k: (v.to_store() if v is not None else None) for k, v in self._slots.items()}

    def purge_tombstones(self, ids: Optional[List[str]] = None) -> List[str]:
        """
        Drop tombstones. With `ids`, only those that are still tombstones;
        a slot re-added since the dump was taken stays.
        """
        with self.lock:
            candidates = ids if ids is not None else list(self._slots.keys())
            purged = [k for k in candidates if k in self._slots and self._slots[k] is None]
            for k in purged:
                del self._slots[k]
            return purged
