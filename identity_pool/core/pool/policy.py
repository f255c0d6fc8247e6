from __future__ import annotations

from typing import Iterable, Optional, Tuple

from identity_pool.core.config.models import PoolOptions
from identity_pool.core.pool.models import IdentityRecord


def is_available(record: IdentityRecord, now: float, options: PoolOptions) -> bool:
    unlocked_or_expired = record.locked_at is None or (now - record.locked_at) >= options.lock_expire
    cooled_down = (now - record.last_used_at) >= options.min_interval_between_use
    return unlocked_or_expired and cooled_down


def select(
    items: Iterable[Tuple[str, IdentityRecord]],
    now: float,
    options: PoolOptions,
) -> Optional[Tuple[str, IdentityRecord]]:
    """
    Pick one available record.

    recently_used_first keeps warm identities (sessions, connections) busy;
    otherwise the least recently used one is taken to spread load. Equal
    last_used_at values are ordered by id.
    """
    candidates = [(i, r) for i, r in items if is_available(r, now, options)]
    if not candidates:
        return None
    key = lambda item: (item[1].last_used_at, item[0])  # noqa: E731
    if options.recently_used_first:
        return max(candidates, key=key)
    return min(candidates, key=key)


def any_available(items: Iterable[Tuple[str, IdentityRecord]], now: float, options: PoolOptions) -> bool:
    return any(is_available(r, now, options) for _, r in items)
