from __future__ import annotations

"""
IdentityPool: checkout, rotation and retirement of reusable identities.

Threading model:
- every registry read/mutation holds `registry.lock` and never does I/O;
- "nothing available" rounds collapse into one create-or-wait execution;
- store sync runs on a background worker, rate limited by the coalescer.
"""

import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from identity_pool.core.coalescer import Coalescer
from identity_pool.core.config.models import PoolOptions
from identity_pool.core.errors import AcquireTimeoutError, PoolConfigError, StoreTimeoutError
from identity_pool.core.events import redact
from identity_pool.core.logger import get_logger
from identity_pool.core.ops_log import NullOpsLogger
from identity_pool.core.pool.models import AcquiredIdentity, IdentityRecord
from identity_pool.core.pool.policy import any_available, is_available, select
from identity_pool.core.pool.registry import IdentityRegistry
from identity_pool.core.pool.sync import StoreSynchronizer
from identity_pool.core.single_flight import SingleFlight
from identity_pool.core.stores.base import IdentityStore

IdentityRef = Union[str, AcquiredIdentity, Mapping[str, Any], Any]
FatalReporter = Callable[..., Any]


class IdentityPool:
    def __init__(
        self,
        name: str,
        options: Union[PoolOptions, Mapping[str, Any], None] = None,
        *,
        stored: bool = False,
        identities: Optional[Mapping[str, Any]] = None,
        store: Optional[IdentityStore] = None,
        logger=None,
        ops: Any = None,
        fatal: Optional[FatalReporter] = None,
        now: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        idle_backoff: float = 0.05,
    ):
        self.name = str(name)
        self.stored = bool(stored)
        if self.stored and store is None:
            raise PoolConfigError("A stored identity pool needs a store.", pool=self.name)
        self.store = store
        self.logger = logger or get_logger()
        self.ops = ops or NullOpsLogger()
        self._fatal = fatal
        self._now = now
        self._sleep = sleep
        self.idle_backoff = max(0.0, float(idle_backoff))

        self.registry = IdentityRegistry()
        self.options = PoolOptions()

        self._flights = SingleFlight()
        self._init_once = self._flights.bind("init")
        self._create_or_wait = self._flights.bind("create-or-wait")
        self._sync_once = self._flights.bind("sync")

        self._sync = StoreSynchronizer(
            name=self.name,
            registry=self.registry,
            store=store,
            stored=self.stored,
            load=self.load,
            logger=self.logger,
            ops=self.ops,
        )
        self._coalescer = Coalescer(
            self.sync_force,
            min_interval=self.options.min_interval_between_store_update,
            name=f"identities:{self.name}",
            logger=self.logger,
        )

        # stored pools get their options replaced on init; the factory carries over
        self.load({"options": options, "identities": {} if self.stored else dict(identities or {})})

    # ---- lifecycle ----
    def init(self) -> None:
        """Populate a stored pool from the store. Concurrent calls share one pull."""
        self._init_once(self._init)

    def _init(self) -> None:
        if not self.stored:
            return
        snap = self.store.pull() or {}
        entry = snap.get(self.name)
        # an empty entry is valid (defaults, no identities yet)
        if entry is None:
            msg = (
                f"invalid identities name: {self.name}, please make sure: "
                f"1. the store holds a document for the identities plugin, "
                f"2. there is a valid identities options entry under document field '{self.name}'"
            )
            self.ops.log(pool=self.name, event="pool.init", outcome="fatal", details={"reason": "missing_store_entry"})
            try:
                if self._fatal is not None:
                    self._fatal("identities_crash", msg, pool=self.name)
            except Exception as e:  # noqa: BLE001
                raise PoolConfigError(msg, pool=self.name) from e
            raise PoolConfigError(msg, pool=self.name)
        self.load(entry)
        self.ops.log(pool=self.name, event="pool.init", outcome="ok", details={"size": len(self.registry)})

    def load(self, entry: Mapping[str, Any]) -> None:
        """
        Apply a pool entry {"options": ..., "identities": ...}.
        Options are replaced wholesale (the factory carries over when absent);
        records are merged with local values winning and arrive unlocked.
        """
        entry = entry or {}
        raw_options = entry.get("options")
        if isinstance(raw_options, PoolOptions):
            new_options = raw_options
            if new_options.create_identity_fn is None and self.options.create_identity_fn is not None:
                new_options = new_options.model_copy(update={"create_identity_fn": self.options.create_identity_fn})
        else:
            new_options = PoolOptions.from_mapping(raw_options, previous=self.options)

        incoming: List[Dict[str, Any]] = []
        for identity_id, raw in (entry.get("identities") or {}).items():
            if raw is None:
                continue
            fields = raw.model_dump() if isinstance(raw, IdentityRecord) else dict(raw)
            fields.pop("locked_at", None)
            IdentityRecord.model_validate(fields)
            fields["id"] = identity_id
            incoming.append(fields)

        previous_interval = self.options.min_interval_between_store_update
        self.options = new_options
        if new_options.min_interval_between_store_update != previous_interval:
            self._coalescer.set_interval(new_options.min_interval_between_store_update)
        for fields in incoming:
            self.registry.add(fields, drop_lock=True)

    def close(self) -> None:
        self._coalescer.close()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for scheduled syncs to finish (including a trailing one)."""
        return self._coalescer.wait_idle(timeout)

    # ---- checkout ----
    def acquire(
        self,
        create_identity_fn: Optional[Callable[[], Any]] = None,
        *,
        wait_for_store: bool = False,
        lock: bool = False,
        timeout: Optional[float] = None,
    ) -> AcquiredIdentity:
        """
        Return an available identity, creating or waiting for one if needed.

        Blocks until an identity is available. Without a factory and without
        wait_for_store the only way out is another caller unlocking/adding or
        a cool-down elapsing; pass `timeout` to bound that wait.

        `timeout` also bounds a store wait started by this caller. A caller
        that joins a round another caller started waits for that round to
        end before its own deadline is checked; a factory call is never
        interrupted.
        """
        deadline = (self._now() + float(timeout)) if timeout is not None else None
        while True:
            picked = self._take(lock=lock)
            if picked is not None:
                self._info(f"{picked.id} is being used.")
                if lock:
                    self._info(f"{picked.id} is locked.")
                self._schedule_sync()
                return picked
            if deadline is not None and self._now() >= deadline:
                raise AcquireTimeoutError(pool=self.name, timeout=timeout)
            factory = create_identity_fn or self.options.create_identity_fn
            progressed = self._create_or_wait(self._create_or_wait_round, factory, wait_for_store, deadline)
            if not progressed:
                self._sleep(self.idle_backoff)

    def _take(self, *, lock: bool) -> Optional[AcquiredIdentity]:
        with self.registry.lock:
            now = self._now()
            picked = select(self.registry.iter_live(), now, self.options)
            if picked is None:
                return None
            identity_id, record = picked
            record.last_used_at = now
            if lock:
                record.locked_at = now
            return AcquiredIdentity.of(identity_id, record)

    def _create_or_wait_round(
        self,
        factory: Optional[Callable[[], Any]],
        wait_for_store: bool,
        deadline: Optional[float] = None,
    ) -> bool:
        if factory is not None:
            raw = factory()
            if raw:
                # a re-created identity replaces its own pending tombstone
                identity_id, inserted = self.registry.add(raw, revive=True)
                if inserted:
                    self._info(f"{identity_id} is created.")
                    self.ops.log(pool=self.name, event="identity.created", outcome="ok", details={"id": identity_id})
                    return True
                self.logger.debug(f"Identities {self.name}: created {identity_id} is already in the pool.")
        if wait_for_store and self.stored:
            remaining = None if deadline is None else max(0.0, deadline - self._now())
            try:
                snap = self.store.pull(
                    wait_until=self._store_has_available,
                    message=f"waiting for a valid identity in store field {self.name}",
                    timeout=remaining,
                )
            except StoreTimeoutError as e:
                # our own deadline ran out, not the store's wait limit
                if remaining is not None and e.context.get("timeout") == remaining:
                    return False
                raise
            self.load((snap or {}).get(self.name) or {})
            return any_available(self.registry.iter_live(), self._now(), self.options)
        return False

    def _store_has_available(self, snap: Mapping[str, Any]) -> bool:
        entry = (snap or {}).get(self.name) or {}
        now = self._now()
        for raw in (entry.get("identities") or {}).values():
            if raw is None:
                continue
            try:
                record = IdentityRecord.model_validate(raw)
            except ValidationError:
                continue
            if is_available(record, now, self.options):
                return True
        return False

    # ---- mutators (unknown or removed ids are no-ops) ----
    def lock(self, one: IdentityRef) -> None:
        identity_id = self._id(one)
        with self.registry.lock:
            record = self.registry.get(identity_id)
            if record is None:
                return self._absent(identity_id, "lock")
            record.locked_at = self._now()
        self._info(f"{identity_id} is locked.")
        self._schedule_sync()

    def unlock(self, one: IdentityRef) -> None:
        identity_id = self._id(one)
        with self.registry.lock:
            record = self.registry.get(identity_id)
            if record is None:
                return self._absent(identity_id, "unlock")
            if record.locked_at is None:
                return
            record.locked_at = None
        self._info(f"{identity_id} is unlocked.")
        # unlocking restarts the cool-down
        self.touch(identity_id)

    def touch(self, one: IdentityRef) -> None:
        identity_id = self._id(one)
        with self.registry.lock:
            record = self.registry.get(identity_id)
            if record is None:
                return self._absent(identity_id, "touch")
            record.last_used_at = self._now()
        self._schedule_sync()

    def update(self, one: IdentityRef, data: Any) -> None:
        identity_id = self._id(one)
        with self.registry.lock:
            record = self.registry.get(identity_id)
            if record is None:
                return self._absent(identity_id, "update")
            record.data = data
        self._schedule_sync()

    def renew(self, one: IdentityRef) -> None:
        identity_id = self._id(one)
        with self.registry.lock:
            record = self.registry.get(identity_id)
            if record is None:
                return self._absent(identity_id, "renew")
            if record.deprecation_count <= 0:
                return
            record.deprecation_count = 0
        self._info(f"{identity_id} is renewed.")
        self._schedule_sync()

    def deprecate(self, one: IdentityRef) -> None:
        identity_id = self._id(one)
        limit = self.options.max_deprecations_before_removal
        with self.registry.lock:
            record = self.registry.get(identity_id)
            if record is None:
                return self._absent(identity_id, "deprecate")
            record.deprecation_count += 1
            count = record.deprecation_count
        self._info(f"{identity_id} is deprecated ({count}/{limit}).")
        self.ops.log(pool=self.name, event="identity.deprecated", outcome="ok", details={"id": identity_id, "count": count, "limit": limit})
        if count >= limit:
            self.remove(identity_id)
        self.unlock(identity_id)
        self._schedule_sync()

    def remove(self, one: IdentityRef) -> None:
        identity_id = self._id(one)
        record = self.registry.tombstone(identity_id)
        if record is None:
            return self._absent(identity_id, "remove")
        self._info(f"{identity_id} is removed: {redact(record.to_store())}")
        self.ops.log(pool=self.name, event="identity.removed", outcome="ok", details={"id": identity_id})
        self._schedule_sync()

    # ---- views ----
    def get(self, one: IdentityRef) -> Optional[AcquiredIdentity]:
        identity_id = self._id(one)
        with self.registry.lock:
            record = self.registry.get(identity_id)
            return AcquiredIdentity.of(identity_id, record) if record is not None else None

    def snapshot(self) -> Dict[str, AcquiredIdentity]:
        with self.registry.lock:
            return {k: AcquiredIdentity.of(k, v) for k, v in self.registry.iter_live()}

    def live_ids(self) -> List[str]:
        return self.registry.live_ids()

    def status(self) -> Dict[str, Any]:
        now = self._now()
        with self.registry.lock:
            live = list(self.registry.iter_live())
            available = sum(1 for _, r in live if is_available(r, now, self.options))
            locked = sum(1 for _, r in live if r.locked_at is not None)
            tombstones = len(self.registry.tombstones())
        return {
            "name": self.name,
            "stored": self.stored,
            "size": len(live),
            "available": available,
            "locked": locked,
            "tombstones": tombstones,
            "options": self.options.public_dict(),
            "sync": self._coalescer.stats(),
            "last_sync_error": self._sync.last_error,
        }

    # ---- persistence ----
    def sync_force(self) -> bool:
        """Unconditional store round-trip; overlapping calls share one execution."""
        return bool(self._sync_once(self._sync.sync_force))

    def _schedule_sync(self) -> None:
        self._coalescer.schedule()

    # ---- internals ----
    @staticmethod
    def _id(one: IdentityRef) -> str:
        if isinstance(one, str):
            return one
        if isinstance(one, Mapping):
            return str(one.get("id"))
        return str(getattr(one, "id", one))

    def _absent(self, identity_id: str, op: str) -> None:
        self.logger.debug(f"Identities {self.name}: {op} ignored, {identity_id} is not in the pool.")

    def _info(self, msg: str) -> None:
        self.logger.info(f"Identities {self.name}: {msg}")
