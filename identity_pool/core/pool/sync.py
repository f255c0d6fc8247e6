from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from identity_pool.core.ops_log import NullOpsLogger
from identity_pool.core.pool.registry import IdentityRegistry
from identity_pool.core.stores.base import IdentityStore


class StoreSynchronizer:
    """
    One round-trip between the registry and the store.

    The store is the merge authority: whatever it echoes for this pool is
    folded back through `load` (local values still win per id). Tombstones
    are only purged once the store has accepted the push that carried them.
    """

    def __init__(
        self,
        *,
        name: str,
        registry: IdentityRegistry,
        store: Optional[IdentityStore],
        stored: bool,
        load: Callable[[Dict[str, Any]], None],
        logger,
        ops: Any = None,
    ):
        self.name = name
        self.registry = registry
        self.store = store
        self.stored = bool(stored)
        self._load = load
        self.logger = logger
        self.ops = ops or NullOpsLogger()
        self.last_error: Optional[str] = None

    def sync_force(self) -> bool:
        purge_ids: Optional[List[str]] = None
        if self.stored:
            try:
                if self.registry.is_empty():
                    snap = self.store.pull()
                    purge_ids = []
                else:
                    dump = self.registry.dump()
                    purge_ids = [k for k, v in dump.items() if v is None]
                    snap = self.store.push({self.name: {"identities": dump}})
                self._load((snap or {}).get(self.name) or {})
            except Exception as e:  # noqa: BLE001
                self.last_error = str(e)
                self.logger.warning(f"Identities {self.name}: Sync identities of name {self.name} failed: {e}")
                self.ops.log(pool=self.name, event="store.sync", outcome="failed", details={"error": str(e)})
                return False
        purged = self.registry.purge_tombstones(purge_ids)
        self.last_error = None
        if self.stored:
            self.ops.log(pool=self.name, event="store.sync", outcome="ok", details={"purged": len(purged), "size": len(self.registry)})
        return True
