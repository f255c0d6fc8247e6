from __future__ import annotations

"""
Host-facing lifecycle: key / create / destroy, plus a per-host pool cache.
"""

import threading
from typing import Any, Callable, Dict, Mapping, Optional, Union

from identity_pool.core.config.models import PoolOptions, PoolsConfigFile
from identity_pool.core.pool.manager import IdentityPool


def key(name: str) -> str:
    return str(name)


def create(
    name: str,
    options: Union[PoolOptions, Mapping[str, Any], None] = None,
    stored: bool = False,
    *,
    store: Any = None,
    identities: Optional[Mapping[str, Any]] = None,
    logger=None,
    ops: Any = None,
    fatal: Optional[Callable[..., Any]] = None,
    **pool_kwargs: Any,
) -> IdentityPool:
    pool = IdentityPool(
        name,
        options,
        stored=stored,
        identities=identities,
        store=store,
        logger=logger,
        ops=ops,
        fatal=fatal,
        **pool_kwargs,
    )
    pool.init()
    return pool


def destroy(pool: IdentityPool) -> bool:
    """
    Stop background syncs, let a running one finish, then one final
    unconditional flush. The final push carries every mutation made so far.
    """
    pool.close()
    pool.flush()
    ok = pool.sync_force()
    pool.ops.log(pool=pool.name, event="pool.destroy", outcome="ok" if ok else "sync_failed", details={})
    return ok


class PoolHost:
    """
    Owns the pools of one host application, cached by key(name).
    Collaborators are injected once and shared by every pool it creates.
    """

    def __init__(self, *, store: Any = None, logger=None, ops: Any = None, fatal: Optional[Callable[..., Any]] = None, **pool_kwargs: Any):
        self.store = store
        self.logger = logger
        self.ops = ops
        self.fatal = fatal
        self._pool_kwargs = dict(pool_kwargs)
        self._lock = threading.Lock()
        self._pools: Dict[str, IdentityPool] = {}

    def get_or_create(
        self,
        name: str,
        options: Union[PoolOptions, Mapping[str, Any], None] = None,
        stored: bool = False,
        identities: Optional[Mapping[str, Any]] = None,
    ) -> IdentityPool:
        k = key(name)
        with self._lock:
            pool = self._pools.get(k)
            if pool is not None:
                return pool
            pool = create(
                name,
                options,
                stored,
                store=self.store,
                identities=identities,
                logger=self.logger,
                ops=self.ops,
                fatal=self.fatal,
                **self._pool_kwargs,
            )
            self._pools[k] = pool
            return pool

    @classmethod
    def from_config(cls, cfg: PoolsConfigFile, **host_kwargs: Any) -> "PoolHost":
        host = cls(**host_kwargs)
        for name, entry in cfg.pools.items():
            host.get_or_create(name, entry.options, entry.stored, entry.identities)
        return host

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._pools.keys())

    def destroy(self, name: str) -> bool:
        with self._lock:
            pool = self._pools.pop(key(name), None)
        if pool is None:
            return False
        return destroy(pool)

    def destroy_all(self) -> Dict[str, bool]:
        with self._lock:
            pools = dict(self._pools)
            self._pools.clear()
        return {k: destroy(p) for k, p in pools.items()}
