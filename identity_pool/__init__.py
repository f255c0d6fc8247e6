"""
Concurrent pool of reusable identities (credentials, accounts, session tokens)
with fair rotation, deprecation and optional persistence to a shared store.
"""

from identity_pool.core.config.models import PoolOptions
from identity_pool.core.errors import AcquireTimeoutError, PoolConfigError, PoolError, StoreError, StoreTimeoutError
from identity_pool.core.pool.manager import IdentityPool
from identity_pool.core.pool.models import AcquiredIdentity, IdentityRecord

__all__ = [
    "AcquireTimeoutError",
    "AcquiredIdentity",
    "IdentityPool",
    "IdentityRecord",
    "PoolConfigError",
    "PoolError",
    "PoolOptions",
    "StoreError",
    "StoreTimeoutError",
]
