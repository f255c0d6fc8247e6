from identity_pool.core.pool.manager import IdentityPool

__all__ = ["IdentityPool"]
