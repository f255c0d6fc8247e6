from identity_pool.core.config.loader import default_pools_config_dict, read_pools_config, validate_pools_config, write_pools_config
from identity_pool.core.config.models import PoolEntry, PoolOptions, PoolsConfigFile

__all__ = [
    "PoolEntry",
    "PoolOptions",
    "PoolsConfigFile",
    "default_pools_config_dict",
    "read_pools_config",
    "validate_pools_config",
    "write_pools_config",
]
