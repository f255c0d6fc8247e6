from __future__ import annotations

import os
from typing import Any, Dict

from pydantic import ValidationError

from identity_pool.core.config.models import PoolEntry, PoolOptions, PoolsConfigFile
from identity_pool.core.errors import PoolConfigError
from identity_pool.core.io import atomic_write_json, read_json


def default_pools_config_dict() -> Dict[str, Any]:
    cfg = PoolsConfigFile(
        pools={
            "default": PoolEntry(stored=False, options=PoolOptions().public_dict(), identities={}),
        }
    )
    return cfg.model_dump()


def validate_pools_config(raw: Dict[str, Any]) -> PoolsConfigFile:
    try:
        cfg = PoolsConfigFile.model_validate(raw)
    except ValidationError as e:
        raise PoolConfigError("Invalid pools config.", errors=e.errors(include_url=False)) from e
    for name, entry in cfg.pools.items():
        try:
            PoolOptions.from_mapping(entry.options)
        except ValidationError as e:
            raise PoolConfigError(f"Invalid options for pool '{name}'.", pool=name, errors=e.errors(include_url=False)) from e
    return cfg


def read_pools_config(path: str) -> PoolsConfigFile:
    """
    Missing file -> defaults. Corrupt or invalid file -> PoolConfigError;
    a broken pools file is never silently replaced.
    """
    ok, data, err = read_json(path)
    if not ok:
        if err == "missing":
            return PoolsConfigFile.model_validate(default_pools_config_dict())
        raise PoolConfigError("Pools config could not be read.", path=path, error=err)
    return validate_pools_config(data)


def write_pools_config(path: str, cfg: PoolsConfigFile) -> None:
    backups_dir = os.path.join(os.path.dirname(path) or ".", "backups")
    atomic_write_json(path, cfg.model_dump(), backups_dir=backups_dir, keep=10)
