from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class PoolOptions(BaseModel):
    """
    Immutable pool tuning. Replaced wholesale on load, never patched in place.
    Durations are seconds.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    create_identity_fn: Optional[Callable[[], Any]] = Field(default=None, exclude=True)
    max_deprecations_before_removal: int = Field(default=1, ge=1)
    min_interval_between_use: float = Field(default=0.0, ge=0.0)
    min_interval_between_store_update: float = Field(default=10.0, ge=0.0)
    recently_used_first: bool = True
    lock_expire: float = Field(default=600.0, ge=0.0)

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]], previous: Optional["PoolOptions"] = None) -> "PoolOptions":
        """
        Build options from a plain mapping (config file or store entry).
        The factory is not serializable, so it carries over from `previous`
        unless `raw` supplies one.
        """
        data = dict(raw or {})
        if data.get("create_identity_fn") is None and previous is not None:
            data["create_identity_fn"] = previous.create_identity_fn
        return cls.model_validate(data)

    def public_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class PoolEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stored: bool = False
    options: Dict[str, Any] = Field(default_factory=dict)
    identities: Dict[str, Optional[Dict[str, Any]]] = Field(default_factory=dict)


class PoolsConfigFile(BaseModel):
    """
    config/pools.json schema.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=1, ge=1, le=10)
    pools: Dict[str, PoolEntry] = Field(default_factory=dict)
