from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def new_identity_id() -> str:
    return str(uuid.uuid4())


class IdentityRecord(BaseModel):
    """
    One registry slot. `data` is opaque to the pool. Timestamps are epoch
    seconds; last_used_at == 0.0 means never used, locked_at None means unlocked.
    """

    model_config = ConfigDict(extra="ignore")

    data: Any = None
    deprecation_count: int = Field(default=0, ge=0)
    last_used_at: float = 0.0
    locked_at: Optional[float] = None

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump()


class AcquiredIdentity(BaseModel):
    """Detached copy handed to callers; mutating it never touches the registry."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    data: Any = None
    deprecation_count: int = 0
    last_used_at: float = 0.0
    locked_at: Optional[float] = None

    @classmethod
    def of(cls, identity_id: str, record: IdentityRecord) -> "AcquiredIdentity":
        return cls(
            id=identity_id,
            data=record.model_copy(deep=True).data,
            deprecation_count=record.deprecation_count,
            last_used_at=record.last_used_at,
            locked_at=record.locked_at,
        )
