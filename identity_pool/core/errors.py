from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from identity_pool.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class PoolError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class PoolConfigError(PoolError):
    def __init__(self, user_message: str = "Identity pool configuration error.", **ctx: Any):
        super().__init__("pool_config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class StoreError(PoolError):
    def __init__(self, user_message: str = "Identity store is unavailable.", **ctx: Any):
        super().__init__("store_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class StoreTimeoutError(PoolError):
    def __init__(self, user_message: str = "Timed out waiting for the identity store.", **ctx: Any):
        super().__init__("store_timeout", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class AcquireTimeoutError(PoolError):
    def __init__(self, user_message: str = "No identity became available in time.", **ctx: Any):
        super().__init__("acquire_timeout", user_message, severity=Severity.WARN, recoverable=True, context=ctx)
