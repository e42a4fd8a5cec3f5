"""Outcome of a driver write that may be refused by a guard."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Outcome(Enum):
    OK = "ok"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult:
    """
    Three-way result of a write.

    REJECTED means a safety guard refused the operation before any mutating
    command ran; the caller can correct the situation and retry. FAILED
    wraps an infrastructure error. Only OK is truthy.
    """
    outcome: Outcome
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = True) -> "OperationResult":
        return cls(Outcome.OK, value=value)

    @classmethod
    def rejected(cls, reason: str) -> "OperationResult":
        return cls(Outcome.REJECTED, value=False, reason=reason)

    @classmethod
    def failed(cls, error: Exception) -> "OperationResult":
        return cls(Outcome.FAILED, value=False, reason=str(error))

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_rejected(self) -> bool:
        return self.outcome is Outcome.REJECTED

    @property
    def is_failed(self) -> bool:
        return self.outcome is Outcome.FAILED

    def __bool__(self) -> bool:
        return self.is_ok

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.is_ok, "outcome": self.outcome.value}
        if self.reason:
            data["error"] = self.reason
        if self.is_ok and self.value is not True:
            data["result"] = self.value
        return data
