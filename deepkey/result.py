"""
Deepkey Validation Result

Every validator returns exactly one of three outcomes:

VALID: the entry is acceptable
INVALID: the entry is rejected; a stable failure code and reason are given
UNRESOLVED_DEPENDENCIES: the decision is deferred until the listed
    addresses can be fetched; the host re-runs validation later

Deferral is a first-class outcome and never an error.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import EntryError, FailureCode


class ValidationOutcome(str, Enum):
    """Validation outcomes."""
    VALID = "VALID"
    INVALID = "INVALID"
    UNRESOLVED_DEPENDENCIES = "UNRESOLVED_DEPENDENCIES"


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating one element."""
    outcome: ValidationOutcome
    failure_code: Optional[FailureCode] = None
    reason: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    details: Optional[Dict[str, Any]] = None

    def is_valid(self) -> bool:
        return self.outcome == ValidationOutcome.VALID

    def is_invalid(self) -> bool:
        return self.outcome == ValidationOutcome.INVALID

    def is_deferred(self) -> bool:
        return self.outcome == ValidationOutcome.UNRESOLVED_DEPENDENCIES

    @classmethod
    def valid(cls) -> 'ValidationResult':
        return cls(outcome=ValidationOutcome.VALID)

    @classmethod
    def invalid(
        cls,
        failure_code: FailureCode,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> 'ValidationResult':
        return cls(
            outcome=ValidationOutcome.INVALID,
            failure_code=failure_code,
            reason=reason or failure_code.message,
            details=details,
        )

    @classmethod
    def unresolved(cls, dependencies: List[str]) -> 'ValidationResult':
        return cls(
            outcome=ValidationOutcome.UNRESOLVED_DEPENDENCIES,
            dependencies=list(dependencies),
        )

    @classmethod
    def from_entry_error(cls, error: EntryError) -> 'ValidationResult':
        """Report a failed deserialization as a rejection."""
        return cls.invalid(error.failure_code, error.message, error.details or None)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"outcome": self.outcome.value}
        if self.failure_code:
            d["failure_code"] = self.failure_code.value
        if self.reason:
            d["reason"] = self.reason
        if self.dependencies:
            d["dependencies"] = list(self.dependencies)
        if self.details:
            d["details"] = self.details
        return d
