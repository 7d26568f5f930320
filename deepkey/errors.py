"""
Deepkey Failure Codes and Exception Hierarchy

Every terminal rejection carries a stable FailureCode so that peers that
disagree about an entry can be diagnosed from their reports alone.
"""

from enum import Enum
from typing import Any, Dict, Optional


class FailureCode(str, Enum):
    """Stable reason codes for rejected entries."""
    # Structural
    INVALID_ENTRY = "INVALID_ENTRY"
    WRONG_HEADER = "WRONG_HEADER"
    ENTRY_MISSING = "ENTRY_MISSING"
    MISSING_PREV_HEADER = "MISSING_PREV_HEADER"
    # Policy shape
    NOT_ENOUGH_SIGNERS = "NOT_ENOUGH_SIGNERS"
    NOT_ENOUGH_SIGNATURES = "NOT_ENOUGH_SIGNATURES"
    # Root / author
    AUTHOR_NOT_FDA = "AUTHOR_NOT_FDA"
    KEYSET_ROOT_MISMATCH = "KEYSET_ROOT_MISMATCH"
    # Leaf
    BAD_KEYSET_LEAF = "BAD_KEYSET_LEAF"
    STALE_KEYSET_LEAF = "STALE_KEYSET_LEAF"
    INVALID_CHAIN = "INVALID_CHAIN"
    # Signatures
    NO_CREATE_SIGNATURE = "NO_CREATE_SIGNATURE"
    MULTIPLE_CREATE_SIGNATURES = "MULTIPLE_CREATE_SIGNATURES"
    BAD_CREATE_SIGNATURE = "BAD_CREATE_SIGNATURE"
    WRONG_NUMBER_OF_SIGNATURES = "WRONG_NUMBER_OF_SIGNATURES"
    AUTHORIZED_POSITION_OUT_OF_BOUNDS = "AUTHORIZED_POSITION_OUT_OF_BOUNDS"
    DUPLICATE_AUTHORIZED_POSITION = "DUPLICATE_AUTHORIZED_POSITION"
    BAD_UPDATE_SIGNATURE = "BAD_UPDATE_SIGNATURE"
    # Lifecycle
    IDENTICAL_UPDATE = "IDENTICAL_UPDATE"
    DELETE_ATTEMPTED = "DELETE_ATTEMPTED"

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self]


FAILURE_MESSAGES: Dict[FailureCode, str] = {
    FailureCode.INVALID_ENTRY: "Element does not hold a valid entry of the expected type",
    FailureCode.WRONG_HEADER: "Element has the wrong header kind for this entry type",
    FailureCode.ENTRY_MISSING: "Element is missing its entry",
    FailureCode.MISSING_PREV_HEADER: "Element header has no previous header",
    FailureCode.NOT_ENOUGH_SIGNERS: "There are not enough signers to meet the required signatures",
    FailureCode.NOT_ENOUGH_SIGNATURES: "The change rule requires at least one signature; not enough signatures required",
    FailureCode.AUTHOR_NOT_FDA: "The change rule author is not the first identity (FDA) of the keyset root",
    FailureCode.KEYSET_ROOT_MISMATCH: "Keyset root mismatch: the update does not reference the same keyset root",
    FailureCode.BAD_KEYSET_LEAF: "Bad keyset leaf: it does not resolve to an acceptance under this keyset root",
    FailureCode.STALE_KEYSET_LEAF: "Stale keyset leaf: a newer acceptance supersedes it on the author's chain",
    FailureCode.INVALID_CHAIN: "The author's chain is reported as an invalid chain (forked or invalid)",
    FailureCode.NO_CREATE_SIGNATURE: "Create has no signature authorizing the new spec",
    FailureCode.MULTIPLE_CREATE_SIGNATURES: "Multiple signatures not allowed for create",
    FailureCode.BAD_CREATE_SIGNATURE: "Bad signature: the create authorization does not verify against the root key",
    FailureCode.WRONG_NUMBER_OF_SIGNATURES: "Wrong number of signatures for the previous spec",
    FailureCode.AUTHORIZED_POSITION_OUT_OF_BOUNDS: "Authorization position is out of bounds of the authorized signers",
    FailureCode.DUPLICATE_AUTHORIZED_POSITION: "Authorization position is used more than once",
    FailureCode.BAD_UPDATE_SIGNATURE: "Bad signature: an update authorization does not verify",
    FailureCode.IDENTICAL_UPDATE: "Identical update: the new spec is the same as the previous spec",
    FailureCode.DELETE_ATTEMPTED: "Delete attempted: change rules cannot be deleted",
}


class DeepkeyError(Exception):
    """Base exception for all Deepkey errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "DEEPKEY_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class EntryError(DeepkeyError):
    """
    Raised when an element cannot be read as a given entry type.

    Carries one of the structural failure codes so callers can turn it
    into a rejection without inspecting the message.
    """

    def __init__(
        self,
        failure_code: FailureCode,
        message: Optional[str] = None,
        entry_type: Optional[str] = None,
    ):
        super().__init__(
            message or failure_code.message,
            code=failure_code.value,
            details={"entry_type": entry_type},
        )
        self.failure_code = failure_code
        self.entry_type = entry_type


class HostContractViolation(DeepkeyError):
    """
    Raised when the host invokes a validator with an element it must never
    route there (an update callback on a non-update element).

    This is not a validation outcome and must not be reported as one.
    """

    def __init__(self, message: str, header_type: Optional[str] = None):
        super().__init__(
            message,
            code="HOST_CONTRACT_VIOLATION",
            details={"header_type": header_type},
        )
        self.header_type = header_type
