"""
Deepkey Dependency Resolution

Validation reads previously published entries through a ContentStore
supplied by the host runtime. Data that has not replicated yet is not an
error: the validator reports the missing addresses and the host re-runs
validation once they arrive.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Tuple, Type, TypeVar

from .activity import AgentActivity
from .entries import Element, Entry, EntryType
from .errors import EntryError
from .result import ValidationResult
from .signing import verify_signature


T = TypeVar("T", bound=Entry)


class ContentStore(ABC):
    """Read-only view of the content-addressed store and chain metadata."""

    @abstractmethod
    def get(self, address: str) -> Optional[Element]:
        """
        Fetch the element at an address.

        The address may be a header address or an entry address; an agent
        key address returns the element that published that key.

        Returns:
            The element, or None if it is not (yet) available
        """
        pass

    @abstractmethod
    def chain_activity(
        self,
        author: str,
        entry_type: EntryType,
        seq_range: Tuple[int, int],
    ) -> AgentActivity:
        """
        Query an author's own chain for one entry type.

        Args:
            author: Agent whose chain is queried
            entry_type: Only elements of this type are matched
            seq_range: Half-open (start, end) range of header positions

        Returns:
            AgentActivity with the reported chain status and the matches
        """
        pass

    def verify_signature(self, public_key: str, signature: str, message: bytes) -> bool:
        """Verify an Ed25519 signature (base64 key and signature)."""
        return verify_signature(public_key, signature, message)


class Resolution(str, Enum):
    """Tagged outcome of resolving an address to a typed entry."""
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    WRONG_TYPE = "WRONG_TYPE"


@dataclass(frozen=True)
class ResolvedDependency(Generic[T]):
    """
    Result of resolve_dependency.

    FOUND carries the typed value and its element, NOT_FOUND the address
    to wait for, WRONG_TYPE the deserialization error.
    """
    status: Resolution
    address: str
    value: Optional[T] = None
    element: Optional[Element] = None
    error: Optional[EntryError] = None

    def found(self) -> bool:
        return self.status == Resolution.FOUND

    def to_result(self) -> ValidationResult:
        """
        The validation result a caller returns when it cannot continue.

        Only meaningful when not found(): a missing dependency defers,
        a dependency of the wrong type rejects.
        """
        if self.status == Resolution.NOT_FOUND:
            return ValidationResult.unresolved([self.address])
        if self.status == Resolution.WRONG_TYPE:
            return ValidationResult.from_entry_error(self.error)
        raise ValueError("A found dependency has no failure result")


def resolve_dependency(
    store: ContentStore,
    address: str,
    expected_type: Type[T],
) -> ResolvedDependency[T]:
    """
    Fetch an address and read it as the expected entry type.

    Args:
        store: Content store to read from
        address: Header, entry or agent address
        expected_type: Entry class the element must deserialize to

    Returns:
        ResolvedDependency tagged FOUND, NOT_FOUND or WRONG_TYPE
    """
    element = store.get(address)
    if element is None:
        return ResolvedDependency(status=Resolution.NOT_FOUND, address=address)

    try:
        value = expected_type.from_element(element)
    except EntryError as e:
        return ResolvedDependency(status=Resolution.WRONG_TYPE, address=address, element=element, error=e)

    return ResolvedDependency(status=Resolution.FOUND, address=address, value=value, element=element)


def fetch_element(store: ContentStore, address: str) -> Tuple[Optional[Element], Optional[ValidationResult]]:
    """
    Fetch an untyped element, or the deferral to return if it is missing.

    Returns:
        Tuple of (element, None) or (None, unresolved result)
    """
    element = store.get(address)
    if element is None:
        return None, ValidationResult.unresolved([address])
    return element, None

