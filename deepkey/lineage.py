"""
Deepkey ChangeRule Lineage

A lineage is the linear chain of ChangeRules under one keyset root: one
create followed by any number of updates, each naming its predecessor by
address. Each rule is in one of two states:

ROOT: authored directly under the keyset root (keyset_leaf == keyset_root)
DELEGATED: authored by a device acting under a DeviceInviteAcceptance

The only transition is UPDATE, from either state to either state, and it
is guarded by the full update validation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set, Tuple

from .change_rule import validate_update_change_rule
from .entries import ChangeRule, Element, HeaderType
from .resolver import ContentStore, resolve_dependency
from .result import ValidationResult


class LineageState(str, Enum):
    """Lineage states."""
    ROOT = "ROOT"
    DELEGATED = "DELEGATED"


def lineage_state(change_rule: ChangeRule) -> LineageState:
    """State of a single ChangeRule."""
    if change_rule.is_root_authored():
        return LineageState.ROOT
    return LineageState.DELEGATED


@dataclass(frozen=True)
class LineageStep:
    """One ChangeRule in a lineage."""
    address: str
    author: str
    header_seq: int
    change_rule: ChangeRule

    @property
    def state(self) -> LineageState:
        return lineage_state(self.change_rule)

    def to_dict(self):
        return {
            "address": self.address,
            "author": self.author,
            "header_seq": self.header_seq,
            "state": self.state.value,
            "sigs_required": self.change_rule.new_spec.sigs_required,
            "authorized_signers": list(self.change_rule.new_spec.authorized_signers),
        }


@dataclass(frozen=True)
class Lineage:
    """An immutable view of a lineage, oldest rule first."""
    steps: Tuple[LineageStep, ...]

    @property
    def head(self) -> LineageStep:
        return self.steps[-1]

    @property
    def state(self) -> LineageState:
        return self.head.state

    @property
    def keyset_root(self) -> str:
        return self.steps[0].change_rule.keyset_root

    def __len__(self) -> int:
        return len(self.steps)

    def advance(self, element: Element, store: ContentStore) -> Tuple['Lineage', ValidationResult]:
        """
        Apply an UPDATE transition.

        Returns:
            (new lineage, VALID) when the update is accepted, otherwise
            (this lineage unchanged, the rejection or deferral)

        Raises:
            ValueError: if the element does not update this lineage's head
        """
        if element.header.original_header_address != self.head.address:
            raise ValueError("Element does not update the head of this lineage")

        result = validate_update_change_rule(element, store)
        if not result.is_valid():
            return self, result

        step = LineageStep(
            address=element.address,
            author=element.header.author,
            header_seq=element.header.header_seq,
            change_rule=ChangeRule.from_element(element),
        )
        return Lineage(steps=self.steps + (step,)), result


def walk_lineage(store: ContentStore, address: str) -> Tuple[Optional[Lineage], ValidationResult]:
    """
    Follow a ChangeRule back to the create that started its lineage.

    Only reads entries; it does not re-validate them.

    Returns:
        (lineage, VALID), or (None, deferral / rejection) when some rule
        on the way is missing or is not a ChangeRule
    """
    steps: List[LineageStep] = []
    seen: Set[str] = set()
    current: Optional[str] = address

    while current is not None:
        if current in seen:
            raise ValueError(f"Lineage loops back to {current}")
        seen.add(current)

        resolved = resolve_dependency(store, current, ChangeRule)
        if not resolved.found():
            return None, resolved.to_result()

        header = resolved.element.header
        steps.append(LineageStep(
            address=resolved.element.address,
            author=header.author,
            header_seq=header.header_seq,
            change_rule=resolved.value,
        ))
        current = header.original_header_address if header.header_type == HeaderType.UPDATE else None

    steps.reverse()
    return Lineage(steps=tuple(steps)), ValidationResult.valid()
