"""
Deepkey Chain Activity

Model of the per-author history query: a slice of one agent's source chain
restricted to an entry type and a half-open range of positions, together
with the validation status the reporting neighbour has for that chain.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .entries import EntryType


class ChainStatusKind(str, Enum):
    """
    Reported validation status of an agent's chain.

    VALID: validated up to head_seq
    EMPTY: nothing known yet
    FORKED: two elements claim the same position
    INVALID: some element on the chain was rejected
    """
    VALID = "VALID"
    EMPTY = "EMPTY"
    FORKED = "FORKED"
    INVALID = "INVALID"


@dataclass(frozen=True)
class ChainStatus:
    """Chain status; head_seq is set only for VALID."""
    kind: ChainStatusKind
    head_seq: Optional[int] = None

    @classmethod
    def valid(cls, head_seq: int) -> 'ChainStatus':
        return cls(kind=ChainStatusKind.VALID, head_seq=head_seq)

    @classmethod
    def empty(cls) -> 'ChainStatus':
        return cls(kind=ChainStatusKind.EMPTY)

    @classmethod
    def forked(cls) -> 'ChainStatus':
        return cls(kind=ChainStatusKind.FORKED)

    @classmethod
    def invalid(cls) -> 'ChainStatus':
        return cls(kind=ChainStatusKind.INVALID)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind.value}
        if self.head_seq is not None:
            d["head_seq"] = self.head_seq
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChainStatus':
        kind = ChainStatusKind(data["kind"])
        if kind == ChainStatusKind.VALID:
            return cls.valid(int(data["head_seq"]))
        return cls(kind=kind)


@dataclass(frozen=True)
class ChainQueryFilter:
    """Restrict an activity query to one entry type in [start, end)."""
    entry_type: EntryType
    start_seq: int
    end_seq: int

    def contains(self, header_seq: int) -> bool:
        return self.start_seq <= header_seq < self.end_seq


@dataclass(frozen=True)
class AgentActivity:
    """
    Result of a chain-activity query.

    matches is ordered by position and holds (header_seq, header_address)
    for each element of the filtered type inside the range.
    """
    status: ChainStatus
    matches: Tuple[Tuple[int, str], ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, status: ChainStatus, matches: List[Tuple[int, str]]) -> 'AgentActivity':
        return cls(status=status, matches=tuple(sorted(matches)))
