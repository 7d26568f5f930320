"""
In-memory content store for Deepkey.

Holds published elements by header address and by entry address, and
answers chain-activity queries from each author's elements. Snapshots can
be written to and read from JSON so the CLI can validate an element against
a recorded view of the network.

SourceChain is the authoring side: it appends elements to one agent's
chain with consecutive positions and linked previous headers.
"""

import json
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from .activity import AgentActivity, ChainQueryFilter, ChainStatus
from .entries import AgentKey, Element, Entry, EntryType, Header, HeaderType
from .resolver import ContentStore
from .signing import KeyPair


class InMemoryStore(ContentStore):
    """
    ContentStore backed by dictionaries.

    Chain status is derived from the published elements (EMPTY when the
    author has none, FORKED when two share a position, otherwise VALID up
    to the highest position) unless the host overrides it per author.
    """

    def __init__(self):
        self._elements: Dict[str, Element] = {}
        self._entries: Dict[str, str] = {}
        self._chains: Dict[str, List[Element]] = defaultdict(list)
        self._chain_status: Dict[str, ChainStatus] = {}

    def put(self, element: Element) -> str:
        """Publish an element; returns its header address."""
        address = element.address
        if address in self._elements:
            return address

        self._elements[address] = element
        self._chains[element.header.author].append(element)

        entry_address = element.entry_address
        if entry_address is not None:
            self._entries.setdefault(entry_address, address)
        return address

    def get(self, address: str) -> Optional[Element]:
        element = self._elements.get(address)
        if element is not None:
            return element
        header_address = self._entries.get(address)
        if header_address is not None:
            return self._elements[header_address]
        return None

    def set_chain_status(self, author: str, status: ChainStatus) -> None:
        """Override the status reported for an author's chain."""
        self._chain_status[author] = status

    def clear_chain_status(self, author: Optional[str] = None) -> None:
        if author:
            self._chain_status.pop(author, None)
        else:
            self._chain_status.clear()

    def derived_status(self, author: str) -> ChainStatus:
        """Chain status as implied by the published elements."""
        chain = self._chains.get(author)
        if not chain:
            return ChainStatus.empty()
        positions = [e.header.header_seq for e in chain]
        if len(set(positions)) != len(positions):
            return ChainStatus.forked()
        return ChainStatus.valid(max(positions))

    def chain_activity(
        self,
        author: str,
        entry_type: EntryType,
        seq_range: Tuple[int, int],
    ) -> AgentActivity:
        status = self._chain_status.get(author) or self.derived_status(author)
        query = ChainQueryFilter(entry_type, seq_range[0], seq_range[1])
        matches = [
            (e.header.header_seq, e.address)
            for e in self._chains.get(author, [])
            if e.header.entry_type == query.entry_type and query.contains(e.header.header_seq)
        ]
        return AgentActivity.of(status, matches)

    def elements_by(self, author: str) -> List[Element]:
        """An author's published elements in chain order."""
        return sorted(self._chains.get(author, []), key=lambda e: e.header.header_seq)

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, address: str) -> bool:
        return self.get(address) is not None

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the store for serialization."""
        return {
            "elements": [e.to_dict() for e in self._elements.values()],
            "chain_status": {a: s.to_dict() for a, s in self._chain_status.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InMemoryStore':
        """Rebuild a store from a snapshot."""
        store = cls()
        for raw in data.get("elements", []):
            store.put(Element.from_dict(raw))
        for author, raw_status in data.get("chain_status", {}).items():
            store.set_chain_status(author, ChainStatus.from_dict(raw_status))
        return store


def load_store(path: str) -> InMemoryStore:
    """Load a store snapshot from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return InMemoryStore.from_dict(json.load(f))


def save_store(store: InMemoryStore, path: str) -> None:
    """Write a store snapshot to a JSON file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(store.to_dict(), f, indent=2, sort_keys=True)


class SourceChain:
    """
    One agent's append-only chain.

    The first element (position 0) publishes the agent's key, so every
    later element has a previous header.
    """

    def __init__(self, keypair: Optional[KeyPair] = None, store: Optional[InMemoryStore] = None):
        self.keypair = keypair or KeyPair.generate()
        self.agent = self.keypair.agent
        self.store = store
        self.elements: List[Element] = []
        self.genesis = self.create(AgentKey(agent=self.agent))

    @property
    def head(self) -> Optional[Element]:
        return self.elements[-1] if self.elements else None

    @property
    def next_seq(self) -> int:
        return len(self.elements)

    def commit(
        self,
        header_type: HeaderType,
        entry: Optional[Entry] = None,
        original_header_address: Optional[str] = None,
        publish: bool = True,
    ) -> Element:
        """
        Append an element to the chain.

        Args:
            header_type: create, update or delete
            entry: Entry to commit (None for deletes)
            original_header_address: Element acted on by updates/deletes
            publish: Also put the element into the attached store
        """
        head = self.head
        entry_dict = entry.to_dict() if entry is not None else None
        header = Header(
            header_type=header_type,
            author=self.agent,
            header_seq=self.next_seq,
            prev_header=head.address if head is not None else None,
            entry_type=entry.ENTRY_TYPE if entry is not None else None,
            entry_hash=entry.address() if entry is not None else None,
            original_header_address=original_header_address,
        )
        element = Element(header=header, entry=entry_dict)
        self.elements.append(element)
        if publish and self.store is not None:
            self.store.put(element)
        return element

    def create(self, entry: Entry, publish: bool = True) -> Element:
        return self.commit(HeaderType.CREATE, entry, publish=publish)

    def update(self, original_header_address: str, entry: Entry, publish: bool = True) -> Element:
        return self.commit(HeaderType.UPDATE, entry, original_header_address, publish=publish)

    def delete(self, original_header_address: str, publish: bool = True) -> Element:
        return self.commit(HeaderType.DELETE, None, original_header_address, publish=publish)
