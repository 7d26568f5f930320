"""
Deepkey Entries, Headers and Elements

The persisted shapes exchanged between peers. Field names and order are
part of the wire format: signatures are computed over the canonical
encoding of a ChangeRule's new_spec, and addresses over the canonical
encoding of headers and entries.

Every value here is immutable. Lineages are followed by address through a
content store, never through in-memory links.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, NamedTuple, Optional, Tuple

from .canonicalization import canonicalize
from .errors import EntryError, FailureCode
from .hashing import entry_hash, header_hash, is_address
from .signing import is_agent_key
from .util import b64d


MAX_SIGS_REQUIRED = 255


class HeaderType(str, Enum):
    """Kinds of header an element can carry."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntryType(str, Enum):
    """Entry types known to the validation core."""
    AGENT_KEY = "agent_pub_key"
    KEYSET_ROOT = "keyset_root"
    DEVICE_INVITE_ACCEPTANCE = "device_invite_acceptance"
    CHANGE_RULE = "change_rule"


@dataclass(frozen=True)
class Header:
    """
    Signed header of an element on its author's source chain.

    header_seq is the element's position on the author's chain and
    prev_header the address of the element before it (None only for the
    very first element). Updates and deletes name the element they act on
    in original_header_address.
    """
    header_type: HeaderType
    author: str
    header_seq: int
    prev_header: Optional[str] = None
    entry_type: Optional[EntryType] = None
    entry_hash: Optional[str] = None
    original_header_address: Optional[str] = None

    @property
    def address(self) -> str:
        return header_hash(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.header_type.value,
            "author": self.author,
            "header_seq": self.header_seq,
            "prev_header": self.prev_header,
        }
        if self.entry_type is not None:
            d["entry_type"] = self.entry_type.value
        if self.entry_hash is not None:
            d["entry_hash"] = self.entry_hash
        if self.original_header_address is not None:
            d["original_header_address"] = self.original_header_address
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Header':
        """Create Header from dictionary."""
        required = ["type", "author", "header_seq"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValueError(f"Missing required header fields: {missing}")

        header_seq = data["header_seq"]
        if not isinstance(header_seq, int) or isinstance(header_seq, bool) or header_seq < 0:
            raise ValueError(f"Invalid header_seq: {header_seq!r}")

        entry_type = data.get("entry_type")
        return cls(
            header_type=HeaderType(data["type"]),
            author=data["author"],
            header_seq=header_seq,
            prev_header=data.get("prev_header"),
            entry_type=EntryType(entry_type) if entry_type is not None else None,
            entry_hash=data.get("entry_hash"),
            original_header_address=data.get("original_header_address"),
        )


@dataclass(frozen=True)
class Element:
    """A header together with the entry it commits to (if any)."""
    header: Header
    entry: Optional[Dict[str, Any]] = None

    @property
    def address(self) -> str:
        return self.header.address

    @property
    def entry_address(self) -> Optional[str]:
        if self.entry is None:
            return None
        return address_of_entry(self.header.entry_type, self.entry)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"header": self.header.to_dict()}
        if self.entry is not None:
            d["entry"] = self.entry
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Element':
        """Create Element from dictionary."""
        if "header" not in data:
            raise ValueError("Missing required field: header")
        return cls(header=Header.from_dict(data["header"]), entry=data.get("entry"))


def address_of_entry(entry_type: Optional[EntryType], entry: Dict[str, Any]) -> str:
    """
    Content address of an entry.

    An agent key entry is addressed by the key itself, so resolving an
    agent identity and resolving its published key are the same lookup.
    """
    if entry_type == EntryType.AGENT_KEY and isinstance(entry.get("agent"), str):
        return entry["agent"]
    return entry_hash(entry)


def _require_address(data: Dict[str, Any], name: str, entry_type: str) -> str:
    value = data.get(name)
    if not is_address(value):
        raise EntryError(
            FailureCode.INVALID_ENTRY,
            f"{entry_type}.{name} must be a content address, got {value!r}",
            entry_type,
        )
    return value


def _require_agent(data: Dict[str, Any], name: str, entry_type: str) -> str:
    value = data.get(name)
    if not is_agent_key(value):
        raise EntryError(
            FailureCode.INVALID_ENTRY,
            f"{entry_type}.{name} must be a base64 Ed25519 public key",
            entry_type,
        )
    return value


class Entry:
    """
    Shared element-reading behaviour for entry types.

    Subclasses declare their ENTRY_TYPE, the header kinds they may appear
    under, and a from_dict that raises EntryError on malformed payloads.
    """
    ENTRY_TYPE: ClassVar[EntryType]
    ALLOWED_HEADERS: ClassVar[FrozenSet[HeaderType]] = frozenset({HeaderType.CREATE})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_element(cls, element: Element):
        """
        Read an element as this entry type.

        Raises:
            EntryError: WRONG_HEADER, ENTRY_MISSING or INVALID_ENTRY
        """
        name = cls.__name__
        if element.header.header_type not in cls.ALLOWED_HEADERS:
            raise EntryError(
                FailureCode.WRONG_HEADER,
                f"{name} cannot appear under a {element.header.header_type.value} header",
                name,
            )
        if element.entry is None:
            raise EntryError(FailureCode.ENTRY_MISSING, f"Element missing its {name}", name)
        if element.header.entry_type != cls.ENTRY_TYPE:
            observed = element.header.entry_type.value if element.header.entry_type else None
            raise EntryError(
                FailureCode.INVALID_ENTRY,
                f"Element missing its {name}: entry type is {observed}",
                name,
            )
        if not isinstance(element.entry, dict):
            raise EntryError(FailureCode.INVALID_ENTRY, f"Element missing its {name}", name)
        return cls.from_dict(element.entry)

    def address(self) -> str:
        return address_of_entry(self.ENTRY_TYPE, self.to_dict())


@dataclass(frozen=True)
class AgentKey(Entry):
    """An agent's published public key."""
    agent: str

    ENTRY_TYPE: ClassVar[EntryType] = EntryType.AGENT_KEY

    def to_dict(self) -> Dict[str, Any]:
        return {"agent": self.agent}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentKey':
        return cls(agent=_require_agent(data, "agent", "AgentKey"))


@dataclass(frozen=True)
class KeysetRoot(Entry):
    """
    Root of trust for one identity's key lineage.

    first_deepkey_agent must author the KeysetRoot; root_pub_key is the
    throwaway key that signs the very first ChangeRule and nothing else.
    """
    first_deepkey_agent: str
    root_pub_key: str

    ENTRY_TYPE: ClassVar[EntryType] = EntryType.KEYSET_ROOT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_deepkey_agent": self.first_deepkey_agent,
            "root_pub_key": self.root_pub_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KeysetRoot':
        return cls(
            first_deepkey_agent=_require_agent(data, "first_deepkey_agent", "KeysetRoot"),
            root_pub_key=_require_agent(data, "root_pub_key", "KeysetRoot"),
        )


@dataclass(frozen=True)
class DeviceInviteAcceptance(Entry):
    """
    Proof that the authoring agent accepted an invite under a keyset root.

    keyset_root_authority duplicates what the invite already names, so the
    leaf check does not need to fetch the invite.
    """
    keyset_root_authority: str
    invite: str

    ENTRY_TYPE: ClassVar[EntryType] = EntryType.DEVICE_INVITE_ACCEPTANCE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyset_root_authority": self.keyset_root_authority,
            "invite": self.invite,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeviceInviteAcceptance':
        name = "DeviceInviteAcceptance"
        return cls(
            keyset_root_authority=_require_address(data, "keyset_root_authority", name),
            invite=_require_address(data, "invite", name),
        )


class Authorization(NamedTuple):
    """A signature by the signer at `position` in the governing spec."""
    position: int
    signature: str


@dataclass(frozen=True)
class AuthorizationSpec:
    """Threshold policy: who may sign the next change, and how many must."""
    authorized_signers: Tuple[str, ...]
    sigs_required: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authorized_signers": list(self.authorized_signers),
            "sigs_required": self.sigs_required,
        }

    def signing_bytes(self) -> bytes:
        """The exact bytes every authorization signs."""
        return canonicalize(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthorizationSpec':
        name = "AuthorizationSpec"
        if not isinstance(data, dict):
            raise EntryError(FailureCode.INVALID_ENTRY, "new_spec must be an object", name)

        signers = data.get("authorized_signers")
        if not isinstance(signers, list):
            raise EntryError(FailureCode.INVALID_ENTRY, "authorized_signers must be a list", name)
        for signer in signers:
            if not is_agent_key(signer):
                raise EntryError(
                    FailureCode.INVALID_ENTRY,
                    f"authorized signer {signer!r} is not a base64 Ed25519 public key",
                    name,
                )
        if len({b64d(signer) for signer in signers}) != len(signers):
            raise EntryError(FailureCode.INVALID_ENTRY, "authorized_signers must be unique", name)

        sigs_required = data.get("sigs_required")
        if (not isinstance(sigs_required, int) or isinstance(sigs_required, bool)
                or not 0 <= sigs_required <= MAX_SIGS_REQUIRED):
            raise EntryError(
                FailureCode.INVALID_ENTRY,
                f"sigs_required must be an integer in [0, {MAX_SIGS_REQUIRED}]",
                name,
            )

        return cls(authorized_signers=tuple(signers), sigs_required=sigs_required)


@dataclass(frozen=True)
class SpecChange:
    """A proposed spec plus the signatures authorizing its adoption."""
    new_spec: AuthorizationSpec
    authorization_of_new_spec: Tuple[Authorization, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_spec": self.new_spec.to_dict(),
            "authorization_of_new_spec": [
                [a.position, a.signature] for a in self.authorization_of_new_spec
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SpecChange':
        name = "SpecChange"
        if not isinstance(data, dict):
            raise EntryError(FailureCode.INVALID_ENTRY, "spec_change must be an object", name)

        raw_authorizations = data.get("authorization_of_new_spec", [])
        if not isinstance(raw_authorizations, list):
            raise EntryError(
                FailureCode.INVALID_ENTRY, "authorization_of_new_spec must be a list", name
            )

        authorizations: List[Authorization] = []
        for item in raw_authorizations:
            if (not isinstance(item, (list, tuple)) or len(item) != 2
                    or not isinstance(item[0], int) or isinstance(item[0], bool)
                    or item[0] < 0 or not isinstance(item[1], str)):
                raise EntryError(
                    FailureCode.INVALID_ENTRY,
                    f"authorization must be a [position, signature] pair, got {item!r}",
                    name,
                )
            authorizations.append(Authorization(item[0], item[1]))

        return cls(
            new_spec=AuthorizationSpec.from_dict(data.get("new_spec")),
            authorization_of_new_spec=tuple(authorizations),
        )


@dataclass(frozen=True)
class ChangeRule(Entry):
    """
    Policy entry naming who may authorize the next change to a keyset.

    keyset_root is fixed for the whole lineage. keyset_leaf is either the
    keyset root itself or the DeviceInviteAcceptance under which the
    authoring device acts.
    """
    keyset_root: str
    keyset_leaf: str
    spec_change: SpecChange

    ENTRY_TYPE: ClassVar[EntryType] = EntryType.CHANGE_RULE
    ALLOWED_HEADERS: ClassVar[FrozenSet[HeaderType]] = frozenset(
        {HeaderType.CREATE, HeaderType.UPDATE}
    )

    @property
    def new_spec(self) -> AuthorizationSpec:
        return self.spec_change.new_spec

    @property
    def authorizations(self) -> Tuple[Authorization, ...]:
        return self.spec_change.authorization_of_new_spec

    def is_root_authored(self) -> bool:
        return self.keyset_leaf == self.keyset_root

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyset_root": self.keyset_root,
            "keyset_leaf": self.keyset_leaf,
            "spec_change": self.spec_change.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangeRule':
        name = "ChangeRule"
        return cls(
            keyset_root=_require_address(data, "keyset_root", name),
            keyset_leaf=_require_address(data, "keyset_leaf", name),
            spec_change=SpecChange.from_dict(data.get("spec_change")),
        )
