"""
Shared builders for the Deepkey test suites.

KeysetScenario wires a keyset the way the network would see it: the first
device publishes its agent key and a KeysetRoot, a throwaway root key signs
the first ChangeRule, and further devices join by publishing a
DeviceInviteAcceptance on their own chains. All keys are real Ed25519 keys.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from deepkey import (
    AgentActivity,
    Authorization,
    AuthorizationSpec,
    ChangeRule,
    ContentStore,
    DeviceInviteAcceptance,
    Element,
    InMemoryStore,
    KeyPair,
    KeysetRoot,
    SourceChain,
    SpecChange,
    sha256_hash,
)


def make_spec(agents: Sequence[str], sigs_required: int) -> AuthorizationSpec:
    return AuthorizationSpec(authorized_signers=tuple(agents), sigs_required=sigs_required)


def sign_spec(spec: AuthorizationSpec, signers: Iterable[Tuple[int, KeyPair]]) -> Tuple[Authorization, ...]:
    """Authorizations by (position, keypair) over the spec's canonical bytes."""
    message = spec.signing_bytes()
    return tuple(Authorization(position, keypair.sign(message)) for position, keypair in signers)


def make_change_rule(
    keyset_root: str,
    keyset_leaf: str,
    spec: AuthorizationSpec,
    authorizations: Sequence[Authorization] = (),
) -> ChangeRule:
    return ChangeRule(
        keyset_root=keyset_root,
        keyset_leaf=keyset_leaf,
        spec_change=SpecChange(new_spec=spec, authorization_of_new_spec=tuple(authorizations)),
    )


class KeysetScenario:
    """A keyset root published by its first device, plus helpers to grow it."""

    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store = store if store is not None else InMemoryStore()
        self.root_key = KeyPair.generate()
        self.fda = SourceChain(store=self.store)
        self.keyset_root_element = self.fda.create(KeysetRoot(
            first_deepkey_agent=self.fda.agent,
            root_pub_key=self.root_key.agent,
        ))
        self.keyset_root = self.keyset_root_element.address
        self._invites = 0

    def join_device(self, device: Optional[SourceChain] = None, keyset_root: Optional[str] = None):
        """Publish a DeviceInviteAcceptance; returns (device chain, acceptance element)."""
        device = device or SourceChain(store=self.store)
        self._invites += 1
        acceptance = device.create(DeviceInviteAcceptance(
            keyset_root_authority=keyset_root or self.keyset_root,
            invite=sha256_hash(f"invite-{self._invites}"),
        ))
        return device, acceptance

    def create_rule(
        self,
        spec: AuthorizationSpec,
        authorizations: Optional[Sequence[Authorization]] = None,
        author: Optional[SourceChain] = None,
        keyset_leaf: Optional[str] = None,
        keyset_root: Optional[str] = None,
        publish: bool = True,
    ) -> Element:
        """First ChangeRule, signed by the root key unless told otherwise."""
        if authorizations is None:
            authorizations = sign_spec(spec, [(0, self.root_key)])
        author = author or self.fda
        keyset_root = keyset_root or self.keyset_root
        rule = make_change_rule(keyset_root, keyset_leaf or keyset_root, spec, authorizations)
        return author.create(rule, publish=publish)

    def update_rule(
        self,
        previous: Element,
        spec: AuthorizationSpec,
        signers: Iterable[Tuple[int, KeyPair]] = (),
        author: Optional[SourceChain] = None,
        keyset_leaf: Optional[str] = None,
        keyset_root: Optional[str] = None,
        authorizations: Optional[Sequence[Authorization]] = None,
        publish: bool = False,
    ) -> Element:
        """A ChangeRule updating `previous`, signed by (position, keypair) pairs."""
        if authorizations is None:
            authorizations = sign_spec(spec, signers)
        author = author or self.fda
        keyset_root = keyset_root or self.keyset_root
        rule = make_change_rule(keyset_root, keyset_leaf or keyset_root, spec, authorizations)
        return author.update(previous.address, rule, publish=publish)


class CountingStore(ContentStore):
    """Delegating store that records every read."""

    def __init__(self, inner: ContentStore):
        self.inner = inner
        self.gets: List[str] = []
        self.activity_queries: List[Tuple] = []

    def get(self, address):
        self.gets.append(address)
        return self.inner.get(address)

    def chain_activity(self, author, entry_type, seq_range):
        self.activity_queries.append((author, entry_type, seq_range))
        return self.inner.chain_activity(author, entry_type, seq_range)


class FixedActivityStore(ContentStore):
    """Delegating store that reports preset chain activity per author."""

    def __init__(self, inner: ContentStore, activity: Dict[str, AgentActivity]):
        self.inner = inner
        self.activity = activity

    def get(self, address):
        return self.inner.get(address)

    def chain_activity(self, author, entry_type, seq_range):
        if author in self.activity:
            return self.activity[author]
        return self.inner.chain_activity(author, entry_type, seq_range)


B64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def alias_of(agent: str) -> str:
    """Another spelling of the same 32 key bytes, differing in the unused trailing bits."""
    last = B64_ALPHABET.index(agent[42])
    return agent[:42] + B64_ALPHABET[last ^ 1] + agent[43:]
