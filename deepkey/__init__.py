"""
Deepkey ChangeRule Validation Core

Version: 0.1.0
License: Apache 2.0

Deterministic rules every peer re-runs to decide whether a proposed change
to a keyset's signing policy (a ChangeRule) may enter the shared history.

Each validator returns exactly one of:
    VALID
    INVALID(failure_code, reason)
    UNRESOLVED_DEPENDENCIES(addresses)

The third outcome is a deferral, not an error: the host re-runs the
validator once the listed addresses have replicated.

Usage:
    from deepkey import (
        InMemoryStore,
        SourceChain,
        validate_create_change_rule,
        validate_update_change_rule,
    )

    store = InMemoryStore()
    # ... publish KeysetRoot, DeviceInviteAcceptance and ChangeRule elements

    result = validate_update_change_rule(element, store)

    if result.is_valid():
        # admit the element
        ...
    elif result.is_deferred():
        # retry once result.dependencies are available
        ...
    else:
        print(result.failure_code, result.reason)
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Canonicalization and hashing
from .canonicalization import canonicalize
from .hashing import sha256_hash, header_hash, entry_hash, is_address

# Signing
from .signing import (
    KeyPair,
    sign_data,
    verify_signature,
    is_agent_key,
)

# Entries
from .entries import (
    HeaderType,
    EntryType,
    Header,
    Element,
    Entry,
    AgentKey,
    KeysetRoot,
    DeviceInviteAcceptance,
    Authorization,
    AuthorizationSpec,
    SpecChange,
    ChangeRule,
)

# Errors and results
from .errors import FailureCode, DeepkeyError, EntryError, HostContractViolation
from .result import ValidationOutcome, ValidationResult

# Chain activity and resolution
from .activity import ChainStatus, ChainStatusKind, ChainQueryFilter, AgentActivity
from .resolver import ContentStore, Resolution, ResolvedDependency, resolve_dependency
from .store import InMemoryStore, SourceChain, load_store, save_store

# Validators
from .authorization import authorize, validate_create_authorization, validate_update_authorization
from .keyset_leaf import validate_keyset_leaf
from .change_rule import (
    Operation,
    validate_spec,
    validate_create_keyset_root,
    validate_update_keyset_root,
    validate_update_spec,
    validate_create_change_rule,
    validate_update_change_rule,
    validate_delete_change_rule,
    validate_change_rule,
)

# Lineage
from .lineage import LineageState, LineageStep, Lineage, lineage_state, walk_lineage


__all__ = [
    # Version
    "__version__",

    # Canonicalization
    "canonicalize",

    # Hashing
    "sha256_hash",
    "header_hash",
    "entry_hash",
    "is_address",

    # Signing
    "KeyPair",
    "sign_data",
    "verify_signature",
    "is_agent_key",

    # Entries
    "HeaderType",
    "EntryType",
    "Header",
    "Element",
    "Entry",
    "AgentKey",
    "KeysetRoot",
    "DeviceInviteAcceptance",
    "Authorization",
    "AuthorizationSpec",
    "SpecChange",
    "ChangeRule",

    # Errors and results
    "FailureCode",
    "DeepkeyError",
    "EntryError",
    "HostContractViolation",
    "ValidationOutcome",
    "ValidationResult",

    # Activity and resolution
    "ChainStatus",
    "ChainStatusKind",
    "ChainQueryFilter",
    "AgentActivity",
    "ContentStore",
    "Resolution",
    "ResolvedDependency",
    "resolve_dependency",
    "InMemoryStore",
    "SourceChain",
    "load_store",
    "save_store",

    # Validators
    "authorize",
    "validate_create_authorization",
    "validate_update_authorization",
    "validate_keyset_leaf",
    "Operation",
    "validate_spec",
    "validate_create_keyset_root",
    "validate_update_keyset_root",
    "validate_update_spec",
    "validate_create_change_rule",
    "validate_update_change_rule",
    "validate_delete_change_rule",
    "validate_change_rule",

    # Lineage
    "LineageState",
    "LineageStep",
    "Lineage",
    "lineage_state",
    "walk_lineage",
]
