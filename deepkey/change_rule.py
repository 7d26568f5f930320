"""
Deepkey ChangeRule Validation

Entry points the host runtime calls for each ChangeRule element:

    validate_create_change_rule(element, store)
    validate_update_change_rule(element, store)
    validate_delete_change_rule(element, store)

Each runs its checks in a fixed order and stops at the first result that
is not VALID, so a rejection or deferral reports the earliest problem.
Validators keep no state and write nothing; re-running one on the same
element and store reaches the same result.
"""

from enum import Enum
from functools import wraps
from typing import Callable, List, Optional, Tuple

from .authorization import validate_create_authorization, validate_update_authorization
from .entries import AgentKey, ChangeRule, Element, HeaderType, KeysetRoot
from .errors import EntryError, FailureCode, HostContractViolation
from .keyset_leaf import validate_keyset_leaf
from .logging_config import audit_log
from .resolver import ContentStore, Resolution, resolve_dependency
from .result import ValidationResult


class Operation(str, Enum):
    """Element operations the host validates."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def _audited(operation: Operation) -> Callable:
    """Report each validation and its outcome to the audit log."""
    def decorator(func: Callable[..., ValidationResult]) -> Callable[..., ValidationResult]:
        @wraps(func)
        def wrapper(element: Element, *args, **kwargs) -> ValidationResult:
            address = element.address
            audit_log.validation_request(
                operation.value, address, element.header.author, element.header.header_seq
            )
            result = func(element, *args, **kwargs)
            if result.is_deferred():
                audit_log.validation_deferred(operation.value, address, result.dependencies)
            else:
                audit_log.validation_decision(
                    operation.value,
                    address,
                    result.outcome.value,
                    result.failure_code.value if result.failure_code else None,
                    result.reason,
                )
            return result
        return wrapper
    return decorator


def _read_change_rule(element: Element) -> Tuple[Optional[ChangeRule], Optional[ValidationResult]]:
    try:
        return ChangeRule.from_element(element), None
    except EntryError as e:
        return None, ValidationResult.from_entry_error(e)


# ============================================================
# Individual checks
# ============================================================

def validate_spec(change_rule: ChangeRule) -> ValidationResult:
    """
    The threshold must be reachable and non-zero.

    1 <= sigs_required <= len(authorized_signers)
    """
    new_spec = change_rule.new_spec
    if new_spec.sigs_required > len(new_spec.authorized_signers):
        return ValidationResult.invalid(
            FailureCode.NOT_ENOUGH_SIGNERS,
            details={
                "sigs_required": new_spec.sigs_required,
                "signers": len(new_spec.authorized_signers),
            },
        )
    if new_spec.sigs_required < 1:
        return ValidationResult.invalid(FailureCode.NOT_ENOUGH_SIGNATURES)
    return ValidationResult.valid()


def validate_create_keyset_root(element: Element, keyset_root: KeysetRoot) -> ValidationResult:
    """The first ChangeRule must be authored by the keyset's first agent."""
    if element.header.author != keyset_root.first_deepkey_agent:
        return ValidationResult.invalid(
            FailureCode.AUTHOR_NOT_FDA,
            details={
                "required": keyset_root.first_deepkey_agent,
                "observed": element.header.author,
            },
        )
    return ValidationResult.valid()


def validate_update_keyset_root(
    previous_change_rule: ChangeRule,
    proposed_change_rule: ChangeRule,
) -> ValidationResult:
    """An update may not move the lineage to another keyset root."""
    if proposed_change_rule.keyset_root != previous_change_rule.keyset_root:
        return ValidationResult.invalid(
            FailureCode.KEYSET_ROOT_MISMATCH,
            details={
                "required": previous_change_rule.keyset_root,
                "observed": proposed_change_rule.keyset_root,
            },
        )
    return ValidationResult.valid()


def validate_update_spec(
    previous_change_rule: ChangeRule,
    proposed_change_rule: ChangeRule,
) -> ValidationResult:
    """An update must change the spec."""
    if previous_change_rule.new_spec == proposed_change_rule.new_spec:
        return ValidationResult.invalid(FailureCode.IDENTICAL_UPDATE)
    return ValidationResult.valid()


def resolve_new_signers(
    previous_change_rule: ChangeRule,
    proposed_change_rule: ChangeRule,
    store: ContentStore,
) -> ValidationResult:
    """
    Every signer added by the proposed spec must be a known agent.

    All missing signers are reported together so the host can wait for
    them at once.
    """
    known = set(previous_change_rule.new_spec.authorized_signers)
    missing: List[str] = []
    for agent in proposed_change_rule.new_spec.authorized_signers:
        if agent in known:
            continue
        resolved = resolve_dependency(store, agent, AgentKey)
        if resolved.status == Resolution.NOT_FOUND:
            missing.append(agent)
        elif not resolved.found():
            return resolved.to_result()
    if missing:
        return ValidationResult.unresolved(missing)
    return ValidationResult.valid()


# ============================================================
# Entry points
# ============================================================

@_audited(Operation.CREATE)
def validate_create_change_rule(element: Element, store: ContentStore) -> ValidationResult:
    """
    Validate the first ChangeRule of a lineage.

    Order:
    1. Element holds a ChangeRule
    2. Its keyset root resolves
    3. Its keyset leaf is current
    4. The author is the keyset's first agent
    5. The root key signed the new spec, exactly once
    6. The new spec is well formed
    """
    # Step 1: Deserialize
    change_rule, failed = _read_change_rule(element)
    if failed is not None:
        return failed

    # Step 2: Resolve keyset root
    resolved_root = resolve_dependency(store, change_rule.keyset_root, KeysetRoot)
    if not resolved_root.found():
        return resolved_root.to_result()
    keyset_root = resolved_root.value

    # Step 3: Keyset leaf
    result = validate_keyset_leaf(element, change_rule, store)
    if not result.is_valid():
        return result

    # Step 4: Author is FDA
    result = validate_create_keyset_root(element, keyset_root)
    if not result.is_valid():
        return result

    # Step 5: Root key authorization
    result = validate_create_authorization(change_rule, keyset_root, store)
    if not result.is_valid():
        return result

    # Step 6: Spec shape
    return validate_spec(change_rule)


@_audited(Operation.UPDATE)
def validate_update_change_rule(element: Element, store: ContentStore) -> ValidationResult:
    """
    Validate a ChangeRule that updates the previous one in its lineage.

    Order:
    1. Element holds a ChangeRule
    2. Its keyset root resolves
    3. The ChangeRule it updates resolves
    4. Every newly listed signer resolves
    5. Its keyset leaf is current
    6. The keyset root is unchanged
    7. Signed by exactly sigs_required signers of the previous spec
    8. The spec actually changes
    9. The new spec is well formed

    Raises:
        HostContractViolation: if the element is not an update
    """
    header = element.header
    if header.header_type != HeaderType.UPDATE or header.original_header_address is None:
        audit_log.host_contract_violation(
            Operation.UPDATE.value, element.address, header.header_type.value
        )
        raise HostContractViolation(
            "Update validation invoked for an element that is not an update",
            header_type=header.header_type.value,
        )

    # Step 1: Deserialize
    proposed_change_rule, failed = _read_change_rule(element)
    if failed is not None:
        return failed

    # Step 2: Resolve keyset root
    resolved_root = resolve_dependency(store, proposed_change_rule.keyset_root, KeysetRoot)
    if not resolved_root.found():
        return resolved_root.to_result()

    # Step 3: Resolve the previous ChangeRule
    resolved_previous = resolve_dependency(store, header.original_header_address, ChangeRule)
    if not resolved_previous.found():
        return resolved_previous.to_result()
    previous_change_rule = resolved_previous.value

    # Step 4: New signers exist
    result = resolve_new_signers(previous_change_rule, proposed_change_rule, store)
    if not result.is_valid():
        return result

    # Step 5: Keyset leaf
    result = validate_keyset_leaf(element, proposed_change_rule, store)
    if not result.is_valid():
        return result

    # Step 6: Same keyset root
    result = validate_update_keyset_root(previous_change_rule, proposed_change_rule)
    if not result.is_valid():
        return result

    # Step 7: Authorized under the previous spec
    result = validate_update_authorization(previous_change_rule, proposed_change_rule, store)
    if not result.is_valid():
        return result

    # Step 8: Not a no-op
    result = validate_update_spec(previous_change_rule, proposed_change_rule)
    if not result.is_valid():
        return result

    # Step 9: Spec shape
    return validate_spec(proposed_change_rule)


@_audited(Operation.DELETE)
def validate_delete_change_rule(element: Element, store: Optional[ContentStore] = None) -> ValidationResult:
    """ChangeRules are append-only; deletes are always rejected."""
    return ValidationResult.invalid(FailureCode.DELETE_ATTEMPTED)


VALIDATORS = {
    Operation.CREATE: validate_create_change_rule,
    Operation.UPDATE: validate_update_change_rule,
    Operation.DELETE: validate_delete_change_rule,
}


def validate_change_rule(operation: Operation, element: Element, store: ContentStore) -> ValidationResult:
    """Dispatch an element to the validator for its operation."""
    return VALIDATORS[Operation(operation)](element, store)
