"""
Deepkey Signature Authorization

A ChangeRule's new_spec must be signed before it can be adopted:

- On create, by the keyset root's throwaway root key, exactly once.
- On update, by exactly sigs_required of the signers named in the
  previous spec, each signature tagged with its signer's position in that
  signer list.

The update count is an exact match, not a minimum. Extra signatures are
rejected like missing ones, so a given authorization has exactly one
valid encoding.
"""

from typing import Sequence, Set

from .entries import Authorization, AuthorizationSpec, ChangeRule, KeysetRoot
from .errors import FailureCode
from .resolver import ContentStore
from .result import ValidationResult


def validate_create_authorization(
    change_rule: ChangeRule,
    keyset_root: KeysetRoot,
    store: ContentStore,
) -> ValidationResult:
    """
    Check the single root-key signature on a lineage's first ChangeRule.

    The position of a create authorization is not meaningful; only the
    signature is checked.
    """
    authorizations = change_rule.authorizations
    if len(authorizations) > 1:
        return ValidationResult.invalid(
            FailureCode.MULTIPLE_CREATE_SIGNATURES,
            details={"observed": len(authorizations)},
        )
    if not authorizations:
        return ValidationResult.invalid(FailureCode.NO_CREATE_SIGNATURE)

    signature = authorizations[0].signature
    if store.verify_signature(keyset_root.root_pub_key, signature, change_rule.new_spec.signing_bytes()):
        return ValidationResult.valid()
    return ValidationResult.invalid(FailureCode.BAD_CREATE_SIGNATURE)


def authorize(
    spec: AuthorizationSpec,
    authorizations: Sequence[Authorization],
    message: bytes,
    store: ContentStore,
) -> ValidationResult:
    """
    Check authorizations against a governing spec.

    Args:
        spec: The spec in force (the previous ChangeRule's new_spec)
        authorizations: (position, signature) pairs
        message: Canonical bytes of the proposed new_spec
        store: Provides signature verification

    Returns:
        VALID, or INVALID with WRONG_NUMBER_OF_SIGNATURES,
        AUTHORIZED_POSITION_OUT_OF_BOUNDS, DUPLICATE_AUTHORIZED_POSITION
        or BAD_UPDATE_SIGNATURE
    """
    if len(authorizations) != spec.sigs_required:
        return ValidationResult.invalid(
            FailureCode.WRONG_NUMBER_OF_SIGNATURES,
            details={"required": spec.sigs_required, "observed": len(authorizations)},
        )

    seen: Set[int] = set()
    for position, signature in authorizations:
        if position >= len(spec.authorized_signers):
            return ValidationResult.invalid(
                FailureCode.AUTHORIZED_POSITION_OUT_OF_BOUNDS,
                details={"position": position, "signers": len(spec.authorized_signers)},
            )
        if position in seen:
            return ValidationResult.invalid(
                FailureCode.DUPLICATE_AUTHORIZED_POSITION,
                details={"position": position},
            )
        seen.add(position)

        signer = spec.authorized_signers[position]
        if not store.verify_signature(signer, signature, message):
            return ValidationResult.invalid(
                FailureCode.BAD_UPDATE_SIGNATURE,
                details={"position": position},
            )

    return ValidationResult.valid()


def validate_update_authorization(
    previous_change_rule: ChangeRule,
    proposed_change_rule: ChangeRule,
    store: ContentStore,
) -> ValidationResult:
    """The proposed spec must be authorized under the previous spec."""
    return authorize(
        previous_change_rule.new_spec,
        proposed_change_rule.authorizations,
        proposed_change_rule.new_spec.signing_bytes(),
        store,
    )
