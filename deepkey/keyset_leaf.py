"""
Deepkey Keyset Leaf Consistency

A device may act for a keyset only while its DeviceInviteAcceptance is the
newest acceptance on its own chain. Once a later acceptance appears, the
older one is superseded and can no longer originate ChangeRules.

The check reads the author's chain between the leaf (inclusive) and the
element under validation (exclusive). Exactly one acceptance may appear
there: the leaf itself.
"""

import logging

from .entries import ChangeRule, DeviceInviteAcceptance, Element, EntryType
from .activity import ChainStatusKind
from .errors import EntryError, FailureCode
from .resolver import ContentStore, fetch_element
from .result import ValidationResult
from .util import short

logger = logging.getLogger(__name__)


def validate_keyset_leaf(
    element: Element,
    change_rule: ChangeRule,
    store: ContentStore,
) -> ValidationResult:
    """
    Check that change_rule.keyset_leaf is the author's current leaf.

    Args:
        element: The element being validated (gives author and position)
        change_rule: The ChangeRule it carries
        store: Content store and chain-activity source

    Returns:
        VALID, INVALID (MISSING_PREV_HEADER, BAD_KEYSET_LEAF, INVALID_CHAIN,
        STALE_KEYSET_LEAF) or UNRESOLVED_DEPENDENCIES
    """
    header = element.header
    prev_header = header.prev_header
    if prev_header is None:
        return ValidationResult.invalid(FailureCode.MISSING_PREV_HEADER)

    leaf_element, deferred = fetch_element(store, change_rule.keyset_leaf)
    if deferred is not None:
        return deferred

    # The root never goes stale.
    if change_rule.is_root_authored():
        return ValidationResult.valid()

    try:
        acceptance = DeviceInviteAcceptance.from_element(leaf_element)
    except EntryError as e:
        return ValidationResult.invalid(
            FailureCode.BAD_KEYSET_LEAF,
            f"{FailureCode.BAD_KEYSET_LEAF.message} ({e.message})",
            {"cause": e.failure_code.value},
        )

    if acceptance.keyset_root_authority != change_rule.keyset_root:
        return ValidationResult.invalid(
            FailureCode.BAD_KEYSET_LEAF,
            details={
                "required": change_rule.keyset_root,
                "observed": acceptance.keyset_root_authority,
            },
        )

    # Chain activity reports header addresses, so the leaf must be named by one.
    if leaf_element.address != change_rule.keyset_leaf:
        return ValidationResult.invalid(
            FailureCode.BAD_KEYSET_LEAF,
            details={"required": leaf_element.address, "observed": change_rule.keyset_leaf},
        )

    leaf_seq = leaf_element.header.header_seq
    activity = store.chain_activity(
        header.author,
        EntryType.DEVICE_INVITE_ACCEPTANCE,
        (leaf_seq, header.header_seq),
    )

    status = activity.status
    if status.kind == ChainStatusKind.EMPTY:
        return ValidationResult.unresolved([prev_header])
    if status.kind != ChainStatusKind.VALID:
        return ValidationResult.invalid(
            FailureCode.INVALID_CHAIN,
            details={"status": status.kind.value},
        )

    # The neighbour reporting activity must have validated everything
    # before this element.
    if status.head_seq < header.header_seq - 1:
        logger.debug(
            "chain activity for %s validated to %s, element at %s; deferring",
            short(header.author), status.head_seq, header.header_seq,
        )
        return ValidationResult.unresolved([prev_header])

    matches = activity.matches
    if len(matches) != 1:
        return ValidationResult.invalid(
            FailureCode.STALE_KEYSET_LEAF,
            details={"acceptances": len(matches)},
        )

    match_seq, match_address = matches[0]
    if match_address != change_rule.keyset_leaf or match_seq != leaf_seq:
        return ValidationResult.invalid(
            FailureCode.STALE_KEYSET_LEAF,
            details={"observed": match_address, "observed_seq": match_seq},
        )

    return ValidationResult.valid()
