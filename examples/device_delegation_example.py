#!/usr/bin/env python3
"""
Deepkey Example - Delegating and Revoking Signing Rights

This example follows one keyset through its lifetime:

1. The first device publishes a KeysetRoot and the initial ChangeRule
2. A laptop joins and is added as a co-signer (2-of-2)
3. The laptop re-joins under a newer acceptance; its old leaf goes stale
4. A peer that has not seen every element yet defers, then accepts
   once replication catches up

Run with: python examples/device_delegation_example.py
"""

import json
from typing import List

from deepkey import (
    Authorization,
    AuthorizationSpec,
    ChangeRule,
    DeviceInviteAcceptance,
    Element,
    InMemoryStore,
    KeyPair,
    KeysetRoot,
    SourceChain,
    SpecChange,
    ValidationResult,
    sha256_hash,
    validate_create_change_rule,
    validate_update_change_rule,
)
from deepkey.logging_config import configure_logging


def signed(spec: AuthorizationSpec, *signers) -> SpecChange:
    """Attach (position, keypair) signatures to a spec."""
    message = spec.signing_bytes()
    return SpecChange(
        new_spec=spec,
        authorization_of_new_spec=tuple(Authorization(p, k.sign(message)) for p, k in signers),
    )


def report(label: str, result: ValidationResult):
    print(f"{label}: {json.dumps(result.to_dict())}")


def replicate_until_valid(element: Element, sources: List[SourceChain]) -> ValidationResult:
    """
    Validate on a fresh peer, publishing one chain at a time.

    This is what a host does with a deferral: wait for the listed
    addresses, then re-run validation from scratch.
    """
    peer = InMemoryStore()
    pending = list(sources)
    while True:
        result = validate_update_change_rule(element, peer)
        if not result.is_deferred() or not pending:
            return result
        print(f"  deferred on {len(result.dependencies)} address(es); replicating...")
        for published in pending.pop(0).elements:
            peer.put(published)


def main():
    configure_logging(level="WARNING", json_format=False)

    print("=" * 60)
    print("Deepkey Device Delegation Example")
    print("=" * 60)

    network = InMemoryStore()
    phone = SourceChain(store=network)
    laptop = SourceChain(store=network)
    root_key = KeyPair.generate()

    # ============================================================
    # 1. Keyset root and first ChangeRule
    # ============================================================
    keyset_root = phone.create(KeysetRoot(
        first_deepkey_agent=phone.agent,
        root_pub_key=root_key.agent,
    )).address

    phone_only = AuthorizationSpec(authorized_signers=(phone.agent,), sigs_required=1)
    create = phone.create(ChangeRule(
        keyset_root=keyset_root,
        keyset_leaf=keyset_root,
        spec_change=signed(phone_only, (0, root_key)),
    ))
    report("create", validate_create_change_rule(create, network))

    # The root key has done its one job and can be discarded.
    del root_key

    # ============================================================
    # 2. Laptop joins and becomes a co-signer
    # ============================================================
    acceptance = laptop.create(DeviceInviteAcceptance(
        keyset_root_authority=keyset_root,
        invite=sha256_hash(b"phone-invites-laptop"),
    ))
    both = AuthorizationSpec(authorized_signers=(phone.agent, laptop.agent), sigs_required=2)
    add_laptop = laptop.update(create.address, ChangeRule(
        keyset_root=keyset_root,
        keyset_leaf=acceptance.address,
        spec_change=signed(both, (0, phone.keypair)),
    ))
    report("add laptop", validate_update_change_rule(add_laptop, network))

    # ============================================================
    # 3. A newer acceptance supersedes the old leaf
    # ============================================================
    laptop.create(DeviceInviteAcceptance(
        keyset_root_authority=keyset_root,
        invite=sha256_hash(b"phone-re-invites-laptop"),
    ))
    phone_again = AuthorizationSpec(authorized_signers=(phone.agent,), sigs_required=1)
    stale = laptop.update(add_laptop.address, ChangeRule(
        keyset_root=keyset_root,
        keyset_leaf=acceptance.address,
        spec_change=signed(phone_again, (0, phone.keypair), (1, laptop.keypair)),
    ), publish=False)
    report("old leaf", validate_update_change_rule(stale, network))

    # ============================================================
    # 4. Deferral and retry on a peer that is catching up
    # ============================================================
    print("\nFresh peer validating the laptop's update:")
    report("result", replicate_until_valid(add_laptop, [phone, laptop]))


if __name__ == "__main__":
    main()
