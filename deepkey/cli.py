#!/usr/bin/env python3
"""
Deepkey Command Line Interface

Usage:
    deepkey validate --store <file> --element <file> --operation create|update|delete
    deepkey hash --file <file>
    deepkey keygen --output <file>
    deepkey sign-spec --key <file> --file <file>
    deepkey lineage --store <file> --address <address>
    deepkey demo
"""

import argparse
import json
import sys

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_DEFERRED = 2
EXIT_HOST_ERROR = 3


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def cmd_validate(args):
    """Validate a ChangeRule element against a store snapshot."""
    from deepkey import Element, HostContractViolation, load_store, validate_change_rule
    from deepkey import config
    from deepkey.logging_config import set_validation_id

    store = load_store(args.store or config.STORE_PATH)
    try:
        element = Element.from_dict(load_json(args.element))
    except (ValueError, KeyError, TypeError) as e:
        print(f"✗ Malformed element: {e}", file=sys.stderr)
        return EXIT_INVALID

    set_validation_id()
    try:
        result = validate_change_rule(args.operation, element, store)
    except HostContractViolation as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return EXIT_HOST_ERROR

    print(json.dumps(result.to_dict(), indent=2))

    if result.is_valid():
        print(f"\n✓ VALID", file=sys.stderr)
        return EXIT_VALID
    if result.is_deferred():
        print(f"\n… UNRESOLVED_DEPENDENCIES", file=sys.stderr)
        for address in result.dependencies:
            print(f"  - waiting on {address}", file=sys.stderr)
        return EXIT_DEFERRED
    print(f"\n✗ INVALID: {result.failure_code.value}", file=sys.stderr)
    return EXIT_INVALID


def cmd_hash(args):
    """Compute Deepkey addresses."""
    from deepkey import Element, sha256_hash
    from deepkey.canonicalization import canonicalize

    data = load_json(args.file)

    # Determine type and compute appropriate address
    if "header" in data:
        element = Element.from_dict(data)
        print(f"header_address: {element.address}")
        if element.entry_address:
            print(f"entry_address: {element.entry_address}")
    else:
        h = sha256_hash(canonicalize(data))
        print(f"sha256: {h}")


def cmd_keygen(args):
    """Generate an Ed25519 key pair for an agent or a root key."""
    from deepkey import KeyPair

    keypair = KeyPair.generate()
    data = keypair.to_dict()

    if args.output:
        save_json(data, args.output)
        print(f"Key saved to: {args.output}")
    else:
        print(json.dumps(data, indent=2))

    print(f"\nAgent: {keypair.agent}", file=sys.stderr)


def cmd_sign_spec(args):
    """Sign the canonical bytes of an authorization spec."""
    from deepkey import AuthorizationSpec, EntryError, KeyPair

    keypair = KeyPair.from_dict(load_json(args.key))
    try:
        spec = AuthorizationSpec.from_dict(load_json(args.file))
    except EntryError as e:
        print(f"✗ {e.message}", file=sys.stderr)
        return 1

    signature = keypair.sign(spec.signing_bytes())
    print(json.dumps([args.position, signature]))
    return 0


def cmd_lineage(args):
    """Print the lineage ending at a ChangeRule."""
    from deepkey import load_store, walk_lineage
    from deepkey import config

    store = load_store(args.store or config.STORE_PATH)
    lineage, result = walk_lineage(store, args.address)

    if lineage is None:
        print(json.dumps(result.to_dict(), indent=2))
        return EXIT_DEFERRED if result.is_deferred() else EXIT_INVALID

    print(json.dumps({
        "keyset_root": lineage.keyset_root,
        "state": lineage.state.value,
        "steps": [step.to_dict() for step in lineage.steps],
    }, indent=2))
    return 0


def cmd_demo(args):
    """Run a demonstration of ChangeRule validation."""
    from deepkey import (
        AuthorizationSpec,
        Authorization,
        ChangeRule,
        DeviceInviteAcceptance,
        InMemoryStore,
        KeyPair,
        KeysetRoot,
        SourceChain,
        SpecChange,
        sha256_hash,
        validate_create_change_rule,
        validate_update_change_rule,
    )

    print("=" * 60)
    print("Deepkey ChangeRule Validation Demonstration")
    print("=" * 60)

    store = InMemoryStore()
    fda = SourceChain(store=store)
    device = SourceChain(store=store)
    root_key = KeyPair.generate()

    keyset_root = fda.create(KeysetRoot(
        first_deepkey_agent=fda.agent,
        root_pub_key=root_key.agent,
    ))
    print(f"\nKeyset root: {keyset_root.address[:40]}...")

    # Scenario 1: The first device creates the lineage
    print("\n" + "-" * 60)
    print("Scenario 1: Create signed by the root key")
    print("-" * 60)

    spec1 = AuthorizationSpec(authorized_signers=(fda.agent,), sigs_required=1)
    create = fda.create(ChangeRule(
        keyset_root=keyset_root.address,
        keyset_leaf=keyset_root.address,
        spec_change=SpecChange(
            new_spec=spec1,
            authorization_of_new_spec=(Authorization(0, root_key.sign(spec1.signing_bytes())),),
        ),
    ))
    result1 = validate_create_change_rule(create, store)
    print(f"Outcome: {result1.outcome.value}")

    # Scenario 2: A second device joins and the FDA hands it co-signing rights
    print("\n" + "-" * 60)
    print("Scenario 2: Update adding a second signer")
    print("-" * 60)

    acceptance = device.create(DeviceInviteAcceptance(
        keyset_root_authority=keyset_root.address,
        invite=sha256_hash(b"demo-invite"),
    ))
    spec2 = AuthorizationSpec(authorized_signers=(fda.agent, device.agent), sigs_required=2)
    update = device.update(create.address, ChangeRule(
        keyset_root=keyset_root.address,
        keyset_leaf=acceptance.address,
        spec_change=SpecChange(
            new_spec=spec2,
            authorization_of_new_spec=(Authorization(0, fda.keypair.sign(spec2.signing_bytes())),),
        ),
    ))
    result2 = validate_update_change_rule(update, store)
    print(f"Outcome: {result2.outcome.value}")
    print(f"Signers: {len(spec2.authorized_signers)}, required: {spec2.sigs_required}")

    # Scenario 3: Same update signed by too few signers
    print("\n" + "-" * 60)
    print("Scenario 3: Update signed by one of two required signers")
    print("-" * 60)

    spec3 = AuthorizationSpec(authorized_signers=(device.agent,), sigs_required=1)
    rejected = device.update(update.address, ChangeRule(
        keyset_root=keyset_root.address,
        keyset_leaf=acceptance.address,
        spec_change=SpecChange(
            new_spec=spec3,
            authorization_of_new_spec=(Authorization(1, device.keypair.sign(spec3.signing_bytes())),),
        ),
    ), publish=False)
    result3 = validate_update_change_rule(rejected, store)
    print(f"Outcome: {result3.outcome.value}")
    print(f"  Failed: {result3.failure_code.value}")
    print(f"    {result3.reason}")

    # Scenario 4: An update whose previous rule has not replicated yet
    print("\n" + "-" * 60)
    print("Scenario 4: Update of a ChangeRule not yet seen")
    print("-" * 60)

    empty_store = InMemoryStore()
    result4 = validate_update_change_rule(update, empty_store)
    print(f"Outcome: {result4.outcome.value}")
    for address in result4.dependencies:
        print(f"  Waiting on: {address[:40]}...")

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)


def main():
    from deepkey import config

    parser = argparse.ArgumentParser(
        description="Deepkey ChangeRule validation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  deepkey demo                            Run demonstration
  deepkey validate -s store.json -e element.json -o update
  deepkey hash -f element.json
  deepkey keygen -o root_key.json
  deepkey sign-spec -k root_key.json -f spec.json
  deepkey lineage -s store.json -a sha256:...
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # validate
    validate_parser = subparsers.add_parser("validate", help="Validate a ChangeRule element")
    validate_parser.add_argument("-s", "--store", help="Store snapshot JSON file")
    validate_parser.add_argument("-e", "--element", required=True, help="Element JSON file")
    validate_parser.add_argument(
        "-o", "--operation", required=True, choices=["create", "update", "delete"],
        help="Host operation being validated",
    )

    # hash
    hash_parser = subparsers.add_parser("hash", help="Compute Deepkey address")
    hash_parser.add_argument("-f", "--file", required=True, help="JSON file to hash")

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate signing key pair")
    keygen_parser.add_argument("-o", "--output", help="Output file for the key pair")

    # sign-spec
    sign_parser = subparsers.add_parser("sign-spec", help="Sign an authorization spec")
    sign_parser.add_argument("-k", "--key", required=True, help="Key pair JSON file")
    sign_parser.add_argument("-f", "--file", required=True, help="Spec JSON file")
    sign_parser.add_argument("-p", "--position", type=int, default=0, help="Signer position")

    # lineage
    lineage_parser = subparsers.add_parser("lineage", help="Show a ChangeRule lineage")
    lineage_parser.add_argument("-s", "--store", help="Store snapshot JSON file")
    lineage_parser.add_argument("-a", "--address", required=True, help="ChangeRule address")

    # demo
    subparsers.add_parser("demo", help="Run demonstration")

    args = parser.parse_args()
    config.setup_logging()

    if args.command == "validate":
        sys.exit(cmd_validate(args))
    elif args.command == "hash":
        cmd_hash(args)
    elif args.command == "keygen":
        cmd_keygen(args)
    elif args.command == "sign-spec":
        sys.exit(cmd_sign_spec(args))
    elif args.command == "lineage":
        sys.exit(cmd_lineage(args))
    elif args.command == "demo":
        cmd_demo(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
