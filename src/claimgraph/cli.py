#!/usr/bin/env python3
"""
claimgraph CLI — create, attest, verify and score claims.

Commands:
    identity create|show              - Manage the local witness identity
    claim create|get|verify           - Create and check claims
    claim confidence                  - Confidence of a claim under a ledger
    witness attest|reputation         - Attest to claims, inspect reputation

Claims are stored in IPFS when the API is reachable. Anywhere a claim id is
accepted, a path to a claim JSON file works too.
"""

import argparse
import json
import os
import sys
from typing import Optional

from claimgraph.claim import Claim, Statement, new_claim, verify_id
from claimgraph.config import Settings
from claimgraph.errors import (
    AttestationError,
    ClaimGraphError,
    IDMismatch,
    StoreError,
)
from claimgraph.log import setup_logging
from claimgraph.reputation import ReputationEngine, claim_confidence
from claimgraph.storage import IPFSStore
from claimgraph.witness import add_attestation, generate_witness, load_witness, verify_all_attestations


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, 'json', False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        human_fn(data)


def _open_store(args) -> IPFSStore:
    return IPFSStore(api_url=args.ipfs, timeout=args.timeout)


def _write_claim(path: str, claim: Claim):
    with open(path, 'w') as f:
        json.dump(claim.to_dict(), f, indent=2)


def _load_claim(ref: str, args) -> tuple[Claim, Optional[IPFSStore]]:
    """Load a claim from a JSON file, or by id from the store."""
    if os.path.isfile(ref):
        with open(ref) as f:
            return Claim.from_dict(json.load(f)), None
    store = _open_store(args)
    try:
        return store.get(ref), store
    except ClaimGraphError:
        store.close()
        raise


def _load_ledger(path: str) -> ReputationEngine:
    with open(path) as f:
        events = json.load(f)
    engine = ReputationEngine()
    engine.replay(events)
    return engine


# ─── identity ──────────────────────────────────────────────────────

def cmd_identity_create(args):
    """Generate a witness keypair and save it."""
    if os.path.exists(args.identity) and not args.force:
        print(f"❌ Identity already exists at {args.identity} (use --force to replace)",
              file=sys.stderr)
        sys.exit(1)
    witness = generate_witness()
    witness.save(args.identity)
    result = {"id": witness.id, "path": args.identity}

    def human(d):
        print("✅ Created witness identity")
        print(f"   ID:       {d['id']}")
        print(f"   Saved to: {d['path']}")

    _output(result, args, human)
    return result


def cmd_identity_show(args):
    """Show the witness id."""
    if not os.path.exists(args.identity):
        print("No identity found. Run 'claimgraph identity create' first.", file=sys.stderr)
        sys.exit(1)
    witness = load_witness(args.identity)
    result = {"id": witness.id, "path": args.identity}
    _output(result, args, lambda d: print(f"Witness ID: {d['id']}"))
    return result


# ─── claim ─────────────────────────────────────────────────────────

def cmd_claim_create(args):
    """Create a claim and store it."""
    statement = Statement(
        subject=args.subject,
        predicate=args.predicate,
        object=args.object,
        domain=args.domain,
    )
    claim = new_claim(statement, args.evidence or [], args.time_event)

    if args.output:
        _write_claim(args.output, claim)

    stored = False
    try:
        with _open_store(args) as store:
            store.put(claim)
            stored = True
    except StoreError as e:
        print(f"⚠️  IPFS not available, claim not stored ({e})", file=sys.stderr)

    result = {"id": claim.id, "stored": stored, "claim": claim.to_dict()}

    def human(d):
        print(f"✅ Claim created{' and stored' if d['stored'] else ''}")
        print(f"   ID:        {d['id']}")
        print(f"   Statement: {args.subject} {args.predicate} {args.object}")
        if args.output:
            print(f"   Saved to:  {args.output}")

    _output(result, args, human)
    return result


def cmd_claim_get(args):
    """Fetch a claim by id."""
    with _open_store(args) as store:
        claim = store.get(args.claim)
    result = claim.to_dict()
    print(json.dumps(result, indent=2))
    return result


def cmd_claim_verify(args):
    """Check a claim's id and every attestation on it."""
    claim, store = _load_claim(args.claim, args)
    if store is not None:
        store.close()

    id_error = None
    try:
        verify_id(claim)
    except IDMismatch as e:
        id_error = str(e)

    att_error = None
    try:
        verify_all_attestations(claim)
    except AttestationError as e:
        att_error = str(e)

    result = {
        "id": claim.id,
        "id_valid": id_error is None,
        "id_error": id_error,
        "attestations": len(claim.witnesses),
        "attestations_valid": att_error is None,
        "attestation_error": att_error,
        "valid": id_error is None and att_error is None,
    }

    def human(d):
        print(f"{'✅ VALID' if d['valid'] else '❌ INVALID'}: {d['id']}")
        print(f"   ID check:     {'OK' if d['id_valid'] else 'FAILED (' + d['id_error'] + ')'}")
        if not d['attestations']:
            print("   Attestations: none")
        elif d['attestations_valid']:
            print(f"   Attestations: {d['attestations']} valid")
        else:
            print(f"   Attestations: INVALID ({d['attestation_error']})")

    _output(result, args, human)
    return result


def cmd_claim_confidence(args):
    """Confidence of a claim under a replayed reputation ledger."""
    claim, store = _load_claim(args.claim, args)
    if store is not None:
        store.close()
    engine = _load_ledger(args.ledger)
    result = {
        "id": claim.id,
        "witnesses": len(claim.witnesses),
        "confidence": round(claim_confidence(claim, engine), 4),
    }

    def human(d):
        print(f"📊 Confidence for {d['id']}")
        print(f"   Witnesses:  {d['witnesses']}")
        print(f"   Confidence: {d['confidence']}")

    _output(result, args, human)
    return result


# ─── witness ───────────────────────────────────────────────────────

def cmd_witness_attest(args):
    """Sign a claim with the local identity and save it back."""
    witness = load_witness(args.identity)
    claim, store = _load_claim(args.claim, args)
    try:
        add_attestation(claim, witness.attest(claim))
        if store is not None:
            store.put(claim)
        else:
            _write_claim(args.output or args.claim, claim)
    finally:
        if store is not None:
            store.close()

    result = {"id": claim.id, "witness_id": witness.id, "witnesses": len(claim.witnesses)}

    def human(d):
        print(f"✅ Attestation added to claim {d['id']}")
        print(f"   Witness:   {d['witness_id'][:32]}...")
        print(f"   Witnesses: {d['witnesses']}")

    _output(result, args, human)
    return result


def cmd_witness_reputation(args):
    """Replay a ledger and export one witness's reputation."""
    engine = _load_ledger(args.ledger)
    exported = engine.export_witness(args.witness_id)
    if exported is None:
        result = {"witness_id": args.witness_id, "known": False, "score": 0.5}
    else:
        result = {"known": True, **exported.to_dict()}

    def human(d):
        print(f"🔎 Reputation for {d['witness_id'][:32]}...")
        if not d['known']:
            print("   Unknown witness (neutral score 0.5)")
            return
        print(f"   Score:    {d['score']:.4f}")
        print(f"   Claims:   {d['total_claims']} (agreed {d['agreed_claims']}, "
              f"disputed {d['disputed_claims']})")
        for name, dom in sorted(d['domains'].items()):
            print(f"   [{name}] score={dom['score']:.4f} claims={dom['total_claims']}")

    _output(result, args, human)
    return result


# ─── Parser ────────────────────────────────────────────────────────

def build_parser(settings: Optional[Settings] = None) -> argparse.ArgumentParser:
    settings = settings or Settings.from_env()
    parser = argparse.ArgumentParser(
        prog="claimgraph",
        description="claimgraph — content-addressed claims, witness attestations, reputation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    parser.add_argument("--ipfs", default=settings.ipfs_url, help="IPFS API URL")
    parser.add_argument("--timeout", type=float, default=settings.timeout,
                        help="IPFS request timeout in seconds")
    parser.add_argument("--identity", default=settings.identity_path, help="Witness identity file")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level")
    parser.set_defaults(log_json=settings.log_json)

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # identity
    p = sub.add_parser("identity", help="Manage witness identity")
    isub = p.add_subparsers(dest="subcommand")
    ip = isub.add_parser("create", help="Create new witness keypair")
    ip.add_argument("--force", action="store_true", help="Replace an existing identity")
    ip.set_defaults(func=cmd_identity_create)
    ip = isub.add_parser("show", help="Show current witness ID")
    ip.set_defaults(func=cmd_identity_show)

    # claim
    p = sub.add_parser("claim", help="Create and manage claims")
    csub = p.add_subparsers(dest="subcommand")
    cp = csub.add_parser("create", help="Create a new claim")
    cp.add_argument("--subject", required=True, help="Subject of the claim")
    cp.add_argument("--predicate", required=True, help="Predicate (relationship)")
    cp.add_argument("--object", required=True, help="Object (value)")
    cp.add_argument("--domain", default="", help="Domain category")
    cp.add_argument("--evidence", nargs="*", default=[], help="Evidence identifiers")
    cp.add_argument("--time-event", default="", help="Time-anchor event id")
    cp.add_argument("-o", "--output", help="Also save the claim to this file")
    cp.set_defaults(func=cmd_claim_create)

    cp = csub.add_parser("get", help="Get a claim by id")
    cp.add_argument("claim", help="Claim id")
    cp.set_defaults(func=cmd_claim_get)

    cp = csub.add_parser("verify", help="Verify a claim and its attestations")
    cp.add_argument("claim", help="Claim id or claim JSON file")
    cp.set_defaults(func=cmd_claim_verify)

    cp = csub.add_parser("confidence", help="Confidence of a claim under a reputation ledger")
    cp.add_argument("claim", help="Claim id or claim JSON file")
    cp.add_argument("-l", "--ledger", required=True, help="Outcome ledger JSON file")
    cp.set_defaults(func=cmd_claim_confidence)

    # witness
    p = sub.add_parser("witness", help="Attest to claims")
    wsub = p.add_subparsers(dest="subcommand")
    wp = wsub.add_parser("attest", help="Attest to a claim")
    wp.add_argument("claim", help="Claim id or claim JSON file")
    wp.add_argument("-o", "--output", help="Write the attested claim here instead of in place")
    wp.set_defaults(func=cmd_witness_attest)

    wp = wsub.add_parser("reputation", help="Check witness reputation")
    wp.add_argument("witness_id", help="Witness id (hex public key)")
    wp.add_argument("-l", "--ledger", required=True, help="Outcome ledger JSON file")
    wp.set_defaults(func=cmd_witness_reputation)

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level, json_format=args.log_json)

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"❌ File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except (ClaimGraphError, json.JSONDecodeError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
