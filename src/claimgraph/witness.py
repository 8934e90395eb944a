"""
claimgraph.witness — Witness identities and the attestation protocol.

A witness is an Ed25519 keypair; its id is the hex encoding of the public key.
LocalWitness holds the signing key and can attest. RemoteWitness is rebuilt
from a public key or id alone and can only verify.

An attestation signs the raw bytes of the claim id, not the claim content,
so it stays valid while metadata changes and other witnesses attest.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional, Union

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from claimgraph.claim import Attestation, Claim
from claimgraph.errors import (
    AttestationError,
    ClaimGraphError,
    DuplicateWitness,
    InvalidInput,
    KeyDecodeError,
    NoPrivateKey,
    SignatureInvalid,
)

logger = logging.getLogger(__name__)

PUBLIC_KEY_SIZE = 32
SEED_SIZE = 32
PRIVATE_KEY_SIZE = SEED_SIZE + PUBLIC_KEY_SIZE
SIGNATURE_SIZE = 64


def _decode_public_key(witness_id: str) -> VerifyKey:
    if not isinstance(witness_id, str):
        raise KeyDecodeError(f"witness id must be a hex string, got {type(witness_id).__name__}")
    try:
        raw = bytes.fromhex(witness_id)
    except ValueError as e:
        raise KeyDecodeError(f"invalid witness id: {e}") from e
    if len(raw) != PUBLIC_KEY_SIZE:
        raise KeyDecodeError(f"invalid public key length: got {len(raw)}, want {PUBLIC_KEY_SIZE}")
    return VerifyKey(raw)


# ─── Identity ──────────────────────────────────────────────────────

class Witness:
    """Public identity of a witness. Both variants can verify."""

    can_sign = False

    def __init__(self, verify_key: VerifyKey, metadata: Optional[dict[str, str]] = None):
        self.verify_key = verify_key
        self.metadata = dict(metadata or {})

    @property
    def id(self) -> str:
        return self.verify_key.encode(encoder=HexEncoder).decode()

    @property
    def public_key(self) -> bytes:
        return bytes(self.verify_key)

    def verify(self, message: bytes, signature: bytes) -> None:
        """Raise SignatureInvalid unless signature is valid for message."""
        try:
            self.verify_key.verify(message, signature)
        except (BadSignatureError, ValueError, TypeError) as e:
            raise SignatureInvalid(f"invalid signature from {self.id[:16]}...") from e

    def __eq__(self, other):
        return isinstance(other, Witness) and self.public_key == other.public_key

    def __hash__(self):
        return hash(self.public_key)

    def __repr__(self):
        kind = "local" if self.can_sign else "remote"
        return f"{type(self).__name__}({kind} {self.id[:16]}...)"


class RemoteWitness(Witness):
    """A witness known only by its public key."""


class LocalWitness(Witness):
    """A witness that owns its signing key."""

    can_sign = True

    def __init__(self, signing_key: Optional[SigningKey] = None,
                 metadata: Optional[dict[str, str]] = None):
        self.signing_key = signing_key or SigningKey.generate()
        super().__init__(self.signing_key.verify_key, metadata)

    @property
    def private_key(self) -> bytes:
        """64-byte private key: seed followed by public key."""
        return self.signing_key.encode() + self.public_key

    key_material = private_key

    def sign(self, data: bytes) -> bytes:
        return self.signing_key.sign(data).signature

    def attest(self, claim: Claim) -> Attestation:
        if claim is None:
            raise InvalidInput("claim cannot be None")
        if not claim.id:
            raise InvalidInput("claim has no id")
        return Attestation(
            witness_id=self.id,
            signature=self.sign(claim.id.encode("utf-8")),
            timestamp=datetime.now(timezone.utc),
        )

    def to_remote(self) -> RemoteWitness:
        return RemoteWitness(self.verify_key, self.metadata)

    def export_keys(self) -> dict:
        """Export identity for storage."""
        return {
            "id": self.id,
            "public_key": self.public_key.hex(),
            "private_key": self.private_key.hex(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    def save(self, filepath: str):
        """Save identity to a JSON file readable only by the owner."""
        os.makedirs(os.path.dirname(filepath) or ".", mode=0o700, exist_ok=True)
        fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(self.export_keys(), f, indent=2)
        os.chmod(filepath, 0o600)
        logger.info("Saved witness identity %s to %s", self.id[:16], filepath)


# ─── Constructors ──────────────────────────────────────────────────

def generate_witness(metadata: Optional[dict[str, str]] = None) -> LocalWitness:
    """Fresh keypair."""
    return LocalWitness(metadata=metadata)


def witness_from_public_key(public_key: bytes) -> RemoteWitness:
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise KeyDecodeError(
            f"invalid public key length: got {len(public_key)}, want {PUBLIC_KEY_SIZE}")
    return RemoteWitness(VerifyKey(bytes(public_key)))


def witness_from_id(witness_id: str) -> RemoteWitness:
    return RemoteWitness(_decode_public_key(witness_id))


def witness_from_key_material(material: Union[bytes, str]) -> LocalWitness:
    """Rebuild a local witness from seed || public key (bytes or hex)."""
    if isinstance(material, str):
        try:
            material = bytes.fromhex(material)
        except ValueError as e:
            raise KeyDecodeError(f"invalid private key: {e}") from e
    if len(material) != PRIVATE_KEY_SIZE:
        raise KeyDecodeError(
            f"invalid private key length: got {len(material)}, want {PRIVATE_KEY_SIZE}")
    witness = LocalWitness(SigningKey(bytes(material[:SEED_SIZE])))
    if witness.public_key != bytes(material[SEED_SIZE:]):
        raise KeyDecodeError("private key seed does not match its public key")
    return witness


def load_witness(filepath: str) -> LocalWitness:
    """Load identity from a JSON file written by LocalWitness.save()."""
    with open(filepath) as f:
        data = json.load(f)
    if "private_key" not in data:
        raise KeyDecodeError(f"{filepath}: no private_key")
    witness = witness_from_key_material(data["private_key"])
    if data.get("id") and data["id"].lower() != witness.id:
        raise KeyDecodeError(f"{filepath}: stored id does not match key material")
    return witness


# ─── Protocol ──────────────────────────────────────────────────────

def attest(witness: Witness, claim: Claim) -> Attestation:
    """Sign a claim's id. Remote witnesses cannot attest."""
    if not isinstance(witness, LocalWitness):
        raise NoPrivateKey(f"witness {getattr(witness, 'id', '?')[:16]}... has no private key")
    return witness.attest(claim)


def verify_attestation(claim: Claim, attestation: Attestation) -> None:
    """Raise unless attestation is a valid signature over claim.id."""
    if claim is None:
        raise InvalidInput("claim cannot be None")
    if attestation is None:
        raise InvalidInput("attestation cannot be None")
    witness = RemoteWitness(_decode_public_key(attestation.witness_id))
    witness.verify(claim.id.encode("utf-8"), attestation.signature)


def add_attestation(claim: Claim, attestation: Attestation) -> None:
    """Verify, reject duplicates, append."""
    try:
        verify_attestation(claim, attestation)
    except SignatureInvalid:
        logger.warning("Rejected forged attestation from %s on %s",
                       attestation.witness_id[:16], claim.id)
        raise

    wid = attestation.witness_id.lower()
    if any(existing.witness_id.lower() == wid for existing in claim.witnesses):
        logger.info("Duplicate attestation from %s on %s", wid[:16], claim.id)
        raise DuplicateWitness(attestation.witness_id)

    claim.witnesses.append(attestation)
    logger.debug("Added attestation %d from %s on %s",
                 len(claim.witnesses), wid[:16], claim.id)


def verify_all_attestations(claim: Claim) -> None:
    """Raise AttestationError for the first invalid entry."""
    if claim is None:
        raise InvalidInput("claim cannot be None")
    seen: set[str] = set()
    for i, att in enumerate(claim.witnesses):
        try:
            verify_attestation(claim, att)
        except ClaimGraphError as e:
            raise AttestationError(i, att.witness_id, e) from e
        wid = att.witness_id.lower()
        if wid in seen:
            raise AttestationError(i, att.witness_id, DuplicateWitness(att.witness_id))
        seen.add(wid)


__all__ = [
    "Witness",
    "RemoteWitness",
    "LocalWitness",
    "generate_witness",
    "witness_from_public_key",
    "witness_from_id",
    "witness_from_key_material",
    "load_witness",
    "attest",
    "verify_attestation",
    "add_attestation",
    "verify_all_attestations",
    "PUBLIC_KEY_SIZE",
    "PRIVATE_KEY_SIZE",
]
