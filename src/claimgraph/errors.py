"""
claimgraph.errors — Exception hierarchy.

Verification failures (SignatureInvalid, IDMismatch) share VerificationError:
an artifact that raises one of these should never be trusted again.
Everything else is a structural problem with the request.
"""

from typing import Optional


class ClaimGraphError(Exception):
    """Root of all claimgraph errors."""


class InvalidInput(ClaimGraphError):
    """A required claim, statement or attestation field is missing or malformed."""


class SerializationFailure(ClaimGraphError):
    """The canonical encoding of a claim could not be produced."""


class KeyDecodeError(ClaimGraphError):
    """Malformed hex or wrong-length key material."""


class NoPrivateKey(ClaimGraphError):
    """Signing was attempted with a witness that only holds a public key."""


class DuplicateWitness(ClaimGraphError):
    """The witness has already attested to this claim."""

    def __init__(self, witness_id: str):
        self.witness_id = witness_id
        super().__init__(f"witness {witness_id} already attested")


class VerificationError(ClaimGraphError):
    """Cryptographic or content-hash verification failed."""


class SignatureInvalid(VerificationError):
    """Signature does not verify against the claim id."""


class IDMismatch(VerificationError):
    """Claim content does not hash to its stated id."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"id mismatch: expected {expected}, got {actual}")


class AttestationError(ClaimGraphError):
    """One entry of a claim's attestation list failed verification."""

    def __init__(self, index: int, witness_id: str, cause: ClaimGraphError):
        self.index = index
        self.witness_id = witness_id
        self.cause = cause
        super().__init__(f"attestation {index} invalid: {cause}")

    @property
    def is_forgery(self) -> bool:
        return isinstance(self.cause, VerificationError)


class StoreError(ClaimGraphError):
    """A claim store backend failed."""


class ClaimNotFound(StoreError):
    """No claim with the requested id."""

    def __init__(self, claim_id: Optional[str]):
        self.claim_id = claim_id
        super().__init__(f"claim not found: {claim_id}")


__all__ = [
    "ClaimGraphError",
    "InvalidInput",
    "SerializationFailure",
    "KeyDecodeError",
    "NoPrivateKey",
    "DuplicateWitness",
    "VerificationError",
    "SignatureInvalid",
    "IDMismatch",
    "AttestationError",
    "StoreError",
    "ClaimNotFound",
]
