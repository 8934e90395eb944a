"""claimgraph — Content-addressed claims, witness attestations and reputation scoring."""

from claimgraph.claim import (
    Attestation, Claim, Statement,
    compute_id, verify_id, new_claim,
)
from claimgraph.errors import (
    ClaimGraphError, InvalidInput, SerializationFailure, KeyDecodeError,
    NoPrivateKey, DuplicateWitness, VerificationError, SignatureInvalid,
    IDMismatch, AttestationError, StoreError, ClaimNotFound,
)
from claimgraph.witness import (
    Witness, LocalWitness, RemoteWitness,
    generate_witness, witness_from_public_key, witness_from_id,
    witness_from_key_material, load_witness,
    attest, verify_attestation, add_attestation, verify_all_attestations,
)
from claimgraph.reputation import (
    Outcome, DomainReputation, ReputationRecord, ExportedReputation,
    ReputationEngine, score, domain_score, export, claim_confidence,
)
from claimgraph.storage import ClaimFilter, ClaimStore, MemoryStore, IPFSStore

__version__ = "0.1.0"

__all__ = [
    "Attestation",
    "Claim",
    "Statement",
    "compute_id",
    "verify_id",
    "new_claim",
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
    "Witness",
    "LocalWitness",
    "RemoteWitness",
    "generate_witness",
    "witness_from_public_key",
    "witness_from_id",
    "witness_from_key_material",
    "load_witness",
    "attest",
    "verify_attestation",
    "add_attestation",
    "verify_all_attestations",
    "Outcome",
    "DomainReputation",
    "ReputationRecord",
    "ExportedReputation",
    "ReputationEngine",
    "score",
    "domain_score",
    "export",
    "claim_confidence",
    "ClaimFilter",
    "ClaimStore",
    "MemoryStore",
    "IPFSStore",
]
