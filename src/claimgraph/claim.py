"""
claimgraph.claim — Claims, statements, attestations and content addressing.

A claim's id is a CIDv1 (raw codec, sha2-256 multihash) over a canonical
byte encoding of its immutable content:

    subject | predicate | object | domain        (u32 BE length + UTF-8)
    count(evidence) | sorted(evidence)...        (u32 BE count, then strings)
    time_event                                   (u32 BE length + UTF-8)
    created                                      (i64 BE Unix nanoseconds)

Witnesses and metadata never take part in the hash, so a claim keeps its id
while attestations accumulate.
"""

import base64
import copy
import hashlib
import logging
import struct
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from claimgraph.errors import IDMismatch, InvalidInput, SerializationFailure

logger = logging.getLogger(__name__)

# CIDv1 prefix: version 1, raw codec, sha2-256 multihash of 32 bytes
CID_VERSION = 0x01
CODEC_RAW = 0x55
MULTIHASH_SHA2_256 = 0x12
SHA2_256_LENGTH = 0x20
MULTIBASE_BASE32 = "b"


def now_ns() -> int:
    """Current UTC time as Unix nanoseconds."""
    return time.time_ns()


def to_unix_nanos(dt: datetime) -> int:
    """Convert an aware datetime to Unix nanoseconds (naive means UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def from_unix_nanos(ns: int) -> datetime:
    """Unix nanoseconds to a UTC datetime (truncated to microseconds)."""
    return datetime.fromtimestamp(ns // 1_000_000_000, tz=timezone.utc).replace(
        microsecond=(ns % 1_000_000_000) // 1_000
    )


# ─── Data model ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Statement:
    """What is being claimed. All four fields are opaque strings."""
    subject: str
    predicate: str
    object: str
    domain: str = ""

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object,
            "domain": self.domain,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Statement":
        try:
            return cls(
                subject=data["subject"],
                predicate=data["predicate"],
                object=data["object"],
                domain=data.get("domain", ""),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise InvalidInput(f"malformed statement: {e}") from e


@dataclass(frozen=True)
class Attestation:
    """A witness's signature over a claim id."""
    witness_id: str
    signature: bytes
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "witness_id": self.witness_id,
            "signature": self.signature.hex(),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Attestation":
        try:
            timestamp = datetime.fromisoformat(data["timestamp"])
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            return cls(
                witness_id=data["witness_id"],
                signature=bytes.fromhex(data["signature"]),
                timestamp=timestamp,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"malformed attestation: {e}") from e

    def __repr__(self):
        return f"Attestation({self.witness_id[:16]}... at {self.timestamp.isoformat()})"


@dataclass
class Claim:
    """A statement plus evidence, time anchor and witness attestations."""
    statement: Statement
    evidence: list[str] = field(default_factory=list)
    time_event: str = ""
    created_ns: int = field(default_factory=now_ns)
    id: str = ""
    witnesses: list[Attestation] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def created(self) -> datetime:
        return from_unix_nanos(self.created_ns)

    @property
    def domain(self) -> str:
        return self.statement.domain if self.statement else ""

    @property
    def witness_ids(self) -> list[str]:
        return [a.witness_id for a in self.witnesses]

    def copy(self) -> "Claim":
        """Deep copy; attestations are immutable and shared."""
        return Claim(
            statement=self.statement,
            evidence=list(self.evidence),
            time_event=self.time_event,
            created_ns=self.created_ns,
            id=self.id,
            witnesses=list(self.witnesses),
            metadata=copy.deepcopy(self.metadata),
        )

    def to_dict(self) -> dict:
        """Serialize to the JSON document exchanged with claim stores."""
        return {
            "id": self.id,
            "statement": self.statement.to_dict(),
            "evidence": list(self.evidence),
            "time_event": self.time_event,
            "witnesses": [a.to_dict() for a in self.witnesses],
            "created": self.created_ns,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Claim":
        """Deserialize. The id is taken as given; call verify_id() before trusting it."""
        if not isinstance(data, dict):
            raise InvalidInput("claim document must be an object")
        if "statement" not in data or "created" not in data:
            raise InvalidInput("claim document requires 'statement' and 'created'")
        try:
            created_ns = int(data["created"])
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"malformed created timestamp: {e}") from e
        return cls(
            statement=Statement.from_dict(data["statement"]),
            evidence=list(data.get("evidence") or []),
            time_event=data.get("time_event") or "",
            created_ns=created_ns,
            id=data.get("id") or "",
            witnesses=[Attestation.from_dict(a) for a in data.get("witnesses") or []],
            metadata=dict(data.get("metadata") or {}),
        )

    def __repr__(self):
        s = self.statement
        return (f"Claim({self.id[:16]}... {s.subject} {s.predicate} {s.object!r}"
                f" witnesses={len(self.witnesses)})")


# ─── Canonical encoding ────────────────────────────────────────────

def _encode_string(value) -> bytes:
    if not isinstance(value, str):
        raise SerializationFailure(f"expected str, got {type(value).__name__}")
    try:
        raw = value.encode("utf-8")
        return struct.pack(">I", len(raw)) + raw
    except (UnicodeEncodeError, struct.error) as e:
        raise SerializationFailure(f"cannot encode {value[:32]!r}: {e}") from e


def canonical_bytes(claim: Claim) -> bytes:
    """Deterministic byte representation of a claim's immutable content."""
    if claim is None:
        raise InvalidInput("claim cannot be None")
    if claim.statement is None:
        raise InvalidInput("claim statement cannot be None")

    s = claim.statement
    parts = [_encode_string(v) for v in (s.subject, s.predicate, s.object, s.domain)]

    evidence = claim.evidence or []
    if isinstance(evidence, str):
        raise SerializationFailure("evidence must be a sequence of strings")
    encoded = sorted(_encode_string(e)[4:] for e in evidence)
    try:
        parts.append(struct.pack(">I", len(encoded)))
    except struct.error as e:
        raise SerializationFailure(f"too many evidence entries: {e}") from e
    parts.extend(struct.pack(">I", len(raw)) + raw for raw in encoded)

    parts.append(_encode_string(claim.time_event or ""))

    if not isinstance(claim.created_ns, int) or isinstance(claim.created_ns, bool):
        raise SerializationFailure("created timestamp must be integer nanoseconds")
    try:
        parts.append(struct.pack(">q", claim.created_ns))
    except struct.error as e:
        raise SerializationFailure(f"created timestamp out of range: {e}") from e

    return b"".join(parts)


def encode_cid(digest: bytes) -> str:
    """Wrap a sha2-256 digest as a base32 CIDv1 string."""
    raw = bytes([CID_VERSION, CODEC_RAW, MULTIHASH_SHA2_256, SHA2_256_LENGTH]) + digest
    return MULTIBASE_BASE32 + base64.b32encode(raw).decode("ascii").lower().rstrip("=")


def compute_id(claim: Claim) -> str:
    """Content-addressed identifier of a claim."""
    data = canonical_bytes(claim)
    cid = encode_cid(hashlib.sha256(data).digest())
    logger.debug("Computed claim id %s over %d bytes", cid, len(data))
    return cid


def verify_id(claim: Claim) -> None:
    """Raise IDMismatch unless the claim hashes to its own id."""
    computed = compute_id(claim)
    if claim.id != computed:
        raise IDMismatch(expected=computed, actual=claim.id)


def new_claim(statement: Statement, evidence: Optional[list[str]] = None,
              time_event: str = "") -> Claim:
    """Create a claim stamped with the current time and its computed id."""
    if statement is None:
        raise InvalidInput("statement cannot be None")
    claim = Claim(
        statement=statement,
        evidence=list(evidence or []),
        time_event=time_event or "",
        created_ns=now_ns(),
    )
    claim.id = compute_id(claim)
    return claim


__all__ = [
    "Statement",
    "Attestation",
    "Claim",
    "canonical_bytes",
    "encode_cid",
    "compute_id",
    "verify_id",
    "new_claim",
    "now_ns",
    "to_unix_nanos",
    "from_unix_nanos",
]
