"""Tests for claimgraph.claim — canonical encoding and content addressing."""

import hashlib
import struct
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from claimgraph.claim import (
    Attestation,
    Claim,
    Statement,
    canonical_bytes,
    compute_id,
    encode_cid,
    from_unix_nanos,
    new_claim,
    to_unix_nanos,
    verify_id,
)
from claimgraph.errors import IDMismatch, InvalidInput, SerializationFailure, VerificationError

CREATED = 1_700_000_000_123_456_789


def make_claim(**overrides) -> Claim:
    fields = dict(
        statement=Statement("https://example.com", "contains", "hello world", "web"),
        evidence=[],
        time_event="",
        created_ns=CREATED,
    )
    fields.update(overrides)
    return Claim(**fields)


def _lp(s: str) -> bytes:
    raw = s.encode("utf-8")
    return struct.pack(">I", len(raw)) + raw


# ─── Canonical encoding ────────────────────────────────────────────

class TestCanonicalBytes:
    def test_exact_layout(self):
        c = make_claim(evidence=["zeta", "alpha"], time_event="evt-1")
        expected = (
            _lp("https://example.com") + _lp("contains") + _lp("hello world") + _lp("web")
            + struct.pack(">I", 2) + _lp("alpha") + _lp("zeta")
            + _lp("evt-1")
            + struct.pack(">q", CREATED)
        )
        assert canonical_bytes(c) == expected

    def test_empty_fields(self):
        c = Claim(statement=Statement("", "", ""), created_ns=0)
        assert canonical_bytes(c) == b"\x00" * 4 * 4 + b"\x00" * 4 + b"\x00" * 4 + b"\x00" * 8

    def test_utf8_lengths_are_bytes(self):
        c = make_claim(statement=Statement("é", "p", "o"))
        assert canonical_bytes(c).startswith(struct.pack(">I", 2) + "é".encode("utf-8"))

    def test_negative_created(self):
        c = make_claim(created_ns=-1)
        assert canonical_bytes(c).endswith(b"\xff" * 8)

    def test_none_claim(self):
        with pytest.raises(InvalidInput):
            canonical_bytes(None)

    def test_none_statement(self):
        with pytest.raises(InvalidInput):
            canonical_bytes(Claim(statement=None))

    def test_unencodable_string(self):
        c = make_claim(statement=Statement("\ud800", "p", "o"))
        with pytest.raises(SerializationFailure):
            compute_id(c)

    def test_non_string_evidence(self):
        with pytest.raises(SerializationFailure):
            compute_id(make_claim(evidence=["ok", 42]))

    def test_created_out_of_range(self):
        with pytest.raises(SerializationFailure):
            compute_id(make_claim(created_ns=2 ** 63))


# ─── Content identifier ────────────────────────────────────────────

class TestComputeId:
    def test_cid_format(self):
        cid = compute_id(make_claim())
        assert cid.startswith("bafkrei")
        assert len(cid) == 59
        assert cid == cid.lower()

    def test_matches_sha256_of_canonical_bytes(self):
        c = make_claim()
        digest = hashlib.sha256(canonical_bytes(c)).digest()
        assert compute_id(c) == encode_cid(digest)

    def test_identical_content_identical_id(self):
        assert compute_id(make_claim()) == compute_id(make_claim())

    def test_time_event_changes_id(self):
        assert compute_id(make_claim(time_event="a")) != compute_id(make_claim(time_event="b"))

    def test_evidence_order_irrelevant(self):
        a = make_claim(evidence=["x", "y", "z"])
        b = make_claim(evidence=["z", "x", "y"])
        assert compute_id(a) == compute_id(b)

    def test_evidence_not_mutated(self):
        evidence = ["b", "a"]
        compute_id(make_claim(evidence=evidence))
        assert evidence == ["b", "a"]

    def test_witnesses_and_metadata_excluded(self):
        plain = make_claim()
        decorated = make_claim(
            witnesses=[Attestation(witness_id="ab" * 32, signature=b"\x00" * 64)],
            metadata={"source": "test"},
        )
        assert compute_id(plain) == compute_id(decorated)

    @pytest.mark.parametrize("change", [
        {"statement": Statement("https://example.org", "contains", "hello world", "web")},
        {"statement": Statement("https://example.com", "excludes", "hello world", "web")},
        {"statement": Statement("https://example.com", "contains", "goodbye", "web")},
        {"statement": Statement("https://example.com", "contains", "hello world", "news")},
        {"statement": Statement("https://example.com", "contains", "hello world", "")},
        {"evidence": ["e1"]},
        {"time_event": "evt"},
        {"created_ns": CREATED + 1},
    ])
    def test_any_identity_field_changes_id(self, change):
        assert compute_id(make_claim(**change)) != compute_id(make_claim())

    def test_field_boundaries_are_unambiguous(self):
        a = make_claim(statement=Statement("ab", "c", "o"))
        b = make_claim(statement=Statement("a", "bc", "o"))
        assert compute_id(a) != compute_id(b)


# ─── Verification & construction ───────────────────────────────────

class TestNewClaim:
    def test_new_claim(self, statement):
        c = new_claim(statement, ["evidence1", "evidence2"], "time-event-123")
        assert c.id
        assert c.statement == statement
        assert c.evidence == ["evidence1", "evidence2"]
        assert c.time_event == "time-event-123"
        assert c.witnesses == []
        assert c.metadata == {}
        assert c.created.tzinfo == timezone.utc

    def test_new_claim_self_verifies(self, statement):
        verify_id(new_claim(statement))

    def test_new_claim_requires_statement(self):
        with pytest.raises(InvalidInput):
            new_claim(None)

    def test_two_claims_differ_by_created(self, statement):
        a = new_claim(statement)
        b = replace(a, created_ns=a.created_ns + 1)
        assert compute_id(b) != a.id


class TestVerifyId:
    def test_tampered_subject(self, claim):
        claim.statement = replace(claim.statement, subject="tampered")
        with pytest.raises(IDMismatch) as exc:
            verify_id(claim)
        assert isinstance(exc.value, VerificationError)
        assert exc.value.actual == claim.id

    def test_tampered_evidence(self, claim):
        claim.evidence.append("extra")
        with pytest.raises(IDMismatch):
            verify_id(claim)

    def test_metadata_change_still_valid(self, claim):
        claim.metadata["note"] = "added later"
        verify_id(claim)

    def test_empty_id(self, claim):
        claim.id = ""
        with pytest.raises(IDMismatch):
            verify_id(claim)


# ─── Serialization ─────────────────────────────────────────────────

class TestSerialization:
    def test_document_shape(self, claim):
        d = claim.to_dict()
        assert d["id"] == claim.id
        assert d["created"] == claim.created_ns
        assert d["statement"]["domain"] == "web"
        assert d["witnesses"] == []

    def test_from_dict_preserves_identity(self, claim, alice):
        claim.witnesses.append(alice.attest(claim))
        claim.metadata["k"] = "v"
        restored = Claim.from_dict(claim.to_dict())
        verify_id(restored)
        assert restored.witnesses == claim.witnesses
        assert restored.metadata == {"k": "v"}

    def test_from_dict_missing_fields(self):
        with pytest.raises(InvalidInput):
            Claim.from_dict({"statement": {"subject": "s"}})

    def test_from_dict_bad_statement(self):
        with pytest.raises(InvalidInput):
            Claim.from_dict({"statement": {"subject": "s"}, "created": 1})

    def test_from_dict_not_object(self):
        with pytest.raises(InvalidInput):
            Claim.from_dict(["nope"])

    def test_attestation_bad_signature_hex(self):
        with pytest.raises(InvalidInput):
            Attestation.from_dict({"witness_id": "ab", "signature": "zz", "timestamp": "2024-01-01T00:00:00+00:00"})

    def test_copy_is_detached(self, claim):
        clone = claim.copy()
        clone.evidence.append("x")
        clone.metadata["x"] = "y"
        assert "x" not in claim.evidence
        assert claim.metadata == {}


class TestTimestamps:
    def test_round_trip_microseconds(self):
        dt = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
        assert from_unix_nanos(to_unix_nanos(dt)) == dt

    def test_naive_is_utc(self):
        assert to_unix_nanos(datetime(1970, 1, 1, 0, 0, 1)) == 1_000_000_000
