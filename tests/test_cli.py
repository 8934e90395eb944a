"""Tests for the claimgraph CLI."""

import json
import logging

import pytest

import claimgraph.cli as cli
from claimgraph.claim import Claim
from claimgraph.errors import StoreError
from claimgraph.log import LOGGER_NAME
from claimgraph.storage import MemoryStore
from claimgraph.witness import generate_witness, load_witness


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers main() bound to this test's captured stderr."""
    logger = logging.getLogger(LOGGER_NAME)
    saved = logger.handlers[:]
    yield
    logger.handlers[:] = saved


@pytest.fixture
def identity(tmp_path):
    return str(tmp_path / "home" / "identity.json")


@pytest.fixture
def offline(monkeypatch):
    """No IPFS: every store open fails."""
    def fail(args):
        raise StoreError("IPFS unreachable")
    monkeypatch.setattr(cli, "_open_store", fail)


@pytest.fixture
def store(monkeypatch):
    """Route every store open to one shared in-memory store."""
    shared = MemoryStore()
    monkeypatch.setattr(cli, "_open_store", lambda args: shared)
    return shared


def run(*argv, identity=None):
    prefix = ["--json"]
    if identity:
        prefix += ["--identity", identity]
    return cli.main(prefix + list(argv))


def create_claim_file(tmp_path, identity, **kw):
    path = str(tmp_path / "claim.json")
    run("claim", "create", "--subject", kw.get("subject", "https://example.com"),
        "--predicate", "contains", "--object", "hello world", "--domain", "web",
        "--evidence", "ev2", "ev1", "-o", path, identity=identity)
    return path


def write_ledger(tmp_path, events):
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps(events))
    return str(path)


# ─── Parser ────────────────────────────────────────────────────────

class TestParser:
    def test_no_command_exits(self, capsys):
        with pytest.raises(SystemExit):
            cli.main([])

    def test_defaults_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLAIMGRAPH_IPFS_URL", "http://ipfs.example:5001")
        monkeypatch.setenv("CLAIMGRAPH_HOME", str(tmp_path))
        monkeypatch.delenv("CLAIMGRAPH_IDENTITY", raising=False)
        args = cli.build_parser().parse_args(["identity", "show"])
        assert args.ipfs == "http://ipfs.example:5001"
        assert args.identity == str(tmp_path / "identity.json")

    def test_flags_override_env(self, monkeypatch):
        monkeypatch.setenv("CLAIMGRAPH_IPFS_URL", "http://ipfs.example:5001")
        args = cli.build_parser().parse_args(["--ipfs", "http://other:5001", "identity", "show"])
        assert args.ipfs == "http://other:5001"


# ─── identity ──────────────────────────────────────────────────────

class TestIdentity:
    def test_create_and_show(self, identity, capsys):
        created = run("identity", "create", identity=identity)
        shown = run("identity", "show", identity=identity)
        assert created["id"] == shown["id"]
        assert load_witness(identity).id == created["id"]

    def test_create_refuses_overwrite(self, identity, capsys):
        run("identity", "create", identity=identity)
        with pytest.raises(SystemExit):
            run("identity", "create", identity=identity)

    def test_create_force(self, identity, capsys):
        first = run("identity", "create", identity=identity)
        second = run("identity", "create", "--force", identity=identity)
        assert first["id"] != second["id"]

    def test_show_missing(self, identity, capsys):
        with pytest.raises(SystemExit):
            run("identity", "show", identity=identity)
        assert "identity create" in capsys.readouterr().err

    def test_human_output(self, identity, capsys):
        cli.main(["--identity", identity, "identity", "create"])
        out = capsys.readouterr().out
        assert "Created witness identity" in out


# ─── claim ─────────────────────────────────────────────────────────

class TestClaim:
    def test_create_offline_writes_file(self, tmp_path, identity, offline, capsys):
        path = create_claim_file(tmp_path, identity)
        with open(path) as f:
            claim = Claim.from_dict(json.load(f))
        assert claim.evidence == ["ev2", "ev1"]
        assert claim.statement.domain == "web"
        assert "not stored" in capsys.readouterr().err

    def test_create_stores(self, store, capsys):
        result = run("claim", "create", "--subject", "s", "--predicate", "p", "--object", "o")
        assert result["stored"]
        assert store.has(result["id"])

    def test_get(self, store, capsys):
        created = run("claim", "create", "--subject", "s", "--predicate", "p", "--object", "o")
        capsys.readouterr()
        result = run("claim", "get", created["id"])
        assert result["id"] == created["id"]
        assert json.loads(capsys.readouterr().out)["id"] == created["id"]

    def test_get_missing(self, store, capsys):
        with pytest.raises(SystemExit):
            run("claim", "get", "bafkreimissing")
        assert "not found" in capsys.readouterr().err

    def test_verify_file(self, tmp_path, identity, offline, capsys):
        path = create_claim_file(tmp_path, identity)
        result = run("claim", "verify", path)
        assert result["valid"]
        assert result["attestations"] == 0

    def test_verify_tampered_file(self, tmp_path, identity, offline, capsys):
        path = create_claim_file(tmp_path, identity)
        with open(path) as f:
            doc = json.load(f)
        doc["statement"]["object"] = "tampered"
        with open(path, "w") as f:
            json.dump(doc, f)
        result = run("claim", "verify", path)
        assert not result["valid"]
        assert not result["id_valid"]


# ─── witness ───────────────────────────────────────────────────────

class TestWitness:
    def test_attest_file(self, tmp_path, identity, offline, capsys):
        created = run("identity", "create", identity=identity)
        path = create_claim_file(tmp_path, identity)
        result = run("witness", "attest", path, identity=identity)
        assert result["witness_id"] == created["id"]
        assert result["witnesses"] == 1
        verified = run("claim", "verify", path)
        assert verified["valid"]
        assert verified["attestations"] == 1

    def test_attest_twice_fails(self, tmp_path, identity, offline, capsys):
        run("identity", "create", identity=identity)
        path = create_claim_file(tmp_path, identity)
        run("witness", "attest", path, identity=identity)
        with pytest.raises(SystemExit):
            run("witness", "attest", path, identity=identity)
        assert "already attested" in capsys.readouterr().err

    def test_attest_stored_claim(self, store, identity, capsys):
        run("identity", "create", identity=identity)
        created = run("claim", "create", "--subject", "s", "--predicate", "p", "--object", "o")
        run("witness", "attest", created["id"], identity=identity)
        assert len(store.get(created["id"]).witnesses) == 1

    def test_forged_attestation_detected(self, tmp_path, identity, offline, capsys):
        run("identity", "create", identity=identity)
        path = create_claim_file(tmp_path, identity)
        run("witness", "attest", path, identity=identity)
        with open(path) as f:
            doc = json.load(f)
        sig = bytearray.fromhex(doc["witnesses"][0]["signature"])
        sig[0] ^= 0xFF
        doc["witnesses"][0]["signature"] = sig.hex()
        with open(path, "w") as f:
            json.dump(doc, f)
        result = run("claim", "verify", path)
        assert result["id_valid"]
        assert not result["attestations_valid"]
        assert "attestation 0" in result["attestation_error"]

    def test_reputation(self, tmp_path, capsys):
        wid = generate_witness().id
        events = [{"witness_id": wid, "domain": "web", "outcome": "attested"},
                  {"witness_id": wid, "domain": "web", "outcome": "agreed"}]
        result = run("witness", "reputation", wid, "--ledger", write_ledger(tmp_path, events))
        assert result["known"]
        assert result["total_claims"] == 1
        assert result["domains"]["web"]["agreed_claims"] == 1
        assert 0.5 <= result["score"] <= 1.0

    def test_reputation_unknown(self, tmp_path, capsys):
        result = run("witness", "reputation", "ab" * 32, "--ledger", write_ledger(tmp_path, []))
        assert not result["known"]
        assert result["score"] == 0.5

    def test_confidence(self, tmp_path, identity, offline, capsys):
        created = run("identity", "create", identity=identity)
        path = create_claim_file(tmp_path, identity)
        run("witness", "attest", path, identity=identity)
        events = [{"witness_id": created["id"], "domain": "web", "outcome": "attested"}] * 100
        events += [{"witness_id": created["id"], "domain": "web", "outcome": "agreed"}] * 100
        result = run("claim", "confidence", path, "--ledger", write_ledger(tmp_path, events))
        assert result["witnesses"] == 1
        assert result["confidence"] == 1.0

    def test_confidence_no_witnesses(self, tmp_path, identity, offline, capsys):
        path = create_claim_file(tmp_path, identity)
        result = run("claim", "confidence", path, "--ledger", write_ledger(tmp_path, []))
        assert result["confidence"] == 0.0

    def test_bad_ledger(self, tmp_path, capsys):
        path = write_ledger(tmp_path, [{"witness_id": "w", "outcome": "maybe"}])
        with pytest.raises(SystemExit):
            run("witness", "reputation", "w", "--ledger", path)
