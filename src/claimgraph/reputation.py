"""
claimgraph.reputation — Witness reputation and claim confidence.

The engine keeps one ReputationRecord per witness, fed by externally reported
outcomes (attested / agreed / disputed), globally and per domain. Scores are
bounded to [0, 1]; low-volume witnesses are pulled toward the neutral 0.5.

Scoring policy (fixed; changing any coefficient breaks previously computed
scores):

    accuracy   = agreed / total
    penalty    = disputed / total * 0.5
    longevity  = min(hours_since_first_seen / 8760, 0.1)
    volume     = min(total / 100, 1.0)
    score      = (accuracy - penalty + longevity) * volume + 0.5 * (1 - volume)

    domain     = (accuracy_d - penalty_d) * vd + score * (1 - vd),  vd = min(total_d / 50, 1)

    confidence = Σ(s·w)/Σw + min(n / 5, 0.2),  w = 0.5 + s * 0.5
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from claimgraph.claim import Claim
from claimgraph.errors import InvalidInput

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
DISPUTE_WEIGHT = 0.5
LONGEVITY_CAP = 0.1
HOURS_PER_YEAR = 24 * 365
VOLUME_SATURATION = 100
DOMAIN_VOLUME_SATURATION = 50
WITNESS_BONUS_DIVISOR = 5
WITNESS_BONUS_CAP = 0.2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class Outcome(Enum):
    """Externally reported witness outcomes."""
    ATTESTED = "attested"
    AGREED = "agreed"
    DISPUTED = "disputed"


# ─── Records ───────────────────────────────────────────────────────

@dataclass
class DomainReputation:
    domain: str
    total_claims: int = 0
    agreed_claims: int = 0
    disputed_claims: int = 0

    def copy(self) -> "DomainReputation":
        return DomainReputation(self.domain, self.total_claims,
                                self.agreed_claims, self.disputed_claims)


@dataclass
class ReputationRecord:
    """Outcome counters for one witness."""
    witness_id: str
    total_claims: int = 0
    agreed_claims: int = 0
    disputed_claims: int = 0
    domains: dict[str, DomainReputation] = field(default_factory=dict)
    first_seen: datetime = field(default_factory=_utcnow)
    last_seen: datetime = field(default_factory=_utcnow)

    def copy(self) -> "ReputationRecord":
        """Detached copy, including the per-domain map."""
        return ReputationRecord(
            witness_id=self.witness_id,
            total_claims=self.total_claims,
            agreed_claims=self.agreed_claims,
            disputed_claims=self.disputed_claims,
            domains={k: v.copy() for k, v in self.domains.items()},
            first_seen=self.first_seen,
            last_seen=self.last_seen,
        )

    def score(self, now: Optional[datetime] = None) -> float:
        return score(self, now=now)

    def domain_score(self, domain: str, now: Optional[datetime] = None) -> float:
        return domain_score(self, domain, now=now)

    def export(self, now: Optional[datetime] = None) -> "ExportedReputation":
        return export(self, now=now)

    def __str__(self):
        return (f"Witness {self.witness_id[:16]}...: score={self.score():.2f} "
                f"claims={self.total_claims} agreed={self.agreed_claims} "
                f"disputed={self.disputed_claims}")


@dataclass
class ExportedDomain:
    total_claims: int
    agreed_claims: int
    disputed_claims: int
    score: float

    def to_dict(self) -> dict:
        return {
            "total_claims": self.total_claims,
            "agreed_claims": self.agreed_claims,
            "disputed_claims": self.disputed_claims,
            "score": self.score,
        }


@dataclass
class ExportedReputation:
    """Flattened, portable snapshot of a reputation record."""
    witness_id: str
    total_claims: int
    agreed_claims: int
    disputed_claims: int
    score: float
    domains: dict[str, ExportedDomain]
    first_seen: datetime
    last_seen: datetime

    def to_dict(self) -> dict:
        return {
            "witness_id": self.witness_id,
            "total_claims": self.total_claims,
            "agreed_claims": self.agreed_claims,
            "disputed_claims": self.disputed_claims,
            "score": self.score,
            "domains": {k: v.to_dict() for k, v in self.domains.items()},
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
        }


# ─── Scoring ───────────────────────────────────────────────────────

def score(record: ReputationRecord, now: Optional[datetime] = None) -> float:
    """Global reputation score in [0, 1]."""
    if record.total_claims == 0:
        return NEUTRAL_SCORE

    total = float(record.total_claims)
    accuracy = record.agreed_claims / total
    penalty = (record.disputed_claims / total) * DISPUTE_WEIGHT

    age = (now or _utcnow()) - record.first_seen
    longevity_bonus = min(age.total_seconds() / 3600 / HOURS_PER_YEAR, LONGEVITY_CAP)

    volume_weight = min(total / VOLUME_SATURATION, 1.0)

    raw = accuracy - penalty + longevity_bonus
    return _clamp(raw * volume_weight + NEUTRAL_SCORE * (1 - volume_weight))


def domain_score(record: ReputationRecord, domain: str,
                 now: Optional[datetime] = None) -> float:
    """Per-domain score, leaning on the global score at low domain volume."""
    rep = record.domains.get(domain) if domain else None
    if rep is None or rep.total_claims == 0:
        return score(record, now=now)

    total = float(rep.total_claims)
    accuracy = rep.agreed_claims / total
    penalty = (rep.disputed_claims / total) * DISPUTE_WEIGHT
    volume_weight = min(total / DOMAIN_VOLUME_SATURATION, 1.0)

    blended = (accuracy - penalty) * volume_weight + score(record, now=now) * (1 - volume_weight)
    return _clamp(blended)


def export(record: ReputationRecord, now: Optional[datetime] = None) -> ExportedReputation:
    now = now or _utcnow()
    return ExportedReputation(
        witness_id=record.witness_id,
        total_claims=record.total_claims,
        agreed_claims=record.agreed_claims,
        disputed_claims=record.disputed_claims,
        score=score(record, now=now),
        domains={
            name: ExportedDomain(
                total_claims=rep.total_claims,
                agreed_claims=rep.agreed_claims,
                disputed_claims=rep.disputed_claims,
                score=domain_score(record, name, now=now),
            )
            for name, rep in record.domains.items()
        },
        first_seen=record.first_seen,
        last_seen=record.last_seen,
    )


# ─── Engine ────────────────────────────────────────────────────────

class ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ReputationEngine:
    """
    Per-witness reputation index.

    Construct one per context (process, tenant, test); there is no global
    instance. Readers get detached copies only.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = ReadWriteLock()
        self._records: dict[str, ReputationRecord] = {}

    def now(self) -> datetime:
        return self._clock()

    # -- writers --

    def record_attestation(self, witness_id: str, domain: str = "") -> None:
        """A witness attested to a claim. Creates the record on first sight."""
        with self._lock.write():
            now = self._clock()
            record = self._records.get(witness_id)
            if record is None:
                record = ReputationRecord(witness_id=witness_id, first_seen=now, last_seen=now)
                self._records[witness_id] = record
                logger.debug("New reputation record for %s", witness_id[:16])
            record.total_claims += 1
            record.last_seen = now
            if domain:
                rep = record.domains.get(domain)
                if rep is None:
                    rep = record.domains[domain] = DomainReputation(domain=domain)
                rep.total_claims += 1

    def record_agreement(self, witness_id: str, domain: str = "") -> None:
        """Witness agreed with consensus. No-op for unknown witnesses."""
        with self._lock.write():
            record = self._records.get(witness_id)
            if record is None:
                logger.debug("Ignoring agreement for unknown witness %s", witness_id[:16])
                return
            record.agreed_claims += 1
            if domain and domain in record.domains:
                record.domains[domain].agreed_claims += 1

    def record_dispute(self, witness_id: str, domain: str = "") -> None:
        """Witness was disputed. No-op for unknown witnesses."""
        with self._lock.write():
            record = self._records.get(witness_id)
            if record is None:
                logger.debug("Ignoring dispute for unknown witness %s", witness_id[:16])
                return
            record.disputed_claims += 1
            if domain and domain in record.domains:
                record.domains[domain].disputed_claims += 1

    def record(self, outcome: Union[Outcome, str], witness_id: str, domain: str = "") -> None:
        try:
            outcome = Outcome(outcome)
        except ValueError as e:
            raise InvalidInput(f"unknown outcome: {outcome!r}") from e
        {
            Outcome.ATTESTED: self.record_attestation,
            Outcome.AGREED: self.record_agreement,
            Outcome.DISPUTED: self.record_dispute,
        }[outcome](witness_id, domain)

    def replay(self, events: Iterable[dict]) -> int:
        """Apply a ledger of {witness_id, domain, outcome} events in order."""
        count = 0
        for event in events:
            try:
                self.record(event["outcome"], event["witness_id"], event.get("domain", ""))
            except (KeyError, TypeError) as e:
                raise InvalidInput(f"malformed ledger event {count}: {e}") from e
            count += 1
        logger.info("Replayed %d reputation events", count)
        return count

    # -- readers --

    def get_record(self, witness_id: str) -> Optional[ReputationRecord]:
        """Detached copy of a witness's record, or None if never seen."""
        with self._lock.read():
            record = self._records.get(witness_id)
            return record.copy() if record is not None else None

    def witness_ids(self) -> list[str]:
        with self._lock.read():
            return list(self._records)

    def __len__(self):
        with self._lock.read():
            return len(self._records)

    def score(self, record: ReputationRecord) -> float:
        return score(record, now=self._clock())

    def domain_score(self, record: ReputationRecord, domain: str) -> float:
        return domain_score(record, domain, now=self._clock())

    def export(self, record: ReputationRecord) -> ExportedReputation:
        return export(record, now=self._clock())

    def export_witness(self, witness_id: str) -> Optional[ExportedReputation]:
        record = self.get_record(witness_id)
        return self.export(record) if record is not None else None

    def witness_score(self, witness_id: str, domain: str = "") -> float:
        """Score of a witness by id; unseen witnesses are neutral."""
        record = self.get_record(witness_id)
        if record is None:
            return NEUTRAL_SCORE
        return self.domain_score(record, domain)


def claim_confidence(claim: Claim, engine: ReputationEngine) -> float:
    """Aggregate confidence in a claim from its witnesses' reputations."""
    if claim is None:
        raise InvalidInput("claim cannot be None")
    if not claim.witnesses:
        return 0.0

    total_weight = 0.0
    weighted_sum = 0.0
    for att in claim.witnesses:
        s = engine.witness_score(att.witness_id, claim.domain)
        weight = 0.5 + s * 0.5
        weighted_sum += s * weight
        total_weight += weight

    witness_bonus = min(len(claim.witnesses) / WITNESS_BONUS_DIVISOR, WITNESS_BONUS_CAP)
    return _clamp(weighted_sum / total_weight + witness_bonus)


__all__ = [
    "Outcome",
    "DomainReputation",
    "ReputationRecord",
    "ExportedDomain",
    "ExportedReputation",
    "ReadWriteLock",
    "ReputationEngine",
    "score",
    "domain_score",
    "export",
    "claim_confidence",
    "NEUTRAL_SCORE",
]
