"""
claimgraph.storage — Claim store backends.

Backends: MemoryStore, IPFSStore

Listing and filtering go through a local secondary index that only covers
claims this process has put or fetched. It is not a durable global index.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from claimgraph.claim import Claim, compute_id, verify_id
from claimgraph.config import DEFAULT_IPFS_URL, DEFAULT_TIMEOUT
from claimgraph.errors import (
    ClaimNotFound,
    IDMismatch,
    InvalidInput,
    StoreError,
)

logger = logging.getLogger(__name__)


@dataclass
class ClaimFilter:
    """List criteria. Empty fields match everything; all conditions must hold."""
    domain: str = ""
    witness_id: str = ""
    subject: str = ""
    limit: int = 0
    offset: int = 0

    def matches(self, claim: Claim) -> bool:
        if self.domain and claim.statement.domain != self.domain:
            return False
        if self.subject and claim.statement.subject != self.subject:
            return False
        if self.witness_id and self.witness_id not in claim.witness_ids:
            return False
        return True

    def page(self, ids: list[str]) -> list[str]:
        if self.offset > 0:
            ids = ids[self.offset:]
        if self.limit > 0:
            ids = ids[:self.limit]
        return ids


# ─── Abstract Store ────────────────────────────────────────────────

class ClaimStore(ABC):
    """Persistence interface for claims."""

    @abstractmethod
    def put(self, claim: Claim) -> str: ...

    @abstractmethod
    def get(self, claim_id: str) -> Claim: ...

    @abstractmethod
    def has(self, claim_id: str) -> bool: ...

    @abstractmethod
    def list(self, filter: Optional[ClaimFilter] = None) -> list[str]: ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _prepare(claim: Claim) -> Claim:
    """Fill in a missing id, reject a wrong one."""
    if claim is None:
        raise InvalidInput("claim cannot be None")
    if not claim.id:
        claim.id = compute_id(claim)
    else:
        verify_id(claim)
    return claim


class _ClaimIndex:
    """Claims by id plus witness/domain/subject lookups. Not thread-safe on its own."""

    def __init__(self):
        self.claims: dict[str, Claim] = {}
        self._by_witness: dict[str, dict[str, None]] = {}
        self._by_domain: dict[str, dict[str, None]] = {}
        self._by_subject: dict[str, dict[str, None]] = {}

    def _keys(self, claim: Claim):
        yield self._by_domain, claim.statement.domain
        yield self._by_subject, claim.statement.subject
        for wid in claim.witness_ids:
            yield self._by_witness, wid

    def add(self, claim: Claim) -> None:
        previous = self.claims.get(claim.id)
        if previous is not None:
            for idx, key in self._keys(previous):
                idx.get(key, {}).pop(claim.id, None)
        self.claims[claim.id] = claim
        for idx, key in self._keys(claim):
            if key:
                idx.setdefault(key, {})[claim.id] = None

    def select(self, filter: Optional[ClaimFilter]) -> list[str]:
        if filter is None:
            return list(self.claims)
        if filter.witness_id:
            candidates = list(self._by_witness.get(filter.witness_id, {}))
        elif filter.domain:
            candidates = list(self._by_domain.get(filter.domain, {}))
        elif filter.subject:
            candidates = list(self._by_subject.get(filter.subject, {}))
        else:
            candidates = list(self.claims)
        results = [cid for cid in candidates
                   if cid in self.claims and filter.matches(self.claims[cid])]
        return filter.page(results)


# ─── Memory Store ──────────────────────────────────────────────────

class MemoryStore(ClaimStore):
    """In-process store (default, for testing). Copies on the way in and out."""

    def __init__(self):
        self._lock = threading.Lock()
        self._index = _ClaimIndex()

    def put(self, claim: Claim) -> str:
        claim = _prepare(claim)
        with self._lock:
            self._index.add(claim.copy())
        return claim.id

    def get(self, claim_id: str) -> Claim:
        with self._lock:
            claim = self._index.claims.get(claim_id)
        if claim is None:
            raise ClaimNotFound(claim_id)
        return claim.copy()

    def has(self, claim_id: str) -> bool:
        with self._lock:
            return claim_id in self._index.claims

    def list(self, filter: Optional[ClaimFilter] = None) -> list[str]:
        with self._lock:
            return self._index.select(filter)


# ─── IPFS Store ────────────────────────────────────────────────────

class IPFSStore(ClaimStore):
    """
    Claims as JSON documents in IPFS via the HTTP API.

    The IPFS content hash of a document differs from the claim id, so this
    store remembers the mapping for claims it has written. has() and list()
    only see claims that went through this instance.
    """

    def __init__(self, api_url: str = DEFAULT_IPFS_URL, timeout: float = DEFAULT_TIMEOUT,
                 client: Optional[httpx.Client] = None):
        self.api_url = api_url.rstrip("/")
        self._owns_client = client is None
        self._http = client or httpx.Client(base_url=self.api_url, timeout=timeout)
        self._lock = threading.Lock()
        self._index = _ClaimIndex()
        self._ipfs_hashes: dict[str, str] = {}
        try:
            self._ping()
        except StoreError:
            self.close()
            raise

    def _post(self, path: str, **kwargs) -> httpx.Response:
        try:
            return self._http.post(f"{self.api_url}/api/v0/{path}", **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"IPFS request {path} failed: {e}") from e

    def _ping(self) -> None:
        resp = self._post("id")
        if resp.status_code != 200:
            raise StoreError(f"IPFS returned status {resp.status_code}")
        logger.debug("Connected to IPFS at %s", self.api_url)

    def put(self, claim: Claim) -> str:
        claim = _prepare(claim)
        payload = json.dumps(claim.to_dict()).encode("utf-8")
        resp = self._post("add", files={"file": ("claim.json", payload, "application/json")})
        if resp.status_code != 200:
            raise StoreError(f"IPFS add failed: {resp.text}")
        try:
            ipfs_hash = resp.json()["Hash"]
        except (ValueError, KeyError) as e:
            raise StoreError(f"failed to decode IPFS response: {e}") from e

        with self._lock:
            self._ipfs_hashes[claim.id] = ipfs_hash
            self._index.add(claim.copy())
        logger.info("Stored claim %s as %s", claim.id, ipfs_hash)
        return claim.id

    def get(self, claim_id: str) -> Claim:
        if not claim_id:
            raise InvalidInput("claim id cannot be empty")
        with self._lock:
            cached = self._index.claims.get(claim_id)
            ipfs_hash = self._ipfs_hashes.get(claim_id, claim_id)
        if cached is not None:
            return cached.copy()

        resp = self._post("cat", params={"arg": ipfs_hash})
        if resp.status_code == 404 or (resp.status_code != 200 and "not found" in resp.text.lower()):
            raise ClaimNotFound(claim_id)
        if resp.status_code != 200:
            raise StoreError(f"IPFS cat failed: {resp.text}")
        try:
            data = resp.json()
        except ValueError as e:
            raise StoreError(f"failed to decode claim {claim_id}: {e}") from e

        claim = Claim.from_dict(data)
        if not claim.id:
            claim.id = claim_id
        try:
            verify_id(claim)
        except IDMismatch:
            logger.warning("Claim fetched as %s does not match its content", claim_id)
            raise

        with self._lock:
            self._ipfs_hashes.setdefault(claim.id, ipfs_hash)
            self._index.add(claim.copy())
        return claim

    def has(self, claim_id: str) -> bool:
        with self._lock:
            return claim_id in self._index.claims

    def list(self, filter: Optional[ClaimFilter] = None) -> list[str]:
        with self._lock:
            return self._index.select(filter)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()


__all__ = [
    "ClaimFilter",
    "ClaimStore",
    "MemoryStore",
    "IPFSStore",
]
