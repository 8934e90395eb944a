#!/usr/bin/env python3
"""claimgraph quickstart — claim, attestations, reputation and confidence.

Run:  python3 examples/quickstart.py
"""
from claimgraph import (
    MemoryStore, ReputationEngine, Statement,
    add_attestation, claim_confidence, generate_witness, new_claim,
    verify_all_attestations, verify_id,
)

# 1. Create witnesses (each gets a unique Ed25519 keypair)
alice = generate_witness()
bob = generate_witness()
print(f"👤 Alice: {alice.id[:24]}…")
print(f"👤 Bob:   {bob.id[:24]}…")

# 2. Make a claim; its id is the CID of its canonical bytes
claim = new_claim(
    Statement("https://example.com", "contains", "hello world", "web"),
    evidence=["snapshot-2024-01-01"],
)
verify_id(claim)
print(f"\n📄 Claim: {claim.id}")

# 3. Both witnesses attest; attestations never change the id
add_attestation(claim, alice.attest(claim))
add_attestation(claim, bob.attest(claim))
verify_all_attestations(claim)
print(f"✍️  Attested by {len(claim.witnesses)} witnesses")

# 4. Store it
store = MemoryStore()
store.put(claim)
print(f"💾 Stored: {store.has(claim.id)}")

# 5. Feed outcomes into the reputation engine
engine = ReputationEngine()
for _ in range(20):
    engine.record_attestation(alice.id, "web")
    engine.record_agreement(alice.id, "web")
    engine.record_attestation(bob.id, "web")
engine.record_dispute(bob.id, "web")

for name, w in (("Alice", alice), ("Bob", bob)):
    print(f"📊 {name}'s score: {engine.witness_score(w.id, 'web'):.3f}")
print(f"\n🔒 Claim confidence: {claim_confidence(claim, engine):.3f}")
