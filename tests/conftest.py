"""Shared fixtures for claimgraph tests."""

from datetime import datetime, timezone

import pytest

from claimgraph.claim import Statement, new_claim
from claimgraph.reputation import ReputationEngine
from claimgraph.witness import generate_witness

FIXED_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def alice():
    return generate_witness()


@pytest.fixture
def bob():
    return generate_witness()


@pytest.fixture
def statement():
    return Statement(
        subject="https://example.com",
        predicate="contains",
        object="hello world",
        domain="web",
    )


@pytest.fixture
def claim(statement):
    return new_claim(statement, ["evidence1", "evidence2"], "time-event-123")


@pytest.fixture
def engine():
    """Engine with a frozen clock so longevity contributes nothing."""
    return ReputationEngine(clock=lambda: FIXED_NOW)
