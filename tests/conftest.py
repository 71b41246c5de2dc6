"""
Shared fixtures.

Every test runs against the in-memory ledger store and a FixedClock that
only moves when a test advances it. No network access.
"""

import random
from datetime import datetime, timezone

import pytest

from rewards_engine.audit import AuditLogger
from rewards_engine.config import EngineSettings
from rewards_engine.orchestrator import GamificationService
from rewards_engine.services import (
    FixedClock,
    GoalTracker,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LevelCalculator,
    RewardDrawer,
    RewardLedger,
    StreakTracker,
)


START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def levels(store, clock):
    return LevelCalculator(store, clock)


@pytest.fixture
def drawer(store, clock, levels, rng):
    return RewardDrawer(store, clock, levels, rng=rng)


@pytest.fixture
def streaks(store, clock, levels):
    return StreakTracker(store, clock, levels)


@pytest.fixture
def goals(store, clock, levels):
    return GoalTracker(store, clock, levels)


@pytest.fixture
def ledger(store, clock, levels):
    return RewardLedger(store, clock, levels)


@pytest.fixture
def settings():
    return EngineSettings(
        timezone="UTC",
        storage_backend="memory",
        conflict_retry_attempts=3,
    )


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def service(store, clock, rng, audit_storage, settings):
    return GamificationService(
        store=store,
        clock=clock,
        rng=rng,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
    )
