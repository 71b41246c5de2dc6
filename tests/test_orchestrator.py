"""
End-to-end tests through the GamificationService facade.
"""

import asyncio
from datetime import date, timedelta

import pytest

from rewards_engine.audit import AuditLogger
from rewards_engine.models.audit import AuditEventType
from rewards_engine.models.records import CurrencyReward, GoalStatus, RewardSource
from rewards_engine.orchestrator import GamificationService, create_engine_components
from rewards_engine.services import (
    AlreadySpunToday,
    ConcurrentUpdateConflict,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    StorageError,
)


class FixedRoll:
    def __init__(self, roll):
        self.roll = roll

    def randint(self, a, b):
        return self.roll


class FlakyStore(InMemoryLedgerStore):
    """Fails the first `conflicts` commits as if another writer got there first."""

    def __init__(self, conflicts=1):
        super().__init__()
        self.conflicts = conflicts
        self.attempts = 0

    async def commit(self, changes):
        self.attempts += 1
        if self.conflicts:
            self.conflicts -= 1
            raise ConcurrentUpdateConflict("level changed concurrently")
        await super().commit(changes)


class BrokenStore(InMemoryLedgerStore):
    async def commit(self, changes):
        raise StorageError("Failed to commit change set: quota exceeded")


class InterleavingStore(InMemoryLedgerStore):
    """Yields after reading a goal or a streak so concurrent updates read the same version."""

    async def get_goal(self, user_id, goal_id):
        goal = await super().get_goal(user_id, goal_id)
        await asyncio.sleep(0)
        return goal

    async def get_streak(self, user_id, activity_kind):
        streak = await super().get_streak(user_id, activity_kind)
        await asyncio.sleep(0)
        return streak


def make_service(store, clock, settings, audit_storage=None, rng=None):
    return GamificationService(
        store=store,
        clock=clock,
        rng=rng,
        audit_logger=AuditLogger(audit_storage or InMemoryAuditStorage()),
        settings=settings,
    )


async def event_types(audit_storage, user_id="user-1"):
    return [e.event_type for e in await audit_storage.get_events_by_user(user_id, limit=1000)]


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_progression_scenario(self, service, store, clock, audit_storage):
        result = await service.perform_daily_spin("user-1")
        assert result.success

        with pytest.raises(AlreadySpunToday):
            await service.perform_daily_spin("user-1")

        goal = await service.create_goal(
            "user-1",
            name="Holiday",
            target_amount="500",
            target_date=date(2024, 5, 1),
        )

        for day in range(7):
            if day:
                clock.advance(days=1)
            streak = await service.update_streak("user-1")
        assert streak.streak_count == 7
        assert streak.new_badges == ["7_day_streak"]

        state = await service.update_goal_progress("user-1", goal.goal_id, 500)
        assert state.is_completed
        assert state.milestones == ["25_percent", "50_percent", "75_percent"]

        level = await store.get_level("user-1")
        claimed = await store.list_rewards("user-1", claimed=True)
        assert sum(r.coin_amount for r in claimed) == level.total_coins
        assert await store.sum_claimed_coins("user-1") == level.total_coins
        assert (await service.get_reward_stats("user-1")).total_coins == level.total_coins
        assert level.current_level >= 3

        # Nothing pending, so recalculating changes nothing
        again = await service.recalculate_level("user-1")
        assert again.leveled_up is False
        assert again.total_coins == level.total_coins

        types = await event_types(audit_storage)
        assert AuditEventType.SPIN_PERFORMED in types
        assert AuditEventType.SPIN_REJECTED in types
        assert AuditEventType.STREAK_BADGE_AWARDED in types
        assert types.count(AuditEventType.GOAL_MILESTONE_REACHED) == 3
        assert AuditEventType.GOAL_COMPLETED in types
        assert AuditEventType.LEVEL_UP in types

    @pytest.mark.asyncio
    async def test_spin_rejection_writes_nothing(self, service, store):
        await service.perform_daily_spin("user-1")
        coins = await store.sum_claimed_coins("user-1")

        with pytest.raises(AlreadySpunToday, match="Come back tomorrow"):
            await service.perform_daily_spin("user-1")

        assert await store.sum_claimed_coins("user-1") == coins
        assert await service.can_spin_today("user-1") is False

    @pytest.mark.asyncio
    async def test_claim_flow(self, service):
        reward = await service.issue_reward(
            "user-1", CurrencyReward(name="Referral", coin_amount=120)
        )
        assert [r.reward_id for r in await service.get_unclaimed_rewards("user-1")] == [
            reward.reward_id
        ]

        result = await service.claim_reward("user-1", reward.reward_id)

        assert result.level.current_level == 2
        assert await service.get_unclaimed_rewards("user-1") == []
        issued = await service.get_rewards_by_source("user-1", RewardSource.ISSUED)
        assert issued[0].is_claimed


class TestConflictRetry:

    @pytest.mark.asyncio
    async def test_conflict_is_retried_and_audited(self, clock, settings):
        store = FlakyStore(conflicts=1)
        audit_storage = InMemoryAuditStorage()
        service = make_service(store, clock, settings, audit_storage)

        state = await service.update_streak("user-1")

        assert state.streak_count == 1
        assert store.attempts == 2
        types = await event_types(audit_storage)
        assert types.count(AuditEventType.CONCURRENT_UPDATE_CONFLICT) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_configured_attempts(self, clock, settings):
        store = FlakyStore(conflicts=10)
        audit_storage = InMemoryAuditStorage()
        service = make_service(store, clock, settings, audit_storage)

        with pytest.raises(ConcurrentUpdateConflict):
            await service.update_streak("user-1")

        assert store.attempts == settings.conflict_retry_attempts
        assert await store.get_streak("user-1", "expense_logging") is None
        types = await event_types(audit_storage)
        assert types.count(AuditEventType.CONCURRENT_UPDATE_CONFLICT) == 3

    @pytest.mark.asyncio
    async def test_storage_error_audited_and_raised(self, clock, settings):
        audit_storage = InMemoryAuditStorage()
        service = make_service(BrokenStore(), clock, settings, audit_storage)

        with pytest.raises(StorageError):
            await service.perform_daily_spin("user-1")

        assert AuditEventType.SYSTEM_ERROR in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_concurrent_progress_updates_both_land(self, clock, settings):
        store = InterleavingStore()
        service = make_service(store, clock, settings)
        goal = await service.create_goal(
            "user-1",
            name="Laptop",
            target_amount=1000,
            target_date=date(2024, 12, 1),
        )

        await asyncio.gather(
            service.update_goal_progress("user-1", goal.goal_id, 100),
            service.update_goal_progress("user-1", goal.goal_id, 200),
        )

        stored = await store.get_goal("user-1", goal.goal_id)
        assert stored.current_amount == 300
        assert stored.milestones == ["25_percent"]
        assert await store.sum_claimed_coins("user-1") == 25

    @pytest.mark.asyncio
    async def test_concurrent_streak_updates_award_badge_once(self, clock, settings):
        store = InterleavingStore()
        service = make_service(store, clock, settings)
        for day in range(6):
            if day:
                clock.advance(days=1)
            await service.update_streak("user-1")
        clock.advance(days=1)

        results = await asyncio.gather(
            service.update_streak("user-1"),
            service.update_streak("user-1"),
        )

        assert sorted(b for r in results for b in r.new_badges) == ["7_day_streak"]
        assert all(r.streak_count == 7 for r in results)
        assert await store.count_claimed_badges("user-1") == 1
        assert await store.sum_claimed_coins("user-1") == 50
        streak = await store.get_streak("user-1", "expense_logging")
        assert streak.version == 7

    @pytest.mark.asyncio
    async def test_concurrent_claims_grant_once(self, clock, settings):
        store = InMemoryLedgerStore()
        service = make_service(store, clock, settings)
        reward = await service.issue_reward(
            "user-1", CurrencyReward(name="Gift", coin_amount=40)
        )

        results = await asyncio.gather(
            service.claim_reward("user-1", reward.reward_id),
            service.claim_reward("user-1", reward.reward_id),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert await store.sum_claimed_coins("user-1") == 40


class TestReadViews:

    @pytest.mark.asyncio
    async def test_dashboard(self, store, clock, settings):
        service = make_service(store, clock, settings, rng=FixedRoll(1))
        await service.perform_daily_spin("user-1")
        await service.update_streak("user-1")
        await service.create_goal(
            "user-1",
            name="Bike",
            target_amount=300,
            target_date=clock.today() + timedelta(days=20),
        )

        dashboard = await service.get_dashboard("user-1")

        assert dashboard.can_spin is False
        assert dashboard.streak.streak_count == 1
        assert dashboard.streak.can_log_today is False
        assert [g.name for g in dashboard.active_goals] == ["Bike"]
        assert dashboard.active_goals[0].status == GoalStatus.ACTIVE
        assert len(dashboard.recent_rewards) == 1
        assert dashboard.level.current_level >= 1

    @pytest.mark.asyncio
    async def test_new_user_dashboard(self, service):
        dashboard = await service.get_dashboard("user-1")
        assert dashboard.can_spin is True
        assert dashboard.streak.streak_count == 0
        assert dashboard.level.current_title == "Saver"
        assert dashboard.recent_rewards == []

    @pytest.mark.asyncio
    async def test_spin_history_through_facade(self, service, clock):
        await service.perform_daily_spin("user-1")
        clock.advance(days=1)
        await service.perform_daily_spin("user-1")

        history = await service.get_spin_history("user-1")
        assert history.spin_stats.total_spins == 2
        assert history.spin_history[0].spin_date == clock.today()


class TestFactory:

    @pytest.mark.asyncio
    async def test_memory_backend(self, settings, clock):
        service = create_engine_components(settings=settings, clock=clock)

        assert isinstance(service, GamificationService)
        assert service.clock is clock
        result = await service.perform_daily_spin("user-1")
        assert result.spin.spin_date == clock.today()
