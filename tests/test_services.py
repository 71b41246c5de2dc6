"""
Tests for the engine components against the in-memory ledger store.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from rewards_engine.models.events import ChangeSet, SaveStreak
from rewards_engine.models.records import (
    CurrencyReward,
    GoalStatus,
    GoalType,
    RewardSource,
)
from rewards_engine.rules.spin import SPIN_TIERS
from rewards_engine.services import (
    AlreadySpunToday,
    ConcurrentUpdateConflict,
    GoalNotFound,
    InMemoryLedgerStore,
    InvalidAmount,
    LevelCalculator,
    RewardAlreadyClaimed,
    RewardDrawer,
    RewardNotFound,
)


class FixedRoll:
    def __init__(self, roll):
        self.roll = roll

    def randint(self, a, b):
        return self.roll


class SpinBlindStore(InMemoryLedgerStore):
    """Pretends no spin exists, as if another request spun in between."""

    async def get_spin(self, user_id, spin_date):
        return None


# ============================================================================
# RewardDrawer
# ============================================================================

class TestRewardDrawer:
    """The daily spin."""

    @pytest.mark.asyncio
    async def test_spin_grants_claimed_reward(self, drawer, store):
        result = await drawer.perform_daily_spin("user-1")

        assert result.success is True
        assert result.reward.name
        assert result.reward_record.is_claimed
        assert result.spin.spin_date == date(2024, 3, 1)
        assert await store.get_spin("user-1", date(2024, 3, 1)) is not None
        assert await store.get_reward("user-1", result.reward_record.reward_id) is not None

    @pytest.mark.asyncio
    async def test_second_spin_same_day_rejected(self, drawer, store):
        await drawer.perform_daily_spin("user-1")
        rewards_before = await store.list_rewards("user-1")

        with pytest.raises(AlreadySpunToday):
            await drawer.perform_daily_spin("user-1")

        assert await store.list_rewards("user-1") == rewards_before
        assert len(await store.list_spins("user-1")) == 1

    @pytest.mark.asyncio
    async def test_can_spin_again_next_day(self, drawer, clock):
        await drawer.perform_daily_spin("user-1")
        assert await drawer.can_spin_today("user-1") is False

        clock.advance(days=1)
        assert await drawer.can_spin_today("user-1") is True
        await drawer.perform_daily_spin("user-1")

    @pytest.mark.asyncio
    async def test_users_spin_independently(self, drawer):
        await drawer.perform_daily_spin("user-1")
        assert await drawer.can_spin_today("user-2") is True

    @pytest.mark.asyncio
    async def test_spin_recomputes_level(self, store, clock, levels):
        drawer = RewardDrawer(store, clock, levels, rng=FixedRoll(97))  # 100 coins

        result = await drawer.perform_daily_spin("user-1")

        assert result.reward.coin_amount == 100
        assert result.level.current_level == 2
        assert result.level.leveled_up is True
        # 100 from the spin, 100 for reaching level 2
        assert (await store.get_level("user-1")).total_coins == 200

    @pytest.mark.asyncio
    async def test_badge_tier_counts_as_badge(self, store, clock, levels):
        drawer = RewardDrawer(store, clock, levels, rng=FixedRoll(90))

        result = await drawer.perform_daily_spin("user-1")

        assert result.reward.kind == "badge"
        assert result.level.total_badges == 1

    @pytest.mark.asyncio
    async def test_lost_race_maps_to_already_spun(self, clock):
        store = SpinBlindStore()
        levels = LevelCalculator(store, clock)
        drawer = RewardDrawer(store, clock, levels, rng=FixedRoll(1))

        await drawer.perform_daily_spin("user-1")
        with pytest.raises(AlreadySpunToday):
            await drawer.perform_daily_spin("user-1")

        assert len(await store.list_spins("user-1")) == 1
        assert await store.sum_claimed_coins("user-1") == SPIN_TIERS[0].payload.coin_amount


# ============================================================================
# StreakTracker
# ============================================================================

class TestStreakTracker:
    """Consecutive-day logging."""

    @pytest.mark.asyncio
    async def test_first_log(self, streaks):
        state = await streaks.update_streak("user-1", "expense_logging")
        assert state.streak_count == 1
        assert state.last_logged_date == date(2024, 3, 1)
        assert state.can_log_today is False
        assert state.level is None

    @pytest.mark.asyncio
    async def test_same_day_is_idempotent(self, streaks, store):
        await streaks.update_streak("user-1", "expense_logging")
        version = (await store.get_streak("user-1", "expense_logging")).version

        state = await streaks.update_streak("user-1", "expense_logging")

        assert state.streak_count == 1
        assert (await store.get_streak("user-1", "expense_logging")).version == version

    @pytest.mark.asyncio
    async def test_gap_resets(self, streaks, clock):
        await streaks.update_streak("user-1", "expense_logging")
        clock.advance(days=1)
        await streaks.update_streak("user-1", "expense_logging")
        clock.advance(days=3)

        state = await streaks.update_streak("user-1", "expense_logging")
        assert state.streak_count == 1

    @pytest.mark.asyncio
    async def test_seven_days_award_one_badge(self, streaks, store, clock):
        for day in range(7):
            if day:
                clock.advance(days=1)
            state = await streaks.update_streak("user-1", "expense_logging")

        assert state.streak_count == 7
        assert state.new_badges == ["7_day_streak"]
        assert state.level is not None
        assert state.level.total_coins == 50
        assert state.level.total_badges == 1

        clock.advance(days=1)
        state = await streaks.update_streak("user-1", "expense_logging")
        assert state.streak_count == 8
        assert state.new_badges == []
        assert await store.count_claimed_badges("user-1") == 1

    @pytest.mark.asyncio
    async def test_activity_kinds_are_independent(self, streaks):
        await streaks.update_streak("user-1", "expense_logging")
        state = await streaks.get_streak("user-1", "budget_review")
        assert state.streak_count == 0
        assert state.can_log_today is True

    @pytest.mark.asyncio
    async def test_get_streak_does_not_persist(self, streaks, store):
        await streaks.get_streak("user-1", "expense_logging")
        assert await store.get_streak("user-1", "expense_logging") is None

    @pytest.mark.asyncio
    async def test_stale_save_conflicts(self, streaks, store, clock):
        await streaks.update_streak("user-1", "expense_logging")
        stale = await store.get_streak("user-1", "expense_logging")

        clock.advance(days=1)
        await streaks.update_streak("user-1", "expense_logging")

        with pytest.raises(ConcurrentUpdateConflict):
            await store.commit(ChangeSet(
                user_id="user-1",
                events=[SaveStreak(streak=stale, expected_version=stale.version)],
            ))


# ============================================================================
# GoalTracker
# ============================================================================

class TestGoalTracker:
    """Goal creation and progress."""

    async def _goal(self, goals, target="1000", days=90):
        return await goals.create_goal(
            "user-1",
            name="Emergency Fund",
            target_amount=target,
            target_date=date(2024, 3, 1) + timedelta(days=days),
        )

    @pytest.mark.asyncio
    async def test_create_goal(self, goals, store):
        goal = await goals.create_goal(
            "user-1",
            name="Pay off card",
            target_amount=Decimal("2500.50"),
            target_date=date(2024, 12, 31),
            goal_type=GoalType.DEBT_PAYOFF,
            description="Visa",
        )
        assert goal.status == GoalStatus.ACTIVE
        assert goal.start_date == date(2024, 3, 1)
        assert goal.version == 1

        stored = await store.get_goal("user-1", goal.goal_id)
        assert stored == goal

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [0, -5, "abc"])
    async def test_create_goal_rejects_bad_target(self, goals, target):
        with pytest.raises(InvalidAmount):
            await goals.create_goal(
                "user-1", name="Bad", target_amount=target, target_date=date(2024, 12, 31)
            )

    @pytest.mark.asyncio
    async def test_create_goal_rejects_past_target_date(self, goals):
        with pytest.raises(ValidationError):
            await goals.create_goal(
                "user-1", name="Late", target_amount=100, target_date=date(2024, 2, 1)
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, Decimal("-10"), "0.001"])
    async def test_progress_rejects_non_positive_amount(self, goals, amount):
        goal = await self._goal(goals)
        with pytest.raises(InvalidAmount):
            await goals.update_goal_progress("user-1", goal.goal_id, amount)

    @pytest.mark.asyncio
    async def test_unknown_or_foreign_goal(self, goals):
        goal = await self._goal(goals)
        with pytest.raises(GoalNotFound):
            await goals.update_goal_progress("user-1", uuid4(), 10)
        with pytest.raises(GoalNotFound):
            await goals.update_goal_progress("user-2", goal.goal_id, 10)

    @pytest.mark.asyncio
    async def test_milestone_once(self, goals, store):
        goal = await self._goal(goals)
        await goals.update_goal_progress("user-1", goal.goal_id, 240)

        state = await goals.update_goal_progress("user-1", goal.goal_id, 10)
        assert state.milestones == ["25_percent"]
        assert [r.coin_amount for r in state.rewards] == [25]
        assert state.level.total_coins == 25

        state = await goals.update_goal_progress("user-1", goal.goal_id, 10)
        assert state.rewards == []
        assert state.current_amount == Decimal("260.00")
        assert await store.sum_claimed_coins("user-1") == 25

    @pytest.mark.asyncio
    async def test_completion(self, goals, store):
        goal = await self._goal(goals, target="500", days=30)

        state = await goals.update_goal_progress("user-1", goal.goal_id, 500)

        assert state.is_completed
        assert state.completed_now is True
        assert state.progress_percentage == Decimal("100.00")
        assert state.days_remaining == 30
        # completion 100 + milestones 25 + 50 + 75, then level 3 (+100, +150)
        assert sum(r.coin_amount for r in state.rewards) == 250
        assert state.level.current_level == 3
        assert state.level.total_coins == 500
        assert await store.sum_claimed_coins("user-1") == 500

        again = await goals.update_goal_progress("user-1", goal.goal_id, 100)
        assert again.completed_now is False
        assert again.rewards == []

    @pytest.mark.asyncio
    async def test_list_goals(self, goals):
        late = await self._goal(goals, days=200)
        soon = await self._goal(goals, days=10)
        done = await self._goal(goals, target="100", days=50)
        await goals.update_goal_progress("user-1", done.goal_id, 100)

        overview = await goals.list_goals("user-1")
        assert [g.goal_id for g in overview.active_goals] == [soon.goal_id, late.goal_id]
        assert [g.goal_id for g in overview.completed_goals] == [done.goal_id]


# ============================================================================
# LevelCalculator
# ============================================================================

class TestLevelCalculator:
    """Level recomputation from the ledger."""

    @pytest.mark.asyncio
    async def test_new_user_is_level_one(self, levels):
        state = await levels.recalculate_level("user-1")
        assert state.current_level == 1
        assert state.current_title == "Saver"
        assert state.total_coins == 0

    @pytest.mark.asyncio
    async def test_recalculate_is_idempotent(self, levels, ledger):
        reward = await ledger.issue_reward(
            "user-1", CurrencyReward(name="Gift", coin_amount=320)
        )
        await ledger.claim_reward("user-1", reward.reward_id)

        first = await levels.recalculate_level("user-1")
        second = await levels.recalculate_level("user-1")

        assert first.leveled_up is False
        assert second == first
        assert second.level_up_rewards == []

    @pytest.mark.asyncio
    async def test_progress_creates_record(self, levels, store):
        progress = await levels.get_progress("user-1")
        assert progress.current_level == 1
        assert progress.next_level == 2
        assert progress.coins_needed == 100
        assert await store.get_level("user-1") is not None

    @pytest.mark.asyncio
    async def test_summary_lists_newest_achievements_first(self, levels, ledger):
        reward = await ledger.issue_reward(
            "user-1", CurrencyReward(name="Gift", coin_amount=250)
        )
        await ledger.claim_reward("user-1", reward.reward_id)

        summary = await levels.get_summary("user-1", achievements_limit=1)
        assert summary.current_level == 3
        assert [a.level for a in summary.recent_achievements] == [3]
        assert summary.progress.next_title == "Financial Planner"


# ============================================================================
# RewardLedger
# ============================================================================

class TestRewardLedger:
    """Issuing and claiming rewards."""

    @pytest.mark.asyncio
    async def test_issued_reward_is_unclaimed(self, ledger, store):
        reward = await ledger.issue_reward(
            "user-1", CurrencyReward(name="Referral", coin_amount=40)
        )
        assert reward.is_claimed is False
        assert reward.source == RewardSource.ISSUED
        assert await store.sum_claimed_coins("user-1") == 0

    @pytest.mark.asyncio
    async def test_claim_counts_toward_level(self, ledger, store):
        reward = await ledger.issue_reward(
            "user-1", CurrencyReward(name="Referral", coin_amount=40)
        )

        result = await ledger.claim_reward("user-1", reward.reward_id)

        assert result.reward.is_claimed
        assert result.level.total_coins == 40
        assert await store.sum_claimed_coins("user-1") == 40

    @pytest.mark.asyncio
    async def test_claim_twice(self, ledger):
        reward = await ledger.issue_reward(
            "user-1", CurrencyReward(name="Referral", coin_amount=40)
        )
        await ledger.claim_reward("user-1", reward.reward_id)

        with pytest.raises(RewardAlreadyClaimed):
            await ledger.claim_reward("user-1", reward.reward_id)

    @pytest.mark.asyncio
    async def test_claim_unknown_or_foreign(self, ledger):
        reward = await ledger.issue_reward(
            "user-1", CurrencyReward(name="Referral", coin_amount=40)
        )
        with pytest.raises(RewardNotFound):
            await ledger.claim_reward("user-1", uuid4())
        with pytest.raises(RewardNotFound):
            await ledger.claim_reward("user-2", reward.reward_id)
