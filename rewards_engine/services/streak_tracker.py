"""
Streak Tracker

Consecutive-day counters per (user, activity kind), plus streak badges.
"""

from typing import Optional

from rewards_engine.models.events import ChangeSet
from rewards_engine.models.records import StreakRecord
from rewards_engine.models.results import LevelState, StreakState
from rewards_engine.rules.streaks import advance_streak
from rewards_engine.services.clock import Clock
from rewards_engine.services.level_calculator import LevelCalculator
from rewards_engine.services.storage import LedgerStoreInterface


class StreakTracker:
    def __init__(
        self,
        store: LedgerStoreInterface,
        clock: Clock,
        levels: LevelCalculator,
    ):
        self._store = store
        self._clock = clock
        self._levels = levels

    async def update_streak(self, user_id: str, activity_kind: str) -> StreakState:
        """
        Log the activity for today.

        Same-day calls return the current state and write nothing. Badge
        grants are committed together with the streak and the new level.

        Raises:
            ConcurrentUpdateConflict: The streak or level moved concurrently
        """
        today = self._clock.today()
        now = self._clock.now()

        current = await self._store.get_streak(user_id, activity_kind)
        outcome = advance_streak(current, user_id, activity_kind, today, now)
        if not outcome.changed:
            return self._state(outcome.record, can_log_today=False)

        changes = ChangeSet(user_id=user_id, events=outcome.events)
        level = None
        if outcome.rewards:
            level_outcome = await self._levels.plan(user_id, outcome.rewards, now)
            changes.add(*level_outcome.events)
            level = LevelCalculator.to_state(level_outcome)

        await self._store.commit(changes)

        return self._state(
            outcome.record,
            can_log_today=False,
            new_badges=outcome.new_badges,
            rewards=outcome.rewards,
            level=level,
        )

    async def get_streak(self, user_id: str, activity_kind: str) -> StreakState:
        """Read-only view. A user with no record gets a zero count."""
        record = await self._store.get_streak(user_id, activity_kind)
        if record is None:
            record = StreakRecord(user_id=user_id, activity_kind=activity_kind)
        return self._state(
            record,
            can_log_today=record.last_logged_date != self._clock.today(),
        )

    @staticmethod
    def _state(
        record: StreakRecord,
        can_log_today: bool,
        new_badges: Optional[list[str]] = None,
        rewards=None,
        level: Optional[LevelState] = None,
    ) -> StreakState:
        return StreakState(
            user_id=record.user_id,
            activity_kind=record.activity_kind,
            streak_count=record.streak_count,
            last_logged_date=record.last_logged_date,
            badges_earned=list(record.badges_earned),
            can_log_today=can_log_today,
            new_badges=new_badges or [],
            rewards=rewards or [],
            level=level,
        )
