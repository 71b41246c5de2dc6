"""
Reward Drawer

The once-a-day weighted spin.

The spin record, its claimed reward and the resulting level are committed
as one change set. The store's (user, date) uniqueness is what enforces a
single spin per day; the read before drawing only avoids wasted work.
"""

import random
from typing import Optional

from rewards_engine.models.events import ChangeSet
from rewards_engine.models.results import SpinResult
from rewards_engine.rules.spin import RandomSource, draw_tier, spin_events
from rewards_engine.services.clock import Clock
from rewards_engine.services.level_calculator import LevelCalculator
from rewards_engine.services.storage import DuplicateError, LedgerStoreInterface


class RewardDrawerError(Exception):
    """Base exception for daily spin errors."""
    pass


class AlreadySpunToday(RewardDrawerError):
    """The user already spun on this calendar date. Nothing was written."""

    def __init__(self, user_id: str, spin_date):
        self.user_id = user_id
        self.spin_date = spin_date
        super().__init__("You have already spun today. Come back tomorrow!")


class RewardDrawer:
    """
    Performs the daily spin.

    Usage:
        drawer = RewardDrawer(store, clock, levels)
        result = await drawer.perform_daily_spin("user-1")
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        clock: Clock,
        levels: LevelCalculator,
        rng: Optional[RandomSource] = None,
    ):
        self._store = store
        self._clock = clock
        self._levels = levels
        self._rng = rng or random.Random()

    async def can_spin_today(self, user_id: str) -> bool:
        return await self._store.get_spin(user_id, self._clock.today()) is None

    async def perform_daily_spin(self, user_id: str) -> SpinResult:
        """
        Draw today's reward.

        Raises:
            AlreadySpunToday: A spin exists for (user, today)
            ConcurrentUpdateConflict: The level moved concurrently; nothing was written
        """
        today = self._clock.today()
        now = self._clock.now()

        if await self._store.get_spin(user_id, today) is not None:
            raise AlreadySpunToday(user_id, today)

        tier = draw_tier(self._rng)
        spin, reward, events = spin_events(user_id, tier, today, now)
        level = await self._levels.plan(user_id, [reward], now)

        changes = ChangeSet(user_id=user_id, events=events)
        changes.add(*level.events)

        try:
            await self._store.commit(changes)
        except DuplicateError:
            # Lost the race against another spin for the same day
            raise AlreadySpunToday(user_id, today)

        return SpinResult(
            reward=tier.payload,
            spin=spin,
            reward_record=reward,
            level=LevelCalculator.to_state(level),
        )
