"""
Level Calculator

Derives a user's level, title and totals from the claimed rewards in the
ledger and grants level-up rewards.

DESIGN DECISION: Every change set that moves a user's claimed-coin total
also carries a SaveLevel computed from that total. Granting components ask
plan() for those events and commit them together with their own, so:
1. A grant and the level it produces land atomically
2. The level version serializes all grants for one user; two writers that
   read the same total cannot both commit
3. recalculate_level() on its own is just plan() with nothing pending
"""

from datetime import datetime
from typing import Optional, Sequence

from rewards_engine.models.events import ChangeSet
from rewards_engine.models.records import LevelRecord, RewardRecord
from rewards_engine.models.results import LevelProgress, LevelState, LevelSummary
from rewards_engine.rules.levels import LevelOutcome, level_progress, recompute_level
from rewards_engine.services.clock import Clock
from rewards_engine.services.storage import LedgerStoreInterface


class LevelCalculator:
    """Level recomputation and progress reporting."""

    def __init__(self, store: LedgerStoreInterface, clock: Clock):
        self._store = store
        self._clock = clock

    async def plan(
        self,
        user_id: str,
        pending: Sequence[RewardRecord] = (),
        now: Optional[datetime] = None,
    ) -> LevelOutcome:
        """
        Compute the level the user will have once `pending` is committed.

        `pending` are claimed rewards about to be written in the same
        change set. Nothing is written here.
        """
        current = await self._store.get_level(user_id)
        coins = await self._store.sum_claimed_coins(user_id)
        badges = await self._store.count_claimed_badges(user_id)

        for reward in pending:
            if reward.is_claimed:
                coins += reward.coin_amount
                if reward.badge_name:
                    badges += 1

        return recompute_level(current, user_id, coins, badges, now or self._clock.now())

    async def recalculate_level(self, user_id: str) -> LevelState:
        """
        Recompute and persist the user's level from the ledger.

        Idempotent: a second call with no new rewards returns the same
        state and grants nothing.

        Raises:
            ConcurrentUpdateConflict: The level moved while we computed it
        """
        outcome = await self.plan(user_id)
        await self._store.commit(ChangeSet(user_id=user_id, events=outcome.events))
        return self.to_state(outcome)

    async def get_progress(self, user_id: str) -> LevelProgress:
        """Progress toward the next level. Creates the level record if missing."""
        return level_progress(await self._load(user_id))

    async def get_summary(self, user_id: str, achievements_limit: int = 5) -> LevelSummary:
        record = await self._load(user_id)
        return LevelSummary(
            current_level=record.current_level,
            current_title=record.current_title,
            total_coins=record.total_coins,
            total_badges=record.total_badges,
            progress=level_progress(record),
            recent_achievements=list(reversed(record.achievements))[:achievements_limit],
        )

    async def _load(self, user_id: str) -> LevelRecord:
        record = await self._store.get_level(user_id)
        if record is None:
            outcome = await self.plan(user_id)
            await self._store.commit(ChangeSet(user_id=user_id, events=outcome.events))
            record = outcome.record
        return record

    @staticmethod
    def to_state(outcome: LevelOutcome) -> LevelState:
        record = outcome.record
        return LevelState(
            user_id=record.user_id,
            current_level=record.current_level,
            current_title=record.current_title,
            total_coins=record.total_coins,
            total_badges=record.total_badges,
            leveled_up=outcome.leveled_up,
            level_up_rewards=outcome.rewards,
        )
