"""
Reward Ledger

The shared sink every granting component writes to. Grants made by the
engine itself are claimed on creation; this module adds the two operations
collaborators use directly: issuing an unclaimed reward and claiming it.
"""

from typing import Any, Optional
from uuid import UUID

from rewards_engine.models.events import ChangeSet, ClaimReward, GrantReward
from rewards_engine.models.records import RewardPayload, RewardRecord, RewardSource
from rewards_engine.models.results import ClaimResult
from rewards_engine.services.clock import Clock
from rewards_engine.services.level_calculator import LevelCalculator
from rewards_engine.services.storage import LedgerStoreInterface


class RewardLedgerError(Exception):
    """Base exception for reward ledger errors."""
    pass


class RewardNotFound(RewardLedgerError):
    def __init__(self, reward_id: UUID):
        self.reward_id = reward_id
        super().__init__(f"Reward not found: {reward_id}")


class RewardAlreadyClaimed(RewardLedgerError):
    def __init__(self, reward_id: UUID):
        self.reward_id = reward_id
        super().__init__(f"Reward already claimed: {reward_id}")


class RewardLedger:
    def __init__(
        self,
        store: LedgerStoreInterface,
        clock: Clock,
        levels: LevelCalculator,
    ):
        self._store = store
        self._clock = clock
        self._levels = levels

    async def issue_reward(
        self,
        user_id: str,
        payload: RewardPayload,
        source: RewardSource = RewardSource.ISSUED,
        metadata: Optional[dict[str, Any]] = None,
    ) -> RewardRecord:
        """
        Create an unclaimed reward.

        Unclaimed rewards do not count toward coins until claimed, so the
        level is not touched here.
        """
        reward = RewardRecord(
            user_id=user_id,
            source=source,
            payload=payload,
            metadata=metadata or {},
            created_at=self._clock.now(),
        )
        await self._store.commit(ChangeSet(user_id=user_id, events=[GrantReward(reward=reward)]))
        return reward

    async def claim_reward(self, user_id: str, reward_id: UUID) -> ClaimResult:
        """
        Set the claimed timestamp, once, and recompute the level.

        Raises:
            RewardNotFound: unknown reward or owned by another user
            RewardAlreadyClaimed: claimed_at is already set
            ConcurrentUpdateConflict: claimed or level moved concurrently
        """
        reward = await self._store.get_reward(user_id, reward_id)
        if reward is None:
            raise RewardNotFound(reward_id)
        if reward.is_claimed:
            raise RewardAlreadyClaimed(reward_id)

        now = self._clock.now()
        claimed = reward.claim(now)
        level = await self._levels.plan(user_id, [claimed], now)

        changes = ChangeSet(
            user_id=user_id,
            events=[ClaimReward(reward_id=reward_id, claimed_at=now)],
        )
        changes.add(*level.events)
        await self._store.commit(changes)

        return ClaimResult(reward=claimed, level=LevelCalculator.to_state(level))
