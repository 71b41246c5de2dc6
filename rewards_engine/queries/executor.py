"""
Query Execution

DESIGN DECISION: Queries are read-only projections over the ledger.
Nothing in here writes, and every number is computed from stored records,
never cached or estimated.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from rewards_engine.models.records import RewardRecord, RewardSource, SpinRecord
from rewards_engine.models.results import (
    RewardBreakdown,
    RewardStats,
    RewardsOverview,
    SpinHistory,
    SpinStats,
)
from rewards_engine.services.storage import LedgerStoreInterface


def _breakdown(
    rewards: list[RewardRecord],
    group_of: Callable[[RewardRecord], str],
) -> list[RewardBreakdown]:
    counts: dict[str, int] = defaultdict(int)
    coins: dict[str, int] = defaultdict(int)
    for reward in rewards:
        group = group_of(reward)
        counts[group] += 1
        coins[group] += reward.coin_amount

    return [
        RewardBreakdown(group=group, count=counts[group], total_coins=coins[group])
        for group in sorted(counts)
    ]


class RewardQueryExecutor:
    """
    Read-only accessors over rewards and spins.

    GUARANTEES:
    - Only returns real data from storage
    - Empty lists and zeroed statistics when nothing matches
    """

    def __init__(self, store: LedgerStoreInterface):
        self._store = store

    async def unclaimed_rewards(self, user_id: str) -> list[RewardRecord]:
        return await self._store.list_rewards(user_id, claimed=False)

    async def recent_rewards(self, user_id: str, limit: int = 20) -> list[RewardRecord]:
        """Claimed rewards, most recently claimed first."""
        return await self._store.list_rewards(user_id, claimed=True, limit=limit)

    async def rewards_by_source(
        self,
        user_id: str,
        source: RewardSource,
        limit: Optional[int] = None,
    ) -> list[RewardRecord]:
        return await self._store.list_rewards(user_id, source=source, limit=limit)

    async def reward_stats(self, user_id: str) -> RewardStats:
        """Totals over claimed rewards, broken down by source and by kind."""
        claimed = await self._store.list_rewards(user_id, claimed=True)
        return RewardStats(
            total_coins=sum(r.coin_amount for r in claimed),
            total_rewards=len(claimed),
            badge_count=sum(1 for r in claimed if r.badge_name),
            rewards_by_source=_breakdown(claimed, lambda r: r.source.value),
            rewards_by_kind=_breakdown(claimed, lambda r: r.kind.value),
        )

    async def rewards_overview(self, user_id: str, recent_limit: int = 20) -> RewardsOverview:
        return RewardsOverview(
            recent_rewards=await self.recent_rewards(user_id, recent_limit),
            reward_stats=await self.reward_stats(user_id),
            unclaimed_rewards=await self.unclaimed_rewards(user_id),
        )

    async def spin_stats(self, user_id: str) -> SpinStats:
        return self._spin_stats(await self._store.list_spins(user_id))

    async def spin_history(self, user_id: str, limit: int = 30) -> SpinHistory:
        """The latest spins, newest first, with statistics over all spins."""
        spins = await self._store.list_spins(user_id)
        return SpinHistory(
            spin_history=spins[:limit],
            spin_stats=self._spin_stats(spins),
        )

    @staticmethod
    def _spin_stats(spins: list[SpinRecord]) -> SpinStats:
        if not spins:
            return SpinStats()

        total_coins = sum(s.coins_earned for s in spins)
        average = (Decimal(total_coins) / len(spins)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        return SpinStats(
            total_spins=len(spins),
            total_coins_earned=total_coins,
            badge_spins=sum(1 for s in spins if s.payload.kind == "badge"),
            average_coins_per_spin=float(average),
        )
