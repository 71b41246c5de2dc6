"""
Daily Spin Rules

Six fixed reward tiers, each with an integer weight. Weights sum to 100, so a
roll in [1, 100] walks the tiers in declared order until the running sum
reaches the roll.

Common rewards (70%): 10 and 25 coins
Uncommon rewards (25%): 50 coins, Lucky Spinner badge
Rare rewards (5%): 100 coins, double coins bonus
"""

from datetime import date, datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from rewards_engine.models.events import GrantReward, LedgerEvent, RecordSpin
from rewards_engine.models.records import (
    BadgeReward,
    BonusReward,
    CurrencyReward,
    RewardPayload,
    RewardRecord,
    RewardSource,
    SpinRecord,
)


class RandomSource(Protocol):
    """Anything with random.Random's randint()."""

    def randint(self, a: int, b: int) -> int: ...


class SpinTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str = Field(..., description="Tier identifier, stored on the spin record")
    weight: int = Field(..., gt=0)
    payload: RewardPayload


SPIN_TIERS: tuple[SpinTier, ...] = (
    SpinTier(
        value="10",
        weight=40,
        payload=CurrencyReward(
            name="Small Coin Bonus",
            description="You earned 10 coins!",
            coin_amount=10,
        ),
    ),
    SpinTier(
        value="25",
        weight=30,
        payload=CurrencyReward(
            name="Coin Bonus",
            description="You earned 25 coins!",
            coin_amount=25,
        ),
    ),
    SpinTier(
        value="50",
        weight=15,
        payload=CurrencyReward(
            name="Big Coin Bonus",
            description="You earned 50 coins!",
            coin_amount=50,
        ),
    ),
    SpinTier(
        value="lucky_spinner",
        weight=10,
        payload=BadgeReward(
            name="Lucky Spinner Badge",
            description="You earned a Lucky Spinner badge!",
            coin_amount=30,
            badge_name="lucky_spinner",
        ),
    ),
    SpinTier(
        value="100",
        weight=3,
        payload=CurrencyReward(
            name="Mega Coin Bonus",
            description="You earned 100 coins!",
            coin_amount=100,
        ),
    ),
    SpinTier(
        value="double_coins",
        weight=2,
        payload=BonusReward(
            name="Double Coins Bonus",
            description="Your next 3 transactions will earn double coins!",
            coin_amount=0,
            bonus_code="double_coins",
        ),
    ),
)


def draw_tier(rng: RandomSource, tiers: tuple[SpinTier, ...] = SPIN_TIERS) -> SpinTier:
    """
    Weighted draw over the tiers.

    Falls back to the first tier if the roll lands outside every bucket,
    so a spin always yields a reward.
    """
    total_weight = sum(tier.weight for tier in tiers)
    roll = rng.randint(1, total_weight)

    running = 0
    for tier in tiers:
        running += tier.weight
        if roll <= running:
            return tier

    return tiers[0]


def spin_events(
    user_id: str,
    tier: SpinTier,
    today: date,
    now: datetime,
) -> tuple[SpinRecord, RewardRecord, list[LedgerEvent]]:
    """
    Build the spin record and its claimed reward.

    Both must be committed together.
    """
    spin = SpinRecord(
        user_id=user_id,
        spin_date=today,
        tier_value=tier.value,
        payload=tier.payload,
        created_at=now,
    )
    reward = RewardRecord(
        user_id=user_id,
        source=RewardSource.DAILY_SPIN,
        payload=tier.payload,
        metadata={"spin_id": str(spin.spin_id), "tier": tier.value},
        created_at=now,
        claimed_at=now,
    )
    return spin, reward, [RecordSpin(spin=spin), GrantReward(reward=reward)]
