"""
Level Rules

A level is a pure function of the claimed coins in the reward ledger:
the highest level whose threshold is <= cumulative coins.

Reaching a higher level grants new_level * 50 coins. Those coins are part
of the ledger too, so the recomputation repeats until the level is stable
(one grant per pass that raised the level). That
keeps the stored total equal to the ledger sum and makes a second
recomputation with no new rewards a no-op.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from rewards_engine.models.events import GrantReward, LedgerEvent, SaveLevel
from rewards_engine.models.records import (
    Achievement,
    CurrencyReward,
    LevelRecord,
    RewardRecord,
    RewardSource,
)
from rewards_engine.models.results import LevelProgress


LEVEL_THRESHOLDS: dict[int, int] = {
    1: 0,
    2: 100,
    3: 300,
    4: 600,
    5: 1000,
    6: 1500,
    7: 2200,
    8: 3000,
    9: 4000,
    10: 5000,
}

LEVEL_TITLES: dict[int, str] = {
    1: "Saver",
    2: "Budgeter",
    3: "Smart Spender",
    4: "Financial Planner",
    5: "Money Manager",
    6: "Investment Starter",
    7: "Wealth Builder",
    8: "Financial Expert",
    9: "Money Master",
    10: "Finance Guru",
}

MAX_LEVEL = max(LEVEL_THRESHOLDS)
LEVEL_UP_COINS_PER_LEVEL = 50


def level_for_coins(coins: int) -> int:
    level = 1
    for candidate, required in LEVEL_THRESHOLDS.items():
        if coins >= required:
            level = candidate
    return level


def level_up_reward(user_id: str, level: int, now: datetime) -> RewardRecord:
    title = LEVEL_TITLES[level]
    return RewardRecord(
        user_id=user_id,
        source=RewardSource.LEVEL_UP,
        payload=CurrencyReward(
            name=f"Level Up to {title}",
            description=(
                f"Congratulations! You've reached level {level} "
                f"and earned the title '{title}'!"
            ),
            coin_amount=level * LEVEL_UP_COINS_PER_LEVEL,
        ),
        metadata={"level": level, "title": title},
        created_at=now,
        claimed_at=now,
    )


class LevelOutcome(BaseModel):
    record: LevelRecord
    leveled_up: bool = False
    rewards: list[RewardRecord] = Field(default_factory=list)
    events: list[LedgerEvent] = Field(default_factory=list)


def recompute_level(
    current: Optional[LevelRecord],
    user_id: str,
    claimed_coins: int,
    claimed_badges: int,
    now: datetime,
) -> LevelOutcome:
    """
    Recompute a user's level from ledger totals.

    The returned events always include a SaveLevel, even when nothing
    moved, since totals may have drifted.
    """
    expected_version = current.version if current else 0
    level = current.current_level if current else 1
    achievements = list(current.achievements) if current else []

    total_coins = claimed_coins
    rewards = []

    candidate = level_for_coins(total_coins)
    while candidate > level:
        reward = level_up_reward(user_id, candidate, now)
        rewards.append(reward)
        total_coins += reward.coin_amount
        achievements.append(
            Achievement(level=candidate, title=LEVEL_TITLES[candidate], earned_at=now)
        )
        level = candidate
        candidate = level_for_coins(total_coins)

    record = LevelRecord(
        user_id=user_id,
        current_level=level,
        total_coins=total_coins,
        total_badges=claimed_badges,
        current_title=LEVEL_TITLES[level],
        achievements=achievements,
        version=expected_version,
        updated_at=now,
    )

    events: list[LedgerEvent] = [GrantReward(reward=reward) for reward in rewards]
    events.append(SaveLevel(level=record, expected_version=expected_version))

    return LevelOutcome(
        record=record,
        leveled_up=bool(rewards),
        rewards=rewards,
        events=events,
    )


def level_progress(record: LevelRecord) -> LevelProgress:
    """Coins and percentage toward the next level."""
    current_level = record.current_level
    next_level = current_level + 1 if current_level < MAX_LEVEL else None

    current_requirement = LEVEL_THRESHOLDS.get(current_level, 0)
    next_requirement = (
        LEVEL_THRESHOLDS[next_level] if next_level is not None else current_requirement
    )

    progress = 0.0
    if next_requirement > current_requirement:
        progress = (
            (record.total_coins - current_requirement)
            / (next_requirement - current_requirement)
            * 100
        )

    return LevelProgress(
        current_level=current_level,
        next_level=next_level,
        current_coins=record.total_coins,
        coins_needed=max(0, next_requirement - record.total_coins),
        progress_percentage=round(min(100.0, max(0.0, progress)), 2),
        current_title=record.current_title,
        next_title=LEVEL_TITLES[next_level] if next_level is not None else record.current_title,
    )
