"""
Goal Rules

Progress is added to the saved amount, then:
1. Completion: saved >= target while still active -> completed, one reward of
   int(100 + (target / 1000) * multiplier) coins, multiplier 1.5 when any
   days remain before the target date, else 1.0.
2. Milestones: 25/50/75% in ascending order, each awarded once, worth
   as many coins as its percentage.

NOTE: the early-completion multiplier is flat. A goal finished one day early
earns the same bonus as one finished a year early.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, Field

from rewards_engine.models.events import GrantReward, LedgerEvent, SaveGoal
from rewards_engine.models.records import (
    CurrencyReward,
    GoalRecord,
    GoalStatus,
    GoalType,
    RewardRecord,
    RewardSource,
)


MILESTONE_THRESHOLDS: tuple[int, ...] = (25, 50, 75)
BASE_COMPLETION_COINS = Decimal("100")
AMOUNT_PER_COIN = Decimal("1000")
EARLY_COMPLETION_MULTIPLIER = Decimal("1.5")
ON_TIME_MULTIPLIER = Decimal("1")

_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


def milestone_id(threshold: int) -> str:
    return f"{threshold}_percent"


def progress_percentage(current_amount: Decimal, target_amount: Decimal) -> Decimal:
    """min(100, saved / target * 100), rounded to 2 decimal places."""
    if target_amount <= 0:
        return Decimal("0.00")
    percentage = (current_amount / target_amount * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)
    return min(_HUNDRED.quantize(_CENT), percentage)


def days_remaining(target_date: date, today: date) -> int:
    return max(0, (target_date - today).days)


def completion_coins(target_amount: Decimal, target_date: date, today: date) -> int:
    multiplier = (
        EARLY_COMPLETION_MULTIPLIER
        if days_remaining(target_date, today) > 0
        else ON_TIME_MULTIPLIER
    )
    return int(BASE_COMPLETION_COINS + (target_amount / AMOUNT_PER_COIN) * multiplier)


def new_goal(
    user_id: str,
    name: str,
    target_amount: Decimal,
    target_date: date,
    today: date,
    now: datetime,
    goal_type: GoalType = GoalType.SAVINGS,
    description: Optional[str] = None,
) -> GoalRecord:
    return GoalRecord(
        user_id=user_id,
        name=name,
        description=description,
        goal_type=goal_type,
        target_amount=target_amount,
        current_amount=Decimal("0"),
        start_date=today,
        target_date=target_date,
        status=GoalStatus.ACTIVE,
        milestones=[],
        version=0,
        created_at=now,
        updated_at=now,
    )


class GoalOutcome(BaseModel):
    goal: GoalRecord
    progress_percentage: Decimal
    days_remaining: int
    completed_now: bool = False
    new_milestones: list[str] = Field(default_factory=list)
    rewards: list[RewardRecord] = Field(default_factory=list)
    events: list[LedgerEvent] = Field(default_factory=list)


def apply_progress(
    goal: GoalRecord,
    amount: Decimal,
    today: date,
    now: datetime,
) -> GoalOutcome:
    """Add `amount` to the goal. The caller has already checked amount > 0."""
    saved = goal.current_amount + amount
    status = goal.status
    rewards = []
    completed_now = False

    if saved >= goal.target_amount and status == GoalStatus.ACTIVE:
        status = GoalStatus.COMPLETED
        completed_now = True
        rewards.append(
            RewardRecord(
                user_id=goal.user_id,
                source=RewardSource.GOAL_COMPLETION,
                payload=CurrencyReward(
                    name=f"Goal Achieved: {goal.name}"[:200],
                    description=(
                        f"Congratulations! You've achieved your goal of {goal.target_amount}."
                    ),
                    coin_amount=completion_coins(goal.target_amount, goal.target_date, today),
                ),
                metadata={"goal_id": str(goal.goal_id)},
                created_at=now,
                claimed_at=now,
            )
        )

    progress = progress_percentage(saved, goal.target_amount)
    milestones = list(goal.milestones)
    new_milestones = []

    for threshold in MILESTONE_THRESHOLDS:
        key = milestone_id(threshold)
        if progress >= threshold and key not in milestones:
            milestones.append(key)
            new_milestones.append(key)
            rewards.append(
                RewardRecord(
                    user_id=goal.user_id,
                    source=RewardSource.MILESTONE,
                    payload=CurrencyReward(
                        name=f"{threshold}% Progress",
                        description=f"Great progress! You've reached {threshold}% of your goal.",
                        coin_amount=threshold,
                    ),
                    metadata={"goal_id": str(goal.goal_id), "milestone": key},
                    created_at=now,
                    claimed_at=now,
                )
            )

    updated = goal.model_copy(
        update={
            "current_amount": saved,
            "status": status,
            "milestones": milestones,
            "updated_at": now,
        }
    )

    events: list[LedgerEvent] = [SaveGoal(goal=updated, expected_version=goal.version)]
    events.extend(GrantReward(reward=reward) for reward in rewards)

    return GoalOutcome(
        goal=updated,
        progress_percentage=progress,
        days_remaining=days_remaining(goal.target_date, today),
        completed_now=completed_now,
        new_milestones=new_milestones,
        rewards=rewards,
        events=events,
    )
