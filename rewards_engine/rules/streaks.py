"""
Streak Rules

State machine per (user, activity kind):

    no record              -> count = 1
    last logged == today   -> unchanged (same-day calls are no-ops)
    last logged == today-1 -> count + 1
    anything else          -> count = 1

After the count moves, badge thresholds are checked in ascending order and
every threshold reached that is not yet in badges_earned is awarded.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from rewards_engine.models.events import GrantReward, LedgerEvent, SaveStreak
from rewards_engine.models.records import (
    BadgeReward,
    RewardRecord,
    RewardSource,
    StreakRecord,
)


class StreakBadge(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: int = Field(..., gt=0)
    badge_id: str
    name: str
    description: str


STREAK_BADGES: tuple[StreakBadge, ...] = (
    StreakBadge(
        threshold=7,
        badge_id="7_day_streak",
        name="7 Day Streak",
        description="Keep it up! You've logged expenses for 7 consecutive days.",
    ),
    StreakBadge(
        threshold=30,
        badge_id="30_day_streak",
        name="30 Day Streak",
        description="Amazing! You've maintained your streak for 30 days.",
    ),
    StreakBadge(
        threshold=100,
        badge_id="100_day_streak",
        name="100 Day Streak",
        description="Incredible! You're a streak master!",
    ),
)

BADGE_COINS: dict[str, int] = {
    "7 Day Streak": 50,
    "30 Day Streak": 200,
    "100 Day Streak": 1000,
}
DEFAULT_BADGE_COINS = 10


def badge_coins(badge_name: str) -> int:
    """Coins attached to a streak badge."""
    return BADGE_COINS.get(badge_name, DEFAULT_BADGE_COINS)


class StreakOutcome(BaseModel):
    record: StreakRecord
    changed: bool
    new_badges: list[str] = Field(default_factory=list)
    rewards: list[RewardRecord] = Field(default_factory=list)
    events: list[LedgerEvent] = Field(default_factory=list)


def next_streak_count(current: Optional[StreakRecord], today: date) -> Optional[int]:
    """The count after logging on `today`, or None when today is already counted."""
    if current is None:
        return 1

    last = current.last_logged_date
    if last == today:
        return None
    if last is not None and (today - last).days == 1:
        return current.streak_count + 1
    return 1


def advance_streak(
    current: Optional[StreakRecord],
    user_id: str,
    activity_kind: str,
    today: date,
    now: datetime,
) -> StreakOutcome:
    """Log the activity for `today` and work out any badges earned."""
    count = next_streak_count(current, today)
    if count is None:
        return StreakOutcome(record=current, changed=False)

    expected_version = current.version if current else 0
    badges = list(current.badges_earned) if current else []

    new_badges = []
    rewards = []
    for badge in STREAK_BADGES:
        if count >= badge.threshold and badge.badge_id not in badges:
            badges.append(badge.badge_id)
            new_badges.append(badge.badge_id)
            rewards.append(
                RewardRecord(
                    user_id=user_id,
                    source=RewardSource.STREAK_BADGE,
                    payload=BadgeReward(
                        name=badge.name,
                        description=badge.description,
                        coin_amount=badge_coins(badge.name),
                        badge_name=badge.name,
                    ),
                    metadata={
                        "activity_kind": activity_kind,
                        "badge_id": badge.badge_id,
                        "streak_count": count,
                    },
                    created_at=now,
                    claimed_at=now,
                )
            )

    record = StreakRecord(
        user_id=user_id,
        activity_kind=activity_kind,
        streak_count=count,
        last_logged_date=today,
        badges_earned=badges,
        version=expected_version,
        updated_at=now,
    )

    events: list[LedgerEvent] = [SaveStreak(streak=record, expected_version=expected_version)]
    events.extend(GrantReward(reward=reward) for reward in rewards)

    return StreakOutcome(
        record=record,
        changed=True,
        new_badges=new_badges,
        rewards=rewards,
        events=events,
    )
