"""
Result Models

What the engine hands back to its callers. These are read-only views built
from the ledger records; none of them is persisted.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from rewards_engine.models.records import (
    Achievement,
    GoalRecord,
    GoalStatus,
    RewardPayload,
    RewardRecord,
    SpinRecord,
)


class LevelState(BaseModel):
    """Outcome of a level recomputation."""

    user_id: str
    current_level: int
    current_title: str
    total_coins: int
    total_badges: int
    leveled_up: bool = Field(
        default=False,
        description="Did this recomputation raise the level?"
    )
    level_up_rewards: list[RewardRecord] = Field(default_factory=list)


class LevelProgress(BaseModel):
    """How far the user is from the next level."""

    current_level: int
    next_level: Optional[int] = Field(
        default=None,
        description="None at the maximum level"
    )
    current_coins: int
    coins_needed: int = Field(ge=0)
    progress_percentage: float = Field(ge=0.0, le=100.0)
    current_title: str
    next_title: str


class LevelSummary(BaseModel):
    """Level, progress and the most recent achievements."""

    current_level: int
    current_title: str
    total_coins: int
    total_badges: int
    progress: LevelProgress
    recent_achievements: list[Achievement] = Field(default_factory=list)


class SpinResult(BaseModel):
    """Outcome of a successful daily spin."""

    success: bool = True
    reward: RewardPayload
    spin: SpinRecord
    reward_record: RewardRecord
    level: Optional[LevelState] = None
    message: str = "Spin completed successfully!"


class StreakState(BaseModel):
    """A user's streak for one activity kind."""

    user_id: str
    activity_kind: str
    streak_count: int
    last_logged_date: Optional[date] = None
    badges_earned: list[str] = Field(default_factory=list)
    can_log_today: bool
    new_badges: list[str] = Field(
        default_factory=list,
        description="Badge ids awarded by this call"
    )
    rewards: list[RewardRecord] = Field(default_factory=list)
    level: Optional[LevelState] = None


class GoalState(BaseModel):
    """A goal after a progress update."""

    goal_id: UUID
    name: str
    current_amount: Decimal
    target_amount: Decimal
    status: GoalStatus
    progress_percentage: Decimal
    days_remaining: int = Field(ge=0)
    milestones: list[str] = Field(default_factory=list)
    completed_now: bool = False
    rewards: list[RewardRecord] = Field(default_factory=list)
    level: Optional[LevelState] = None

    @property
    def is_completed(self) -> bool:
        return self.status == GoalStatus.COMPLETED


class GoalsOverview(BaseModel):
    active_goals: list[GoalRecord] = Field(default_factory=list)
    completed_goals: list[GoalRecord] = Field(default_factory=list)


class SpinStats(BaseModel):
    total_spins: int = 0
    total_coins_earned: int = 0
    badge_spins: int = 0
    average_coins_per_spin: float = 0.0


class RewardBreakdown(BaseModel):
    """Count and coin sum for one group of claimed rewards."""

    group: str
    count: int
    total_coins: int


class RewardStats(BaseModel):
    total_coins: int = 0
    total_rewards: int = 0
    badge_count: int = 0
    rewards_by_source: list[RewardBreakdown] = Field(default_factory=list)
    rewards_by_kind: list[RewardBreakdown] = Field(default_factory=list)


class RewardsOverview(BaseModel):
    recent_rewards: list[RewardRecord] = Field(default_factory=list)
    reward_stats: RewardStats
    unclaimed_rewards: list[RewardRecord] = Field(default_factory=list)


class SpinHistory(BaseModel):
    spin_history: list[SpinRecord] = Field(default_factory=list)
    spin_stats: SpinStats


class Dashboard(BaseModel):
    """Everything the gamification home screen shows."""

    streak: StreakState
    level: LevelSummary
    active_goals: list[GoalRecord] = Field(default_factory=list)
    can_spin: bool
    recent_rewards: list[RewardRecord] = Field(default_factory=list)


class ClaimResult(BaseModel):
    """A reward after it was claimed, and the level it led to."""

    reward: RewardRecord
    level: LevelState
