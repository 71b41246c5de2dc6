"""
Pure progression rules.

Nothing in here reads a clock, touches storage or keeps state.
Every function takes the current records plus "today"/"now" and returns
the new records and the ledger events to commit.
"""

from rewards_engine.rules.goals import (
    MILESTONE_THRESHOLDS,
    apply_progress,
    completion_coins,
    days_remaining,
    new_goal,
    progress_percentage,
)
from rewards_engine.rules.levels import (
    LEVEL_THRESHOLDS,
    LEVEL_TITLES,
    MAX_LEVEL,
    level_for_coins,
    level_progress,
    recompute_level,
)
from rewards_engine.rules.spin import SPIN_TIERS, SpinTier, draw_tier, spin_events
from rewards_engine.rules.streaks import STREAK_BADGES, advance_streak, badge_coins

__all__ = [
    "LEVEL_THRESHOLDS",
    "LEVEL_TITLES",
    "MAX_LEVEL",
    "MILESTONE_THRESHOLDS",
    "SPIN_TIERS",
    "STREAK_BADGES",
    "SpinTier",
    "advance_streak",
    "apply_progress",
    "badge_coins",
    "completion_coins",
    "days_remaining",
    "draw_tier",
    "level_for_coins",
    "level_progress",
    "new_goal",
    "progress_percentage",
    "recompute_level",
    "spin_events",
]
