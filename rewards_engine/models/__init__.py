"""
Data Models Package

This package contains all Pydantic models used by the rewards engine.
All data flowing through the engine must conform to these schemas.
"""

from rewards_engine.models.records import (
    Achievement,
    BadgeReward,
    BonusReward,
    CurrencyReward,
    GoalRecord,
    GoalStatus,
    GoalType,
    LevelRecord,
    RewardKind,
    RewardPayload,
    RewardRecord,
    RewardSource,
    SpinRecord,
    StreakRecord,
)
from rewards_engine.models.events import (
    ChangeSet,
    ClaimReward,
    GrantReward,
    LedgerEvent,
    RecordSpin,
    SaveGoal,
    SaveLevel,
    SaveStreak,
)
from rewards_engine.models.results import (
    ClaimResult,
    Dashboard,
    GoalState,
    GoalsOverview,
    LevelProgress,
    LevelState,
    LevelSummary,
    RewardBreakdown,
    RewardStats,
    RewardsOverview,
    SpinHistory,
    SpinResult,
    SpinStats,
    StreakState,
)
from rewards_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger records
    "Achievement",
    "BadgeReward",
    "BonusReward",
    "CurrencyReward",
    "GoalRecord",
    "GoalStatus",
    "GoalType",
    "LevelRecord",
    "RewardKind",
    "RewardPayload",
    "RewardRecord",
    "RewardSource",
    "SpinRecord",
    "StreakRecord",
    # Ledger events
    "ChangeSet",
    "ClaimReward",
    "GrantReward",
    "LedgerEvent",
    "RecordSpin",
    "SaveGoal",
    "SaveLevel",
    "SaveStreak",
    # Results
    "ClaimResult",
    "Dashboard",
    "GoalState",
    "GoalsOverview",
    "LevelProgress",
    "LevelState",
    "LevelSummary",
    "RewardBreakdown",
    "RewardStats",
    "RewardsOverview",
    "SpinHistory",
    "SpinResult",
    "SpinStats",
    "StreakState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
