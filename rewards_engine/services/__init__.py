"""Services package."""

from rewards_engine.services.clock import Clock, FixedClock, SystemClock
from rewards_engine.services.goal_tracker import (
    GoalNotFound,
    GoalTracker,
    GoalTrackerError,
    InvalidAmount,
)
from rewards_engine.services.level_calculator import LevelCalculator
from rewards_engine.services.reward_drawer import (
    AlreadySpunToday,
    RewardDrawer,
    RewardDrawerError,
)
from rewards_engine.services.reward_ledger import (
    RewardAlreadyClaimed,
    RewardLedger,
    RewardLedgerError,
    RewardNotFound,
)
from rewards_engine.services.storage import (
    AuditStorageInterface,
    ConcurrentUpdateConflict,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from rewards_engine.services.streak_tracker import StreakTracker

__all__ = [
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Components
    "GoalTracker",
    "LevelCalculator",
    "RewardDrawer",
    "RewardLedger",
    "StreakTracker",
    # Component errors
    "AlreadySpunToday",
    "GoalNotFound",
    "GoalTrackerError",
    "InvalidAmount",
    "RewardAlreadyClaimed",
    "RewardDrawerError",
    "RewardLedgerError",
    "RewardNotFound",
    # Storage services
    "AuditStorageInterface",
    "ConcurrentUpdateConflict",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageError",
]
