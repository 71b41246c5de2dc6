"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger storage.
This allows us to:
1. Run on Google Sheets, a real database, or in memory
2. Use in-memory storage for testing
3. Keep business rules decoupled from storage

Reads are plain repository lookups. There is exactly ONE write entry point,
commit(), which applies a ChangeSet atomically and enforces optimistic
concurrency on every aggregate it saves.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from rewards_engine.models.audit import AuditEvent
from rewards_engine.models.events import ChangeSet
from rewards_engine.models.records import (
    GoalRecord,
    GoalStatus,
    LevelRecord,
    RewardRecord,
    RewardSource,
    SpinRecord,
    StreakRecord,
)


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the ledger store.

    Any storage implementation must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Rewards
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_reward(self, user_id: str, reward_id: UUID) -> Optional[RewardRecord]:
        """
        Retrieve a reward owned by the user.

        Returns:
            The reward if found and owned by user_id, None otherwise
        """
        pass

    @abstractmethod
    async def list_rewards(
        self,
        user_id: str,
        claimed: Optional[bool] = None,
        source: Optional[RewardSource] = None,
        limit: Optional[int] = None,
    ) -> list[RewardRecord]:
        """
        List a user's rewards.

        Args:
            user_id: Owner of the rewards
            claimed: True for claimed only, False for unclaimed only, None for both
            source: Filter by the component that granted the reward
            limit: Maximum number of results (None = all)

        Returns:
            Rewards, newest first (claimed rewards by claimed_at,
            unclaimed by created_at)
        """
        pass

    @abstractmethod
    async def sum_claimed_coins(self, user_id: str) -> int:
        """Sum of coin amounts over all claimed rewards."""
        pass

    @abstractmethod
    async def count_claimed_badges(self, user_id: str) -> int:
        """Number of claimed rewards carrying a badge name."""
        pass

    # -------------------------------------------------------------------------
    # Spins
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_spin(self, user_id: str, spin_date: date) -> Optional[SpinRecord]:
        """The user's spin on spin_date, if any."""
        pass

    @abstractmethod
    async def list_spins(self, user_id: str, limit: Optional[int] = None) -> list[SpinRecord]:
        """Spins, newest date first."""
        pass

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_streak(self, user_id: str, activity_kind: str) -> Optional[StreakRecord]:
        pass

    @abstractmethod
    async def get_goal(self, user_id: str, goal_id: UUID) -> Optional[GoalRecord]:
        """
        Retrieve a goal owned by the user.

        Returns:
            None if the goal does not exist OR belongs to someone else
        """
        pass

    @abstractmethod
    async def find_goals(
        self,
        user_id: str,
        status: Optional[GoalStatus] = None,
    ) -> list[GoalRecord]:
        """
        List a user's goals.

        Active goals are ordered by target date (soonest first),
        completed goals by last update (newest first).
        """
        pass

    @abstractmethod
    async def get_level(self, user_id: str) -> Optional[LevelRecord]:
        pass

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def commit(self, changes: ChangeSet) -> None:
        """
        Apply a change set atomically.

        Every event is applied, or none is. Saved aggregates are stored
        with version = expected_version + 1.

        Raises:
            ConcurrentUpdateConflict: An aggregate's stored version differs
                from the expected one, or a claimed reward is claimed again
            DuplicateError: A spin already exists for (user, date)
            NotFoundError: A claim targets an unknown reward
            StorageError: The backend failed (nothing was written)
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """A user's events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConcurrentUpdateConflict(StorageError):
    """
    An optimistic concurrency check failed.

    Nothing was written. The caller may retry the whole operation;
    its preconditions are evaluated again from fresh state.
    """
    pass
