"""
In-Memory Storage Implementation

The reference implementation of the ledger store. Used by the test suite
and by the "memory" backend for local runs.

commit() runs under an asyncio.Lock and validates the whole change set
before applying any of it, so a failed commit leaves no trace. Records are
copied on the way in and out; callers never share objects with the store.
"""

import asyncio
from datetime import date
from typing import Mapping, Optional
from uuid import UUID

from rewards_engine.models.audit import AuditEvent
from rewards_engine.models.events import (
    ChangeSet,
    ClaimReward,
    GrantReward,
    RecordSpin,
    SaveGoal,
    SaveLevel,
    SaveStreak,
)
from rewards_engine.models.records import (
    GoalRecord,
    GoalStatus,
    LevelRecord,
    RewardRecord,
    RewardSource,
    SpinRecord,
    StreakRecord,
)
from rewards_engine.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentUpdateConflict,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)


def _newest_first(reward: RewardRecord):
    return reward.claimed_at or reward.created_at


def _check_version(kind: str, stored, expected_version: int) -> None:
    stored_version = stored.version if stored is not None else 0
    if stored_version != expected_version:
        raise ConcurrentUpdateConflict(
            f"{kind} changed concurrently "
            f"(expected version {expected_version}, found {stored_version})"
        )


def validate_change_set(
    changes: ChangeSet,
    rewards: Mapping[UUID, RewardRecord],
    spins: Mapping[tuple[str, date], SpinRecord],
    streaks: Mapping[tuple[str, str], StreakRecord],
    goals: Mapping[UUID, GoalRecord],
    levels: Mapping[str, LevelRecord],
) -> None:
    """
    Check every precondition of a change set against stored state.

    Raises before anything is written. Shared by every store so that all
    backends reject the same change sets.
    """
    user_id = changes.user_id
    claimed_in_batch: set[UUID] = set()

    for event in changes.events:
        if isinstance(event, GrantReward):
            if event.reward.user_id != user_id:
                raise StorageError("Reward belongs to a different user than the change set")
            if event.reward.reward_id in rewards:
                raise DuplicateError(f"Reward already exists: {event.reward.reward_id}")

        elif isinstance(event, RecordSpin):
            if event.spin.user_id != user_id:
                raise StorageError("Spin belongs to a different user than the change set")
            if (event.spin.user_id, event.spin.spin_date) in spins:
                raise DuplicateError(
                    f"Spin already recorded for {user_id} on {event.spin.spin_date}"
                )

        elif isinstance(event, ClaimReward):
            reward = rewards.get(event.reward_id)
            if reward is None or reward.user_id != user_id:
                raise NotFoundError(f"Reward not found: {event.reward_id}")
            if reward.is_claimed or event.reward_id in claimed_in_batch:
                raise ConcurrentUpdateConflict(f"Reward already claimed: {event.reward_id}")
            claimed_in_batch.add(event.reward_id)

        elif isinstance(event, SaveStreak):
            stored = streaks.get((event.streak.user_id, event.streak.activity_kind))
            _check_version("streak", stored, event.expected_version)

        elif isinstance(event, SaveGoal):
            stored = goals.get(event.goal.goal_id)
            if stored is not None and stored.user_id != user_id:
                raise NotFoundError(f"Goal not found: {event.goal.goal_id}")
            _check_version("goal", stored, event.expected_version)

        elif isinstance(event, SaveLevel):
            stored = levels.get(event.level.user_id)
            _check_version("level", stored, event.expected_version)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Ledger store backed by dictionaries."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._rewards: dict[UUID, RewardRecord] = {}
        self._spins: dict[tuple[str, date], SpinRecord] = {}
        self._streaks: dict[tuple[str, str], StreakRecord] = {}
        self._goals: dict[UUID, GoalRecord] = {}
        self._levels: dict[str, LevelRecord] = {}
        self.commit_count = 0

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_reward(self, user_id: str, reward_id: UUID) -> Optional[RewardRecord]:
        reward = self._rewards.get(reward_id)
        if reward is None or reward.user_id != user_id:
            return None
        return reward.model_copy(deep=True)

    async def list_rewards(
        self,
        user_id: str,
        claimed: Optional[bool] = None,
        source: Optional[RewardSource] = None,
        limit: Optional[int] = None,
    ) -> list[RewardRecord]:
        rewards = []
        for reward in self._rewards.values():
            if reward.user_id != user_id:
                continue
            if claimed is not None and reward.is_claimed != claimed:
                continue
            if source is not None and reward.source != source:
                continue
            rewards.append(reward.model_copy(deep=True))

        rewards.sort(key=_newest_first, reverse=True)
        return rewards[:limit] if limit is not None else rewards

    async def sum_claimed_coins(self, user_id: str) -> int:
        return sum(
            r.coin_amount
            for r in self._rewards.values()
            if r.user_id == user_id and r.is_claimed
        )

    async def count_claimed_badges(self, user_id: str) -> int:
        return sum(
            1
            for r in self._rewards.values()
            if r.user_id == user_id and r.is_claimed and r.badge_name
        )

    async def get_spin(self, user_id: str, spin_date: date) -> Optional[SpinRecord]:
        spin = self._spins.get((user_id, spin_date))
        return spin.model_copy(deep=True) if spin else None

    async def list_spins(self, user_id: str, limit: Optional[int] = None) -> list[SpinRecord]:
        spins = [
            s.model_copy(deep=True)
            for (owner, _), s in self._spins.items()
            if owner == user_id
        ]
        spins.sort(key=lambda s: s.spin_date, reverse=True)
        return spins[:limit] if limit is not None else spins

    async def get_streak(self, user_id: str, activity_kind: str) -> Optional[StreakRecord]:
        streak = self._streaks.get((user_id, activity_kind))
        return streak.model_copy(deep=True) if streak else None

    async def get_goal(self, user_id: str, goal_id: UUID) -> Optional[GoalRecord]:
        goal = self._goals.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return None
        return goal.model_copy(deep=True)

    async def find_goals(
        self,
        user_id: str,
        status: Optional[GoalStatus] = None,
    ) -> list[GoalRecord]:
        goals = [
            g.model_copy(deep=True)
            for g in self._goals.values()
            if g.user_id == user_id and (status is None or g.status == status)
        ]
        if status == GoalStatus.COMPLETED:
            goals.sort(key=lambda g: g.updated_at, reverse=True)
        else:
            goals.sort(key=lambda g: g.target_date)
        return goals

    async def get_level(self, user_id: str) -> Optional[LevelRecord]:
        level = self._levels.get(user_id)
        return level.model_copy(deep=True) if level else None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def commit(self, changes: ChangeSet) -> None:
        async with self._lock:
            validate_change_set(
                changes,
                rewards=self._rewards,
                spins=self._spins,
                streaks=self._streaks,
                goals=self._goals,
                levels=self._levels,
            )
            self._apply(changes)
            self.commit_count += 1

    def _apply(self, changes: ChangeSet) -> None:
        for event in changes.events:
            if isinstance(event, GrantReward):
                self._rewards[event.reward.reward_id] = event.reward.model_copy(deep=True)

            elif isinstance(event, RecordSpin):
                key = (event.spin.user_id, event.spin.spin_date)
                self._spins[key] = event.spin.model_copy(deep=True)

            elif isinstance(event, ClaimReward):
                reward = self._rewards[event.reward_id]
                self._rewards[event.reward_id] = reward.claim(event.claimed_at)

            elif isinstance(event, SaveStreak):
                key = (event.streak.user_id, event.streak.activity_kind)
                self._streaks[key] = event.streak.model_copy(
                    update={"version": event.expected_version + 1}, deep=True
                )

            elif isinstance(event, SaveGoal):
                self._goals[event.goal.goal_id] = event.goal.model_copy(
                    update={"version": event.expected_version + 1}, deep=True
                )

            elif isinstance(event, SaveLevel):
                self._levels[event.level.user_id] = event.level.model_copy(
                    update={"version": event.expected_version + 1}, deep=True
                )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
