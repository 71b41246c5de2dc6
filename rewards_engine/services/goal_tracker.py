"""
Goal Tracker

Creation, progress and listing of monetary goals.

Amounts are Decimal, rounded half-up to cents on the way in, matching the
two-decimal precision of the stored goal.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID

from rewards_engine.models.events import ChangeSet, SaveGoal
from rewards_engine.models.records import GoalRecord, GoalStatus, GoalType
from rewards_engine.models.results import GoalState, GoalsOverview
from rewards_engine.rules.goals import apply_progress, new_goal
from rewards_engine.services.clock import Clock
from rewards_engine.services.level_calculator import LevelCalculator
from rewards_engine.services.storage import LedgerStoreInterface


Amount = Union[Decimal, int, str]

_CENT = Decimal("0.01")


class GoalTrackerError(Exception):
    """Base exception for goal errors."""
    pass


class GoalNotFound(GoalTrackerError):
    """The goal does not exist or belongs to another user."""

    def __init__(self, goal_id: UUID):
        self.goal_id = goal_id
        super().__init__(f"Goal not found: {goal_id}")


class InvalidAmount(GoalTrackerError):
    """A target or progress amount that is not a positive number."""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be greater than zero, got {amount!r}")


def _positive_amount(amount: Amount) -> Decimal:
    try:
        value = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(amount)
    if not value.is_finite() or value <= 0:
        raise InvalidAmount(amount)
    return value


class GoalTracker:
    """
    Tracks progress toward goals and grants milestone and completion rewards.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        clock: Clock,
        levels: LevelCalculator,
    ):
        self._store = store
        self._clock = clock
        self._levels = levels

    async def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: Amount,
        target_date: date,
        goal_type: GoalType = GoalType.SAVINGS,
        description: Optional[str] = None,
    ) -> GoalRecord:
        """
        Create an active goal starting today.

        Raises:
            InvalidAmount: target_amount <= 0
            pydantic.ValidationError: empty name, or target date before today
        """
        goal = new_goal(
            user_id=user_id,
            name=name,
            target_amount=_positive_amount(target_amount),
            target_date=target_date,
            today=self._clock.today(),
            now=self._clock.now(),
            goal_type=goal_type,
            description=description,
        )
        await self._store.commit(
            ChangeSet(user_id=user_id, events=[SaveGoal(goal=goal, expected_version=0)])
        )
        return goal.model_copy(update={"version": 1})

    async def get_goal(self, user_id: str, goal_id: UUID) -> GoalRecord:
        goal = await self._store.get_goal(user_id, goal_id)
        if goal is None:
            raise GoalNotFound(goal_id)
        return goal

    async def update_goal_progress(
        self,
        user_id: str,
        goal_id: UUID,
        amount: Amount,
    ) -> GoalState:
        """
        Add `amount` to the goal's saved amount.

        Completion and milestone rewards, the goal and the new level are
        committed as one change set.

        Raises:
            InvalidAmount: amount <= 0
            GoalNotFound: unknown goal or not owned by user_id
            ConcurrentUpdateConflict: The goal or level moved concurrently
        """
        value = _positive_amount(amount)
        goal = await self.get_goal(user_id, goal_id)

        now = self._clock.now()
        outcome = apply_progress(goal, value, self._clock.today(), now)

        changes = ChangeSet(user_id=user_id, events=outcome.events)
        level = None
        if outcome.rewards:
            level_outcome = await self._levels.plan(user_id, outcome.rewards, now)
            changes.add(*level_outcome.events)
            level = LevelCalculator.to_state(level_outcome)

        await self._store.commit(changes)

        updated = outcome.goal
        return GoalState(
            goal_id=updated.goal_id,
            name=updated.name,
            current_amount=updated.current_amount,
            target_amount=updated.target_amount,
            status=updated.status,
            progress_percentage=outcome.progress_percentage,
            days_remaining=outcome.days_remaining,
            milestones=list(updated.milestones),
            completed_now=outcome.completed_now,
            rewards=outcome.rewards,
            level=level,
        )

    async def list_goals(self, user_id: str) -> GoalsOverview:
        """Active goals by target date, completed goals newest first."""
        return GoalsOverview(
            active_goals=await self._store.find_goals(user_id, GoalStatus.ACTIVE),
            completed_goals=await self._store.find_goals(user_id, GoalStatus.COMPLETED),
        )
