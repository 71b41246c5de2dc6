"""
Main Orchestrator for the Rewards Engine

This module ties the components together behind one facade that
collaborators (e.g. an HTTP layer) call:
1. Daily spin
2. Streak logging
3. Goal creation and progress
4. Level recalculation, progress and summary
5. Reward issuing and claiming
6. Read-only projections and the dashboard

DESIGN DECISION: The components never retry. The facade is their caller,
so it owns the retry policy: an operation that fails with
ConcurrentUpdateConflict wrote nothing and is run again from fresh state,
up to conflict_retry_attempts times. Every step is audited.
"""

from datetime import date
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rewards_engine.audit import AuditLogger, create_correlation_id
from rewards_engine.config import EngineSettings, get_settings
from rewards_engine.models.records import (
    GoalRecord,
    GoalType,
    RewardPayload,
    RewardRecord,
    RewardSource,
)
from rewards_engine.models.results import (
    ClaimResult,
    Dashboard,
    GoalState,
    GoalsOverview,
    LevelProgress,
    LevelState,
    LevelSummary,
    RewardStats,
    RewardsOverview,
    SpinHistory,
    SpinResult,
    SpinStats,
    StreakState,
)
from rewards_engine.queries import RewardQueryExecutor
from rewards_engine.rules.spin import RandomSource
from rewards_engine.services.clock import Clock, SystemClock
from rewards_engine.services.goal_tracker import Amount, GoalTracker
from rewards_engine.services.level_calculator import LevelCalculator
from rewards_engine.services.reward_drawer import AlreadySpunToday, RewardDrawer
from rewards_engine.services.reward_ledger import RewardLedger
from rewards_engine.services.storage import (
    ConcurrentUpdateConflict,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    StorageError,
)
from rewards_engine.services.streak_tracker import StreakTracker


T = TypeVar("T")

logger = structlog.get_logger(__name__)


class GamificationService:
    """
    Facade over the progression and rewards engine.

    All methods take the acting user id; identity resolution happens
    upstream.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        clock: Optional[Clock] = None,
        rng: Optional[RandomSource] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._settings = settings or get_settings().engine
        self._clock = clock or SystemClock(self._settings.timezone)
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()  # Local-only logging

        self.levels = LevelCalculator(store, self._clock)
        self.drawer = RewardDrawer(store, self._clock, self.levels, rng=rng)
        self.streaks = StreakTracker(store, self._clock, self.levels)
        self.goals = GoalTracker(store, self._clock, self.levels)
        self.ledger = RewardLedger(store, self._clock, self.levels)
        self.queries = RewardQueryExecutor(store)

    @property
    def clock(self) -> Clock:
        return self._clock

    async def _run(
        self,
        operation: str,
        user_id: str,
        correlation_id: UUID,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run a write operation, retrying it on optimistic concurrency conflicts.

        Storage failures are audited and re-raised.
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(ConcurrentUpdateConflict),
                stop=stop_after_attempt(self._settings.conflict_retry_attempts),
                wait=wait_exponential(multiplier=0.05, max=1),
                reraise=True,
            ):
                with attempt:
                    try:
                        result = await call()
                    except ConcurrentUpdateConflict as e:
                        await self._audit_logger.log_conflict(
                            user_id=user_id,
                            operation=operation,
                            attempt=attempt.retry_state.attempt_number,
                            error_message=str(e),
                            correlation_id=correlation_id,
                        )
                        raise
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                user_id=user_id,
                details={"operation": operation},
                correlation_id=correlation_id,
            )
            raise
        return result

    # -------------------------------------------------------------------------
    # Daily spin
    # -------------------------------------------------------------------------

    async def perform_daily_spin(self, user_id: str) -> SpinResult:
        """
        Spin once for today.

        Raises:
            AlreadySpunToday: The user already spun today
        """
        correlation_id = create_correlation_id()

        try:
            result = await self._run(
                "perform_daily_spin",
                user_id,
                correlation_id,
                lambda: self.drawer.perform_daily_spin(user_id),
            )
        except AlreadySpunToday as e:
            await self._audit_logger.log_spin_rejected(
                user_id=user_id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_spin_performed(
            user_id=user_id,
            spin_id=result.spin.spin_id,
            reward_name=result.reward.name,
            coins=result.reward.coin_amount,
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_level(result.level, correlation_id)
        return result

    async def can_spin_today(self, user_id: str) -> bool:
        return await self.drawer.can_spin_today(user_id)

    async def get_spin_history(self, user_id: str, limit: Optional[int] = None) -> SpinHistory:
        return await self.queries.spin_history(
            user_id, limit or self._settings.spin_history_limit
        )

    async def get_spin_stats(self, user_id: str) -> SpinStats:
        return await self.queries.spin_stats(user_id)

    # -------------------------------------------------------------------------
    # Streaks
    # -------------------------------------------------------------------------

    async def update_streak(
        self,
        user_id: str,
        activity_kind: Optional[str] = None,
    ) -> StreakState:
        """Log the activity (default: expense logging) for today."""
        activity_kind = activity_kind or self._settings.default_activity_kind
        correlation_id = create_correlation_id()

        state = await self._run(
            "update_streak",
            user_id,
            correlation_id,
            lambda: self.streaks.update_streak(user_id, activity_kind),
        )

        await self._audit_logger.log_streak_updated(
            user_id=user_id,
            activity_kind=activity_kind,
            streak_count=state.streak_count,
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_rewards_granted(state.rewards, correlation_id)
        await self._audit_logger.log_level(state.level, correlation_id)
        return state

    async def get_streak(
        self,
        user_id: str,
        activity_kind: Optional[str] = None,
    ) -> StreakState:
        return await self.streaks.get_streak(
            user_id, activity_kind or self._settings.default_activity_kind
        )

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: Amount,
        target_date: date,
        goal_type: GoalType = GoalType.SAVINGS,
        description: Optional[str] = None,
    ) -> GoalRecord:
        correlation_id = create_correlation_id()

        goal = await self._run(
            "create_goal",
            user_id,
            correlation_id,
            lambda: self.goals.create_goal(
                user_id,
                name=name,
                target_amount=target_amount,
                target_date=target_date,
                goal_type=goal_type,
                description=description,
            ),
        )

        await self._audit_logger.log_goal_created(
            user_id=user_id,
            goal_id=goal.goal_id,
            name=goal.name,
            target_amount=str(goal.target_amount),
            correlation_id=correlation_id,
        )
        return goal

    async def update_goal_progress(
        self,
        user_id: str,
        goal_id: UUID,
        amount: Amount,
    ) -> GoalState:
        """
        Raises:
            InvalidAmount: amount <= 0
            GoalNotFound: unknown goal or not owned by the user
        """
        correlation_id = create_correlation_id()

        state = await self._run(
            "update_goal_progress",
            user_id,
            correlation_id,
            lambda: self.goals.update_goal_progress(user_id, goal_id, amount),
        )

        await self._audit_logger.log_goal_progress(
            user_id=user_id,
            goal_id=goal_id,
            amount=str(amount),
            progress_percentage=str(state.progress_percentage),
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_rewards_granted(state.rewards, correlation_id)
        await self._audit_logger.log_level(state.level, correlation_id)
        return state

    async def list_goals(self, user_id: str) -> GoalsOverview:
        return await self.goals.list_goals(user_id)

    # -------------------------------------------------------------------------
    # Levels
    # -------------------------------------------------------------------------

    async def recalculate_level(self, user_id: str) -> LevelState:
        correlation_id = create_correlation_id()

        state = await self._run(
            "recalculate_level",
            user_id,
            correlation_id,
            lambda: self.levels.recalculate_level(user_id),
        )

        await self._audit_logger.log_level(state, correlation_id)
        return state

    async def get_progress(self, user_id: str) -> LevelProgress:
        return await self._run(
            "get_progress",
            user_id,
            create_correlation_id(),
            lambda: self.levels.get_progress(user_id),
        )

    async def get_level_summary(self, user_id: str) -> LevelSummary:
        return await self._run(
            "get_level_summary",
            user_id,
            create_correlation_id(),
            lambda: self.levels.get_summary(
                user_id, self._settings.recent_achievements_limit
            ),
        )

    # -------------------------------------------------------------------------
    # Reward ledger
    # -------------------------------------------------------------------------

    async def issue_reward(
        self,
        user_id: str,
        payload: RewardPayload,
        source: RewardSource = RewardSource.ISSUED,
        metadata: Optional[dict] = None,
    ) -> RewardRecord:
        """Create an unclaimed reward for the user to claim later."""
        correlation_id = create_correlation_id()

        reward = await self._run(
            "issue_reward",
            user_id,
            correlation_id,
            lambda: self.ledger.issue_reward(user_id, payload, source, metadata),
        )

        await self._audit_logger.log_reward_issued(reward, correlation_id)
        return reward

    async def claim_reward(self, user_id: str, reward_id: UUID) -> ClaimResult:
        """
        Raises:
            RewardNotFound: unknown reward or not owned by the user
            RewardAlreadyClaimed: the reward was claimed before
        """
        correlation_id = create_correlation_id()

        result = await self._run(
            "claim_reward",
            user_id,
            correlation_id,
            lambda: self.ledger.claim_reward(user_id, reward_id),
        )

        await self._audit_logger.log_reward_claimed(result.reward, correlation_id)
        await self._audit_logger.log_level(result.level, correlation_id)
        return result

    async def get_unclaimed_rewards(self, user_id: str) -> list[RewardRecord]:
        return await self.queries.unclaimed_rewards(user_id)

    async def get_recent_rewards(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[RewardRecord]:
        return await self.queries.recent_rewards(
            user_id, limit or self._settings.recent_rewards_limit
        )

    async def get_rewards_by_source(
        self,
        user_id: str,
        source: RewardSource,
    ) -> list[RewardRecord]:
        return await self.queries.rewards_by_source(user_id, source)

    async def get_reward_stats(self, user_id: str) -> RewardStats:
        return await self.queries.reward_stats(user_id)

    async def get_rewards_overview(self, user_id: str) -> RewardsOverview:
        return await self.queries.rewards_overview(
            user_id, self._settings.recent_rewards_limit
        )

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    async def get_dashboard(self, user_id: str) -> Dashboard:
        """Everything the gamification home screen shows, in one call."""
        goals = await self.list_goals(user_id)
        return Dashboard(
            streak=await self.get_streak(user_id),
            level=await self.get_level_summary(user_id),
            active_goals=goals.active_goals,
            can_spin=await self.can_spin_today(user_id),
            recent_rewards=await self.get_recent_rewards(
                user_id, self._settings.dashboard_rewards_limit
            ),
        )


def create_engine_components(
    settings: Optional[EngineSettings] = None,
    clock: Optional[Clock] = None,
    rng: Optional[RandomSource] = None,
) -> GamificationService:
    """
    Factory function to create the engine with the configured backend.

    Args:
        settings: Engine settings (default: get_settings().engine)
        clock: Clock override, e.g. a FixedClock in tests
        rng: Random source override for the daily spin

    Returns:
        A GamificationService wired to the configured ledger store
    """
    settings = settings or get_settings().engine

    if settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        store = GoogleSheetsLedgerStore(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    logger.info(
        "engine_created",
        storage_backend=settings.storage_backend,
        environment=settings.app_environment,
    )

    return GamificationService(
        store=store,
        clock=clock,
        rng=rng,
        audit_logger=audit_logger,
        settings=settings,
    )
