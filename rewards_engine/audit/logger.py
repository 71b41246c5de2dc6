"""
Audit Logger

DESIGN DECISION: Every grant, rejection and level change is logged.
This provides:
1. Complete traceability of where each coin came from
2. Debugging capability when a total looks wrong
3. A per-user history of progression

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the engine if logging fails)
- Supports correlation IDs to trace related events of one user action
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from rewards_engine.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from rewards_engine.models.records import RewardRecord, RewardSource
from rewards_engine.models.results import LevelState
from rewards_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, if one is configured (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_spin_performed(
        self,
        user_id: str,
        spin_id: UUID,
        reward_name: str,
        coins: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.spin_performed(
            user_id=user_id,
            spin_id=spin_id,
            reward_name=reward_name,
            coins=coins,
            correlation_id=correlation_id,
        ))

    async def log_spin_rejected(
        self,
        user_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.spin_rejected(
            user_id=user_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_streak_updated(
        self,
        user_id: str,
        activity_kind: str,
        streak_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.streak_updated(
            user_id=user_id,
            activity_kind=activity_kind,
            streak_count=streak_count,
            correlation_id=correlation_id,
        ))

    async def log_goal_created(
        self,
        user_id: str,
        goal_id: UUID,
        name: str,
        target_amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_created(
            user_id=user_id,
            goal_id=goal_id,
            name=name,
            target_amount=target_amount,
            correlation_id=correlation_id,
        ))

    async def log_goal_progress(
        self,
        user_id: str,
        goal_id: UUID,
        amount: str,
        progress_percentage: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_progress_updated(
            user_id=user_id,
            goal_id=goal_id,
            amount=amount,
            progress_percentage=progress_percentage,
            correlation_id=correlation_id,
        ))

    async def log_rewards_granted(
        self,
        rewards: list[RewardRecord],
        correlation_id: UUID,
    ) -> None:
        """
        Log one event per granted reward, typed by where it came from.

        Spin and level-up grants are logged by their own methods.
        """
        for reward in rewards:
            if reward.source == RewardSource.STREAK_BADGE:
                event = AuditEventBuilder.streak_badge_awarded(
                    user_id=reward.user_id,
                    activity_kind=str(reward.metadata.get("activity_kind", "")),
                    badge_id=str(reward.metadata.get("badge_id", reward.payload.name)),
                    coins=reward.coin_amount,
                    correlation_id=correlation_id,
                )
            elif reward.source == RewardSource.MILESTONE:
                event = AuditEventBuilder.goal_milestone_reached(
                    user_id=reward.user_id,
                    goal_id=UUID(reward.metadata["goal_id"]),
                    milestone=str(reward.metadata.get("milestone", "")),
                    coins=reward.coin_amount,
                    correlation_id=correlation_id,
                )
            elif reward.source == RewardSource.GOAL_COMPLETION:
                event = AuditEventBuilder.goal_completed(
                    user_id=reward.user_id,
                    goal_id=UUID(reward.metadata["goal_id"]),
                    coins=reward.coin_amount,
                    correlation_id=correlation_id,
                )
            else:
                continue
            await self.log(event)

    async def log_level(
        self,
        state: Optional[LevelState],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a recomputation and, if it happened, each level-up."""
        if state is None:
            return

        await self.log(AuditEventBuilder.level_recalculated(
            user_id=state.user_id,
            level=state.current_level,
            total_coins=state.total_coins,
            correlation_id=correlation_id,
        ))
        for reward in state.level_up_rewards:
            await self.log(AuditEventBuilder.level_up(
                user_id=state.user_id,
                level=int(reward.metadata.get("level", state.current_level)),
                title=str(reward.metadata.get("title", state.current_title)),
                correlation_id=correlation_id,
            ))

    async def log_reward_issued(
        self,
        reward: RewardRecord,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reward_issued(
            user_id=reward.user_id,
            reward_id=reward.reward_id,
            name=reward.payload.name,
            correlation_id=correlation_id,
        ))

    async def log_reward_claimed(
        self,
        reward: RewardRecord,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reward_claimed(
            user_id=reward.user_id,
            reward_id=reward.reward_id,
            coins=reward.coin_amount,
            correlation_id=correlation_id,
        ))

    async def log_conflict(
        self,
        user_id: str,
        operation: str,
        attempt: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.concurrent_update_conflict(
            user_id=user_id,
            operation=operation,
            attempt=attempt,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            user_id=user_id,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a daily spin).
    Pass it through all subsequent operations.
    """
    return uuid4()
