"""
Audit Models for the Rewards Engine

Every grant, rejection and level change is logged for audit purposes.
This provides:
1. Complete traceability of where each coin came from
2. Debugging information when a grant looks wrong
3. Ability to reconstruct a user's progression

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each engine operation has its own event types.
    """
    # Daily spin
    SPIN_PERFORMED = "spin_performed"
    SPIN_REJECTED = "spin_rejected"

    # Streaks
    STREAK_UPDATED = "streak_updated"
    STREAK_BADGE_AWARDED = "streak_badge_awarded"

    # Goals
    GOAL_CREATED = "goal_created"
    GOAL_PROGRESS_UPDATED = "goal_progress_updated"
    GOAL_MILESTONE_REACHED = "goal_milestone_reached"
    GOAL_COMPLETED = "goal_completed"

    # Levels
    LEVEL_RECALCULATED = "level_recalculated"
    LEVEL_UP = "level_up"

    # Reward ledger
    REWARD_ISSUED = "reward_issued"
    REWARD_CLAIMED = "reward_claimed"

    # System events
    CONCURRENT_UPDATE_CONFLICT = "concurrent_update_conflict"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant engine action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event was recorded (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and what
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'reward', 'goal', 'streak')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events of one user action
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.spin_performed(user_id, spin_id, ...)
        event = AuditEventBuilder.level_up(user_id, level, title, ...)
    """

    @staticmethod
    def spin_performed(
        user_id: str,
        spin_id: UUID,
        reward_name: str,
        coins: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPIN_PERFORMED,
            user_id=user_id,
            entity_type="spin",
            entity_id=str(spin_id),
            correlation_id=correlation_id,
            description=f"Daily spin won: {reward_name}",
            details={"reward_name": reward_name, "coins": coins},
        )

    @staticmethod
    def spin_rejected(
        user_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPIN_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="spin",
            correlation_id=correlation_id,
            description="Daily spin rejected",
            details={"reason": reason},
        )

    @staticmethod
    def streak_updated(
        user_id: str,
        activity_kind: str,
        streak_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STREAK_UPDATED,
            user_id=user_id,
            entity_type="streak",
            entity_id=activity_kind,
            correlation_id=correlation_id,
            description=f"Streak '{activity_kind}' is at {streak_count} days",
            details={"streak_count": streak_count},
        )

    @staticmethod
    def streak_badge_awarded(
        user_id: str,
        activity_kind: str,
        badge_id: str,
        coins: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STREAK_BADGE_AWARDED,
            user_id=user_id,
            entity_type="streak",
            entity_id=activity_kind,
            correlation_id=correlation_id,
            description=f"Streak badge awarded: {badge_id}",
            details={"badge_id": badge_id, "coins": coins},
        )

    @staticmethod
    def goal_created(
        user_id: str,
        goal_id: UUID,
        name: str,
        target_amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=str(goal_id),
            correlation_id=correlation_id,
            description=f"Goal created: {name}",
            details={"target_amount": target_amount},
        )

    @staticmethod
    def goal_progress_updated(
        user_id: str,
        goal_id: UUID,
        amount: str,
        progress_percentage: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_PROGRESS_UPDATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=str(goal_id),
            correlation_id=correlation_id,
            description=f"Goal progress +{amount} ({progress_percentage}%)",
            details={"amount": amount, "progress_percentage": progress_percentage},
        )

    @staticmethod
    def goal_milestone_reached(
        user_id: str,
        goal_id: UUID,
        milestone: str,
        coins: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_MILESTONE_REACHED,
            user_id=user_id,
            entity_type="goal",
            entity_id=str(goal_id),
            correlation_id=correlation_id,
            description=f"Goal milestone reached: {milestone}",
            details={"milestone": milestone, "coins": coins},
        )

    @staticmethod
    def goal_completed(
        user_id: str,
        goal_id: UUID,
        coins: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_COMPLETED,
            user_id=user_id,
            entity_type="goal",
            entity_id=str(goal_id),
            correlation_id=correlation_id,
            description="Goal completed",
            details={"coins": coins},
        )

    @staticmethod
    def level_recalculated(
        user_id: str,
        level: int,
        total_coins: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_RECALCULATED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="level",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Level recalculated: {level} at {total_coins} coins",
            details={"level": level, "total_coins": total_coins},
        )

    @staticmethod
    def level_up(
        user_id: str,
        level: int,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEVEL_UP,
            user_id=user_id,
            entity_type="level",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Level up: {level} ({title})",
            details={"level": level, "title": title},
        )

    @staticmethod
    def reward_issued(
        user_id: str,
        reward_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REWARD_ISSUED,
            user_id=user_id,
            entity_type="reward",
            entity_id=str(reward_id),
            correlation_id=correlation_id,
            description=f"Reward issued: {name}",
        )

    @staticmethod
    def reward_claimed(
        user_id: str,
        reward_id: UUID,
        coins: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REWARD_CLAIMED,
            user_id=user_id,
            entity_type="reward",
            entity_id=str(reward_id),
            correlation_id=correlation_id,
            description="Reward claimed",
            details={"coins": coins},
        )

    @staticmethod
    def concurrent_update_conflict(
        user_id: str,
        operation: str,
        attempt: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENT_UPDATE_CONFLICT,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Concurrent update conflict in {operation} (attempt {attempt})",
            details={"operation": operation, "attempt": attempt},
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
