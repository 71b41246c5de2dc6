"""
Core Ledger Records for the Rewards Engine

These models define the strict schemas for everything the engine persists.
They are designed to:
1. Enforce type safety and invariants at runtime
2. Be serializable for storage and logging
3. Carry an optimistic-concurrency version on every aggregate

DESIGN DECISION: A reward's payload is a tagged variant (currency | badge | bonus)
discriminated on `kind`. Code that needs kind-specific fields checks the
variant type instead of poking at an untyped dict.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RewardKind(str, Enum):
    """What a reward gives the user."""
    CURRENCY = "currency"
    BADGE = "badge"
    BONUS = "bonus"


class RewardSource(str, Enum):
    """
    Which part of the engine granted a reward.

    Used for reward statistics and per-source listings.
    """
    DAILY_SPIN = "daily_spin"
    STREAK_BADGE = "streak_badge"
    MILESTONE = "milestone"
    GOAL_COMPLETION = "goal_completion"
    LEVEL_UP = "level_up"
    ISSUED = "issued"  # Created by a collaborator, claimed later


class GoalStatus(str, Enum):
    """
    Goal lifecycle.

    CRITICAL: active -> completed is one-way. Goals are never re-opened.
    """
    ACTIVE = "active"
    COMPLETED = "completed"


class GoalType(str, Enum):
    """Kinds of monetary goals a user can set."""
    SAVINGS = "savings"
    SPENDING_LIMIT = "spending_limit"
    INVESTMENT = "investment"
    DEBT_PAYOFF = "debt_payoff"


# =============================================================================
# REWARD PAYLOADS - tagged variant
# =============================================================================

class _RewardPayloadBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name shown to the user"
    )
    description: str = Field(
        default="",
        max_length=1000,
    )
    coin_amount: int = Field(
        default=0,
        ge=0,
        description="Coins this reward is worth"
    )

    def to_payload_dict(self) -> dict:
        """Wire representation handed to collaborators (e.g. an HTTP layer)."""
        data = {
            "kind": self.kind,
            "name": self.name,
            "description": self.description,
            "coinAmount": self.coin_amount,
        }
        badge_name = getattr(self, "badge_name", None)
        if badge_name:
            data["badgeName"] = badge_name
        return data


class CurrencyReward(_RewardPayloadBase):
    """Plain coins."""
    kind: Literal["currency"] = "currency"


class BadgeReward(_RewardPayloadBase):
    """A named badge, usually with some coins attached."""
    kind: Literal["badge"] = "badge"
    badge_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )


class BonusReward(_RewardPayloadBase):
    """A perk such as double coins; may carry no coins at all."""
    kind: Literal["bonus"] = "bonus"
    bonus_code: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )


RewardPayload = Annotated[
    Union[CurrencyReward, BadgeReward, BonusReward],
    Field(discriminator="kind"),
]


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class RewardRecord(BaseModel):
    """
    One entry of the reward ledger.

    CRITICAL: Immutable. The only change a reward ever sees is its
    claimed timestamp being set, once, via claim() which returns a copy.
    """
    model_config = ConfigDict(frozen=True)

    reward_id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    source: RewardSource
    payload: RewardPayload
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Where the reward came from (tier, badge id, goal id, level...)"
    )
    created_at: datetime
    claimed_at: Optional[datetime] = Field(
        default=None,
        description="None means unclaimed"
    )

    @property
    def kind(self) -> RewardKind:
        return RewardKind(self.payload.kind)

    @property
    def coin_amount(self) -> int:
        return self.payload.coin_amount

    @property
    def badge_name(self) -> Optional[str]:
        if isinstance(self.payload, BadgeReward):
            return self.payload.badge_name
        return None

    @property
    def is_claimed(self) -> bool:
        return self.claimed_at is not None

    def claim(self, claimed_at: datetime) -> "RewardRecord":
        """Return a claimed copy. Raises ValueError if already claimed."""
        if self.claimed_at is not None:
            raise ValueError(f"Reward {self.reward_id} is already claimed")
        return self.model_copy(update={"claimed_at": claimed_at})


class SpinRecord(BaseModel):
    """
    Result of one daily spin.

    INVARIANT: at most one SpinRecord per (user_id, spin_date).
    """
    model_config = ConfigDict(frozen=True)

    spin_id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    spin_date: date
    tier_value: str = Field(
        ...,
        description="Identifier of the spin tier that was drawn"
    )
    payload: RewardPayload
    created_at: datetime

    @property
    def coins_earned(self) -> int:
        return self.payload.coin_amount


class StreakRecord(BaseModel):
    """
    Consecutive-day counter for one (user, activity kind).

    INVARIANT: badges_earned only grows; a badge id is never removed or re-awarded.
    """

    user_id: str = Field(..., min_length=1)
    activity_kind: str = Field(..., min_length=1, max_length=50)
    streak_count: int = Field(default=0, ge=0)
    last_logged_date: Optional[date] = None
    badges_earned: list[str] = Field(default_factory=list)
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency version (0 = not stored yet)"
    )
    updated_at: Optional[datetime] = None


class GoalRecord(BaseModel):
    """
    A monetary goal and the progress saved toward it.

    INVARIANTS:
    - milestones only grows
    - status active -> completed is one-way
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    goal_id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    goal_type: GoalType = GoalType.SAVINGS
    target_amount: Annotated[
        Decimal,
        Field(gt=0, decimal_places=2, description="Amount to reach")
    ]
    current_amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount saved so far")
    ] = Decimal("0")
    start_date: date
    target_date: date
    status: GoalStatus = GoalStatus.ACTIVE
    milestones: list[str] = Field(default_factory=list)
    version: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime

    @model_validator(mode='after')
    def validate_dates(self) -> 'GoalRecord':
        """Validate date relationships."""
        if self.target_date < self.start_date:
            raise ValueError("Target date cannot be before start date")
        return self


class Achievement(BaseModel):
    """One entry of a user's achievement log."""
    model_config = ConfigDict(frozen=True)

    type: Literal["level_up"] = "level_up"
    level: int = Field(..., ge=1)
    title: str
    earned_at: datetime


class LevelRecord(BaseModel):
    """
    A user's level, derived from the reward ledger.

    INVARIANT: current_level never decreases through recomputation.
    """

    user_id: str = Field(..., min_length=1)
    current_level: int = Field(default=1, ge=1)
    total_coins: int = Field(default=0, ge=0)
    total_badges: int = Field(default=0, ge=0)
    current_title: str = Field(default="Saver")
    achievements: list[Achievement] = Field(default_factory=list)
    version: int = Field(default=0, ge=0)
    updated_at: Optional[datetime] = None
