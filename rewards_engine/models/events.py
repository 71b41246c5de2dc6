"""
Ledger Events

The rules in rewards_engine.rules never touch storage. They return a list of
events describing what must change; services bundle those into a ChangeSet
and hand it to LedgerStoreInterface.commit(), which applies all of them or
none of them.

Aggregate saves carry the version the writer read. A store that sees a
different stored version rejects the whole change set, which is what keeps
badges, milestones and level-ups from being granted twice.
"""

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rewards_engine.models.records import (
    GoalRecord,
    LevelRecord,
    RewardRecord,
    SpinRecord,
    StreakRecord,
)


class GrantReward(BaseModel):
    """Append a reward to the ledger."""
    model_config = ConfigDict(frozen=True)

    event: Literal["grant_reward"] = "grant_reward"
    reward: RewardRecord


class RecordSpin(BaseModel):
    """Record the day's spin. Fails if one already exists for that date."""
    model_config = ConfigDict(frozen=True)

    event: Literal["record_spin"] = "record_spin"
    spin: SpinRecord


class ClaimReward(BaseModel):
    """Set a reward's claimed timestamp. Fails if it is already set."""
    model_config = ConfigDict(frozen=True)

    event: Literal["claim_reward"] = "claim_reward"
    reward_id: UUID
    claimed_at: datetime


class SaveStreak(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Literal["save_streak"] = "save_streak"
    streak: StreakRecord
    expected_version: int = Field(..., ge=0)


class SaveGoal(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Literal["save_goal"] = "save_goal"
    goal: GoalRecord
    expected_version: int = Field(..., ge=0)


class SaveLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Literal["save_level"] = "save_level"
    level: LevelRecord
    expected_version: int = Field(..., ge=0)


LedgerEvent = Annotated[
    Union[GrantReward, RecordSpin, ClaimReward, SaveStreak, SaveGoal, SaveLevel],
    Field(discriminator="event"),
]


class ChangeSet(BaseModel):
    """
    Everything one operation writes for one user.

    Applied atomically by the store.
    """

    user_id: str = Field(..., min_length=1)
    events: list[LedgerEvent] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.events

    def add(self, *events: LedgerEvent) -> "ChangeSet":
        self.events.extend(events)
        return self
