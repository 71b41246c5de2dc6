"""
Tests for the Rewards Engine models

Test strategy:
1. Unit tests for records, payloads, events and audit models
2. Rules and services are covered in their own modules
3. No real API calls in tests (use the in-memory store and mocks)
"""

import json
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from rewards_engine.models.records import (
    BadgeReward,
    BonusReward,
    CurrencyReward,
    GoalRecord,
    GoalStatus,
    LevelRecord,
    RewardKind,
    RewardRecord,
    RewardSource,
    SpinRecord,
)
from rewards_engine.models.events import ChangeSet, GrantReward, RecordSpin, SaveLevel
from rewards_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_reward(payload, claimed_at=NOW, user_id="user-1"):
    return RewardRecord(
        user_id=user_id,
        source=RewardSource.DAILY_SPIN,
        payload=payload,
        created_at=NOW,
        claimed_at=claimed_at,
    )


class TestRewardPayloads:
    """Tests for the tagged reward payload variants."""

    def test_currency_payload_dict(self):
        """Test the wire representation of a coin reward."""
        payload = CurrencyReward(name="Coin Bonus", description="25 coins", coin_amount=25)
        assert payload.to_payload_dict() == {
            "kind": "currency",
            "name": "Coin Bonus",
            "description": "25 coins",
            "coinAmount": 25,
        }

    def test_badge_payload_dict_carries_badge_name(self):
        """Test that badge payloads include badgeName."""
        payload = BadgeReward(name="7 Day Streak", coin_amount=50, badge_name="7 Day Streak")
        data = payload.to_payload_dict()
        assert data["kind"] == "badge"
        assert data["badgeName"] == "7 Day Streak"

    def test_negative_coins_rejected(self):
        """Test that negative coin amounts are rejected."""
        with pytest.raises(ValidationError):
            CurrencyReward(name="Broken", coin_amount=-1)

    def test_name_is_stripped_and_required(self):
        """Test whitespace stripping and the empty-name check."""
        assert CurrencyReward(name="  Bonus  ").name == "Bonus"
        with pytest.raises(ValidationError):
            CurrencyReward(name="   ")

    def test_discriminator_parses_dicts(self):
        """Test that a stored payload dict comes back as the right variant."""
        reward = RewardRecord(
            user_id="user-1",
            source=RewardSource.ISSUED,
            payload={"kind": "bonus", "name": "Double", "bonus_code": "double_coins"},
            created_at=NOW,
        )
        assert isinstance(reward.payload, BonusReward)
        assert reward.kind == RewardKind.BONUS


class TestRewardRecord:
    """Tests for reward ledger entries."""

    def test_badge_name_only_for_badges(self):
        """Test that only badge rewards report a badge name."""
        coins = make_reward(CurrencyReward(name="Coins", coin_amount=10))
        badge = make_reward(BadgeReward(name="Lucky", coin_amount=30, badge_name="lucky_spinner"))
        assert coins.badge_name is None
        assert badge.badge_name == "lucky_spinner"
        assert badge.coin_amount == 30

    def test_claim_sets_timestamp_once(self):
        """Test that claim() returns a claimed copy and refuses a second claim."""
        reward = make_reward(CurrencyReward(name="Coins", coin_amount=10), claimed_at=None)
        assert reward.is_claimed is False

        claimed = reward.claim(NOW)
        assert claimed.is_claimed is True
        assert claimed.reward_id == reward.reward_id
        assert reward.is_claimed is False

        with pytest.raises(ValueError):
            claimed.claim(NOW)

    def test_record_is_frozen(self):
        """Test that rewards cannot be mutated in place."""
        reward = make_reward(CurrencyReward(name="Coins", coin_amount=10))
        with pytest.raises(ValidationError):
            reward.claimed_at = None


class TestGoalRecord:
    """Tests for goal validation."""

    def _goal(self, **overrides):
        data = dict(
            user_id="user-1",
            name="Emergency Fund",
            target_amount=Decimal("1000.00"),
            start_date=date(2024, 3, 1),
            target_date=date(2024, 6, 1),
            created_at=NOW,
            updated_at=NOW,
        )
        data.update(overrides)
        return GoalRecord(**data)

    def test_defaults(self):
        """Test a new goal's defaults."""
        goal = self._goal()
        assert goal.status == GoalStatus.ACTIVE
        assert goal.current_amount == Decimal("0")
        assert goal.milestones == []
        assert goal.version == 0

    def test_target_must_be_positive(self):
        """Test that a zero target is rejected."""
        with pytest.raises(ValidationError):
            self._goal(target_amount=Decimal("0"))

    def test_target_date_before_start_rejected(self):
        """Test date relationship validation."""
        with pytest.raises(ValidationError, match="Target date cannot be before start date"):
            self._goal(target_date=date(2024, 2, 1))


class TestChangeSet:
    """Tests for ledger event bundles."""

    def test_add_keeps_event_order(self):
        """Test that add() appends events in order."""
        reward = make_reward(CurrencyReward(name="Coins", coin_amount=10))
        spin = SpinRecord(
            user_id="user-1",
            spin_date=date(2024, 3, 1),
            tier_value="10",
            payload=reward.payload,
            created_at=NOW,
        )
        changes = ChangeSet(user_id="user-1")
        assert changes.is_empty

        changes.add(RecordSpin(spin=spin), GrantReward(reward=reward))
        changes.add(SaveLevel(level=LevelRecord(user_id="user-1"), expected_version=0))

        assert not changes.is_empty
        assert [e.event for e in changes.events] == ["record_spin", "grant_reward", "save_level"]


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.REWARD_CLAIMED,
            description="Reward claimed",
        )
        assert event.event_type == AuditEventType.REWARD_CLAIMED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Sheets row."""
        correlation_id = uuid4()
        event = AuditEventBuilder.goal_milestone_reached(
            user_id="user-1",
            goal_id=uuid4(),
            milestone="25_percent",
            coins=25,
            correlation_id=correlation_id,
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "goal_milestone_reached"
        assert row[4] == "user-1"
        assert row[7] == str(correlation_id)
        assert json.loads(row[9]) == {"milestone": "25_percent", "coins": 25}

    def test_audit_event_builder_spin_rejected(self):
        """Test the spin rejection builder."""
        event = AuditEventBuilder.spin_rejected(
            user_id="user-1",
            reason="already spun",
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.SPIN_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["reason"] == "already spun"

    def test_audit_event_builder_system_error(self):
        """Test the system error builder."""
        event = AuditEventBuilder.system_error(
            error_type="StorageError",
            error_message="Sheets unavailable",
            user_id="user-1",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "Sheets unavailable"
        assert event.to_log_dict()["user_id"] == "user-1"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
