"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Users can inspect their coins, badges and goals directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions and no compare-and-set. Commits for one user are
  serialized across processes with a lease: the writer appends a lease row,
  reads the sheet back, and only proceeds if its row is the oldest live
  lease for that user. Appends are applied in order by Sheets, so every
  reader agrees on who holds it. Versions are checked only after the lease
  is held.
- A commit is several requests (appends, then one in-place batch update).
  A failure half way raises StorageError and can leave part of the change
  set written.
- A writer that stalls past lease_seconds loses its exclusivity.
- Limited query capabilities (we filter in Python)

One row per record. New rows are appended, never written at a computed row
number, so concurrent writers cannot overwrite each other's rows. Existing
aggregates (streaks, goals, levels) and claimed rewards are updated in
place. Nested fields are JSON-serialized.
"""

import asyncio
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rewards_engine.config import GoogleSheetsSettings, get_settings
from rewards_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    ConnectionError,
    LedgerStoreInterface,
    StorageError,
)
from rewards_engine.services.storage.memory import validate_change_set


logger = structlog.get_logger(__name__)


# Column mappings for each sheet
REWARD_COLUMNS = [
    "reward_id",
    "user_id",
    "source",
    "kind",
    "coin_amount",
    "badge_name",
    "payload_json",
    "metadata_json",
    "created_at",
    "claimed_at",
]

SPIN_COLUMNS = [
    "spin_id",
    "user_id",
    "spin_date",
    "tier_value",
    "coins_earned",
    "payload_json",
    "created_at",
]

STREAK_COLUMNS = [
    "user_id",
    "activity_kind",
    "streak_count",
    "last_logged_date",
    "badges_json",
    "version",
    "updated_at",
]

GOAL_COLUMNS = [
    "goal_id",
    "user_id",
    "name",
    "description",
    "goal_type",
    "target_amount",
    "current_amount",
    "start_date",
    "target_date",
    "status",
    "milestones_json",
    "version",
    "created_at",
    "updated_at",
]

LEVEL_COLUMNS = [
    "user_id",
    "current_level",
    "total_coins",
    "total_badges",
    "current_title",
    "achievements_json",
    "version",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

LEASE_COLUMNS = [
    "lease_id",
    "user_id",
    "acquired_at",
    "expires_at",
    "released_at",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and blanks."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _optional_date(value: str) -> Optional[date]:
    return date.fromisoformat(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)

        self._worksheets[title] = sheet
        return sheet

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def batch_write(self, data: list[dict[str, Any]]) -> None:
        """
        Write several ranges in a single API request.

        Every range targets an explicit row, so repeating the request
        after a transient failure writes the same values again.
        """
        self.get_spreadsheet().values_batch_update(
            {"valueInputOption": "RAW", "data": data}
        )


class _Table:
    """
    One worksheet loaded into memory: parsed records keyed by identity,
    plus the sheet row each one lives on.
    """

    def __init__(
        self,
        sheet: gspread.Worksheet,
        parse: Callable[[list], Any],
        key: Callable[[Any], Any],
    ):
        self.sheet = sheet
        self.records: dict[Any, Any] = {}
        self.row_numbers: dict[Any, int] = {}
        self.appends: list[list] = []

        rows = sheet.get_all_values()[1:]  # Skip header
        for number, row in enumerate(rows, start=2):
            if not row or not row[0]:
                continue
            try:
                record = parse(row)
            except Exception as e:
                logger.warning(
                    "skipping_malformed_row",
                    sheet=sheet.title,
                    row=number,
                    error=str(e),
                )
                continue
            # First row wins if a key was ever written twice
            if key(record) in self.records:
                logger.warning("skipping_duplicate_row", sheet=sheet.title, row=number)
                continue
            self.records[key(record)] = record
            self.row_numbers[key(record)] = number

    def stage(self, key: Any, row: list) -> Optional[dict[str, Any]]:
        """
        Queue a write of `row` for `key`.

        Stored records get an in-place update, returned as a batch entry.
        New records are queued for append_rows() and None is returned.
        """
        number = self.row_numbers.get(key)
        if number is None:
            self.appends.append(row)
            return None
        return {"range": f"'{self.sheet.title}'!A{number}", "values": [row]}


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    Each record type has its own worksheet. Reads load the worksheet and
    filter in Python.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _reward_to_row(self, reward: RewardRecord) -> list:
        return [
            str(reward.reward_id),
            reward.user_id,
            reward.source.value,
            reward.kind.value,
            reward.coin_amount,
            reward.badge_name or "",
            json.dumps(reward.payload.model_dump(mode="json")),
            json.dumps(reward.metadata, default=str),
            reward.created_at.isoformat(),
            reward.claimed_at.isoformat() if reward.claimed_at else "",
        ]

    def _row_to_reward(self, row: list) -> RewardRecord:
        return RewardRecord(
            reward_id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            source=RewardSource(_cell(row, 2)),
            payload=json.loads(_cell(row, 6)),
            metadata=json.loads(_cell(row, 7, "{}")),
            created_at=datetime.fromisoformat(_cell(row, 8)),
            claimed_at=_optional_datetime(_cell(row, 9)),
        )

    def _spin_to_row(self, spin: SpinRecord) -> list:
        return [
            str(spin.spin_id),
            spin.user_id,
            spin.spin_date.isoformat(),
            spin.tier_value,
            spin.coins_earned,
            json.dumps(spin.payload.model_dump(mode="json")),
            spin.created_at.isoformat(),
        ]

    def _row_to_spin(self, row: list) -> SpinRecord:
        return SpinRecord(
            spin_id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            spin_date=date.fromisoformat(_cell(row, 2)),
            tier_value=_cell(row, 3),
            payload=json.loads(_cell(row, 5)),
            created_at=datetime.fromisoformat(_cell(row, 6)),
        )

    def _streak_to_row(self, streak: StreakRecord) -> list:
        return [
            streak.user_id,
            streak.activity_kind,
            streak.streak_count,
            streak.last_logged_date.isoformat() if streak.last_logged_date else "",
            json.dumps(streak.badges_earned),
            streak.version,
            streak.updated_at.isoformat() if streak.updated_at else "",
        ]

    def _row_to_streak(self, row: list) -> StreakRecord:
        return StreakRecord(
            user_id=_cell(row, 0),
            activity_kind=_cell(row, 1),
            streak_count=int(_cell(row, 2, "0")),
            last_logged_date=_optional_date(_cell(row, 3)),
            badges_earned=json.loads(_cell(row, 4, "[]")),
            version=int(_cell(row, 5, "0")),
            updated_at=_optional_datetime(_cell(row, 6)),
        )

    def _goal_to_row(self, goal: GoalRecord) -> list:
        return [
            str(goal.goal_id),
            goal.user_id,
            goal.name,
            goal.description or "",
            goal.goal_type.value,
            str(goal.target_amount),
            str(goal.current_amount),
            goal.start_date.isoformat(),
            goal.target_date.isoformat(),
            goal.status.value,
            json.dumps(goal.milestones),
            goal.version,
            goal.created_at.isoformat(),
            goal.updated_at.isoformat(),
        ]

    def _row_to_goal(self, row: list) -> GoalRecord:
        return GoalRecord(
            goal_id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            name=_cell(row, 2),
            description=_cell(row, 3) or None,
            goal_type=_cell(row, 4),
            target_amount=Decimal(_cell(row, 5)),
            current_amount=Decimal(_cell(row, 6, "0")),
            start_date=date.fromisoformat(_cell(row, 7)),
            target_date=date.fromisoformat(_cell(row, 8)),
            status=GoalStatus(_cell(row, 9)),
            milestones=json.loads(_cell(row, 10, "[]")),
            version=int(_cell(row, 11, "0")),
            created_at=datetime.fromisoformat(_cell(row, 12)),
            updated_at=datetime.fromisoformat(_cell(row, 13)),
        )

    def _level_to_row(self, level: LevelRecord) -> list:
        return [
            level.user_id,
            level.current_level,
            level.total_coins,
            level.total_badges,
            level.current_title,
            json.dumps([a.model_dump(mode="json") for a in level.achievements]),
            level.version,
            level.updated_at.isoformat() if level.updated_at else "",
        ]

    def _row_to_level(self, row: list) -> LevelRecord:
        return LevelRecord(
            user_id=_cell(row, 0),
            current_level=int(_cell(row, 1, "1")),
            total_coins=int(_cell(row, 2, "0")),
            total_badges=int(_cell(row, 3, "0")),
            current_title=_cell(row, 4, "Saver"),
            achievements=json.loads(_cell(row, 5, "[]")),
            version=int(_cell(row, 6, "0")),
            updated_at=_optional_datetime(_cell(row, 7)),
        )

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def _rewards(self) -> _Table:
        sheet = self._client.get_worksheet(self._client.settings.rewards_sheet_name, REWARD_COLUMNS)
        return _Table(sheet, self._row_to_reward, lambda r: r.reward_id)

    def _spins(self) -> _Table:
        sheet = self._client.get_worksheet(self._client.settings.spins_sheet_name, SPIN_COLUMNS)
        return _Table(sheet, self._row_to_spin, lambda s: (s.user_id, s.spin_date))

    def _streaks(self) -> _Table:
        sheet = self._client.get_worksheet(self._client.settings.streaks_sheet_name, STREAK_COLUMNS)
        return _Table(sheet, self._row_to_streak, lambda s: (s.user_id, s.activity_kind))

    def _goals(self) -> _Table:
        sheet = self._client.get_worksheet(self._client.settings.goals_sheet_name, GOAL_COLUMNS)
        return _Table(sheet, self._row_to_goal, lambda g: g.goal_id)

    def _levels(self) -> _Table:
        sheet = self._client.get_worksheet(self._client.settings.levels_sheet_name, LEVEL_COLUMNS)
        return _Table(sheet, self._row_to_level, lambda lv: lv.user_id)

    def _load(self, table: Callable[[], _Table], what: str) -> _Table:
        try:
            return table()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {what}: {e}")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_reward(self, user_id: str, reward_id: UUID) -> Optional[RewardRecord]:
        reward = self._load(self._rewards, "rewards").records.get(reward_id)
        if reward is None or reward.user_id != user_id:
            return None
        return reward

    async def list_rewards(
        self,
        user_id: str,
        claimed: Optional[bool] = None,
        source: Optional[RewardSource] = None,
        limit: Optional[int] = None,
    ) -> list[RewardRecord]:
        rewards = [
            r for r in self._load(self._rewards, "rewards").records.values()
            if r.user_id == user_id
            and (claimed is None or r.is_claimed == claimed)
            and (source is None or r.source == source)
        ]
        # Sort newest first
        rewards.sort(key=lambda r: r.claimed_at or r.created_at, reverse=True)
        return rewards[:limit] if limit is not None else rewards

    async def sum_claimed_coins(self, user_id: str) -> int:
        rewards = await self.list_rewards(user_id, claimed=True)
        return sum(r.coin_amount for r in rewards)

    async def count_claimed_badges(self, user_id: str) -> int:
        rewards = await self.list_rewards(user_id, claimed=True)
        return sum(1 for r in rewards if r.badge_name)

    async def get_spin(self, user_id: str, spin_date: date) -> Optional[SpinRecord]:
        return self._load(self._spins, "spins").records.get((user_id, spin_date))

    async def list_spins(self, user_id: str, limit: Optional[int] = None) -> list[SpinRecord]:
        spins = [
            s for s in self._load(self._spins, "spins").records.values()
            if s.user_id == user_id
        ]
        spins.sort(key=lambda s: s.spin_date, reverse=True)
        return spins[:limit] if limit is not None else spins

    async def get_streak(self, user_id: str, activity_kind: str) -> Optional[StreakRecord]:
        return self._load(self._streaks, "streaks").records.get((user_id, activity_kind))

    async def get_goal(self, user_id: str, goal_id: UUID) -> Optional[GoalRecord]:
        goal = self._load(self._goals, "goals").records.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return None
        return goal

    async def find_goals(
        self,
        user_id: str,
        status: Optional[GoalStatus] = None,
    ) -> list[GoalRecord]:
        goals = [
            g for g in self._load(self._goals, "goals").records.values()
            if g.user_id == user_id and (status is None or g.status == status)
        ]
        if status == GoalStatus.COMPLETED:
            goals.sort(key=lambda g: g.updated_at, reverse=True)
        else:
            goals.sort(key=lambda g: g.target_date)
        return goals

    async def get_level(self, user_id: str) -> Optional[LevelRecord]:
        return self._load(self._levels, "levels").records.get(user_id)

    # -------------------------------------------------------------------------
    # Leases
    # -------------------------------------------------------------------------

    def _acquire_lease(self, user_id: str) -> int:
        """
        Append a lease row for the user and read the sheet back.

        The oldest unreleased, unexpired lease for the user holds it.
        Returns our lease row number when that is us. Otherwise our row is
        released and ConcurrentUpdateConflict is raised so the caller can
        retry once the holder is done.
        """
        settings = self._client.settings
        sheet = self._client.get_worksheet(settings.leases_sheet_name, LEASE_COLUMNS)
        now = datetime.now(timezone.utc)
        lease_id = str(uuid4())
        sheet.append_row(
            [
                lease_id,
                user_id,
                now.isoformat(),
                (now + timedelta(seconds=settings.lease_seconds)).isoformat(),
                "",
            ],
            value_input_option="RAW",
            insert_data_option="INSERT_ROWS",
            table_range="A1",
        )

        own_row = None
        holder = None
        for number, row in enumerate(sheet.get_all_values()[1:], start=2):
            if _cell(row, 0) == lease_id:
                own_row = number
            if holder is not None or _cell(row, 1) != user_id or _cell(row, 4):
                continue
            try:
                expires_at = datetime.fromisoformat(_cell(row, 3))
            except ValueError:
                continue
            if expires_at > now:
                holder = _cell(row, 0)

        if own_row is None:
            raise StorageError(f"Lease row {lease_id} not found after append")
        if holder != lease_id:
            self._release_lease(own_row)
            raise ConcurrentUpdateConflict(
                f"Ledger for user {user_id} is being written by another process"
            )
        return own_row

    def _release_lease(self, row: int) -> None:
        """Stamp released_at on a lease row. Failures only log; the lease expires anyway."""
        try:
            self._client.batch_write([{
                "range": f"'{self._client.settings.leases_sheet_name}'!E{row}",
                "values": [[datetime.now(timezone.utc).isoformat()]],
            }])
        except Exception as e:
            logger.warning("lease_release_failed", row=row, error=str(e))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def commit(self, changes: ChangeSet) -> None:
        """
        Take the user's lease, validate against freshly read tables, then
        append new rows and update existing ones in place.
        """
        if changes.is_empty:
            return

        async with self._lock:
            try:
                lease_row = self._acquire_lease(changes.user_id)
            except (ConcurrentUpdateConflict, StorageError):
                raise
            except Exception as e:
                raise StorageError(f"Failed to acquire ledger lease: {e}")

            try:
                self._write(changes)
            finally:
                self._release_lease(lease_row)

    def _write(self, changes: ChangeSet) -> None:
        rewards = self._load(self._rewards, "rewards")
        spins = self._load(self._spins, "spins")
        streaks = self._load(self._streaks, "streaks")
        goals = self._load(self._goals, "goals")
        levels = self._load(self._levels, "levels")

        validate_change_set(
            changes,
            rewards=rewards.records,
            spins=spins.records,
            streaks=streaks.records,
            goals=goals.records,
            levels=levels.records,
        )

        updates = []
        for event in changes.events:
            if isinstance(event, GrantReward):
                table, key = rewards, event.reward.reward_id
                row = self._reward_to_row(event.reward)
            elif isinstance(event, RecordSpin):
                table, key = spins, (event.spin.user_id, event.spin.spin_date)
                row = self._spin_to_row(event.spin)
            elif isinstance(event, ClaimReward):
                table, key = rewards, event.reward_id
                claimed = rewards.records[key].claim(event.claimed_at)
                rewards.records[key] = claimed
                row = self._reward_to_row(claimed)
            elif isinstance(event, SaveStreak):
                table, key = streaks, (event.streak.user_id, event.streak.activity_kind)
                row = self._streak_to_row(
                    event.streak.model_copy(update={"version": event.expected_version + 1})
                )
            elif isinstance(event, SaveGoal):
                table, key = goals, event.goal.goal_id
                row = self._goal_to_row(
                    event.goal.model_copy(update={"version": event.expected_version + 1})
                )
            elif isinstance(event, SaveLevel):
                table, key = levels, event.level.user_id
                row = self._level_to_row(
                    event.level.model_copy(update={"version": event.expected_version + 1})
                )
            else:
                raise StorageError(f"Unsupported ledger event: {event.event}")

            update = table.stage(key, row)
            if update is not None:
                updates.append(update)

        try:
            # Appends are not idempotent, so they go out once without retry
            for table in (rewards, spins, streaks, goals, levels):
                if table.appends:
                    table.sheet.append_rows(
                        table.appends,
                        value_input_option="RAW",
                        insert_data_option="INSERT_ROWS",
                        table_range="A1",
                    )
            if updates:
                self._client.batch_write(updates)
        except Exception as e:
            raise StorageError(f"Failed to commit change set: {e}")

        logger.debug(
            "change_set_committed",
            user_id=changes.user_id,
            appended=sum(len(t.appends) for t in (rewards, spins, streaks, goals, levels)),
            updated=len(updates),
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            user_id=_cell(row, 4) or None,
            entity_type=_cell(row, 5) or None,
            entity_id=_cell(row, 6) or None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
        )

    def _read_events(self, matches: Callable[[list], bool]) -> list[AuditEvent]:
        try:
            all_rows = self._sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0] or not matches(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("skipping_malformed_audit_row", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = self._read_events(lambda row: _cell(row, 7) == str(correlation_id))
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get a user's events, newest first."""
        events = self._read_events(lambda row: _cell(row, 4) == user_id)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
