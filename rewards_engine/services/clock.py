"""
Clock

DESIGN DECISION: Components never call date.today() or datetime.now().
"Today" decides whether a spin is allowed and whether a streak continues,
so it must come from one injected source that tests can pin.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


class Clock(ABC):
    """Source of the current instant and the user's calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware instant."""
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in the configured timezone."""

    def __init__(self, timezone: str = "UTC"):
        self._tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock(Clock):
    """
    A clock that only moves when told to.

    Usage:
        clock = FixedClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        clock.advance(days=1)
    """

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0) -> datetime:
        self._now = self._now + timedelta(days=days, hours=hours, minutes=minutes)
        return self._now
