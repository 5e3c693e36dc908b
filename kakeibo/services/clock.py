"""
clock.py: Injectable time source
Services take a Clock instead of calling datetime.now() so that the salary
job and the profile cache can be driven deterministically.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from kakeibo.config import APP_TZ


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware time."""
        ...

    def today(self) -> date:
        """Calendar day of now() in the clock's own timezone."""
        return self.now().date()

    def monotonic(self) -> float:
        """Seconds on a steady scale, used for cache expiry."""
        return self.now().timestamp()


class SystemClock(Clock):
    """Wall clock in the application timezone."""

    def __init__(self, tz: str = APP_TZ):
        self.tz = ZoneInfo(tz)

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock(Clock):
    """Clock frozen at a given instant until advanced."""

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2024, 1, 1, tzinfo=timezone.utc)
        if self._now.tzinfo is None:
            self._now = self._now.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

