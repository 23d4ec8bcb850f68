"""
Injectable clock.

Services never call ``datetime.now()`` or ``date.today()``
directly; they receive a Clock so period checks can be tested
against a fixed "today".
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current naive UTC time."""
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock frozen at a given instant, for tests and replays."""

    def __init__(self, fixed: datetime | date):
        if not isinstance(fixed, datetime):
            fixed = datetime(fixed.year, fixed.month, fixed.day, 12, 0, 0)
        self._fixed = fixed

    def now(self) -> datetime:
        return self._fixed

    def set(self, fixed: datetime | date) -> None:
        if not isinstance(fixed, datetime):
            fixed = datetime(fixed.year, fixed.month, fixed.day, 12, 0, 0)
        self._fixed = fixed
