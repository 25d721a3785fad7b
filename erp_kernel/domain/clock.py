"""
Clock -- injectable time source.

Responsibility:
    Services and selectors take a Clock instead of calling ``datetime.now()``
    or ``date.today()``.  Timestamps (closed_at, fixed_at) are UTC; the
    calendar date behind "inventory as of today" is taken in the plant's
    business timezone, so a receipt booked at 08:00 local time is never
    attributed to the previous day.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads the system
    time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """
    Abstract clock.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` is the date of ``now()`` in ``business_tz``.
    """

    def __init__(self, business_tz: tzinfo | None = None):
        self.business_tz = business_tz or timezone.utc

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(self.business_tz).date()


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock frozen at a given instant.

    ``now()`` returns the same value until ``advance()`` or ``set_time()``.
    Naive datetimes are read as UTC.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        business_tz: tzinfo | None = None,
    ):
        super().__init__(business_tz)
        self._current = _as_utc(fixed_time or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _as_utc(time)

    def advance(self, seconds: int = 1, *, days: int = 0) -> None:
        self._current += timedelta(days=days, seconds=seconds)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
