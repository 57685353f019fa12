"""
Clock -- injectable source of "now".

The processor stamps ``processed_date`` from it, the repository stamps
execution rows from it, and the scheduler decides when to fire from it.
Nothing in the pipeline calls ``datetime.now()`` directly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """Current time, supplied by constructor injection."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time as an aware datetime in ``tz`` (UTC by default).

    Give it the business zone orders are recorded in, so ``now().date()``
    is the business day and naive storage keeps local wall time.
    """

    def __init__(self, tz: tzinfo = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Guarantees:
        - ``now()`` is stable between calls to ``advance()`` / ``set_time()``.
        - The tzinfo of the starting time is preserved.  Tests against SQLite
          start from a naive time because SQLite drops tzinfo on round-trip.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float | timedelta = 1) -> datetime:
        """Move forward and return the new time."""
        step = seconds if isinstance(seconds, timedelta) else timedelta(seconds=seconds)
        self._current += step
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = value
