"""
Clock -- injectable wall time for persistence.

Run services and stores stamp ``computed_at``, ``approved_at`` and
``recorded_at`` from a Clock instead of calling ``datetime.now()``, so
tests can pin them.  Calculation engines never read a clock: the
calculation date is always an explicit input.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """UTC wall time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that stands still until told to move.

    ``advance()`` moves it forward; ``set_time()`` jumps to an absolute
    timestamp.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 31, 18, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: int = 1) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now

    def set_time(self, moment: datetime) -> None:
        self._now = moment
