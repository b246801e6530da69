"""
Clock -- Injectable source of "now".

Responsibility:
    Services read the current instant from a Clock exactly once per
    computation and pass it to the engines, which never read time
    themselves.

Architecture position:
    Kernel > Domain.  SystemClock is the only place real time enters.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

# Instant used by DeterministicClock when none is given.
DEFAULT_TEST_INSTANT = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


class Clock(ABC):
    """Contract: ``now()`` returns a timezone-aware datetime."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock: returns the same instant until moved explicitly.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._instant = fixed_time or DEFAULT_TEST_INSTANT

    def now(self) -> datetime:
        return self._instant

    def set_time(self, time: datetime) -> None:
        self._instant = time

    def advance(self, seconds: int = 1) -> None:
        self._instant += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._instant += timedelta(days=days)
