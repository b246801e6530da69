"""
inventory_engines.periods -- Period tokens, comparison windows and bucket granularity.

Responsibility:
    Map a period token from the closed set {7d, 30d, 3m, 6m, 1y, all} and a
    reference instant "now" to:
      - the current window   [start, now]   (end inclusive),
      - the previous window  [start - (now - start), start)   (end exclusive),
      - the bucket granularity used when charting the current window.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    "now" is always an argument; the resolver never reads a clock.

Invariants enforced:
    - previous.duration == current.duration.
    - previous.end == current.start (contiguous, non-overlapping).
    - Month-based tokens step back whole calendar months, clamping the day
      to the target month's length (31 March - 1 month = 28/29 February).
    - "all" starts at a fixed historical floor.  Its previous window mirrors
      the very large duration backwards; it only guarantees a defined,
      zero-activity comparison, not a meaningful trend.

Failure modes:
    - UnknownPeriodTokenError for tokens outside the closed set.
    - ValueError if ``now`` is naive.

Usage:
    from inventory_engines.periods import PeriodResolver, PeriodToken

    period = PeriodResolver().resolve(token=PeriodToken.LAST_30_DAYS, now=now)
    period.current.contains(event_time)
    period.granularity  # Granularity.DAY
"""

from __future__ import annotations

import calendar
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, TypeVar

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.values import parse_timestamp
from inventory_kernel.exceptions import UnknownPeriodTokenError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.periods")

T = TypeVar("T")

# Start of the "all" period when no settings override it.
ALL_TIME_FLOOR = date(2000, 1, 1)

# Spans longer than this (roughly two years) chart by year in the "all" period.
YEAR_GRANULARITY_THRESHOLD_DAYS = 730


class PeriodToken(str, Enum):
    """Named relative time ranges selectable on the dashboard."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_3_MONTHS = "3m"
    LAST_6_MONTHS = "6m"
    LAST_YEAR = "1y"
    ALL_TIME = "all"

    @classmethod
    def parse(cls, value: PeriodToken | str) -> PeriodToken:
        """Return the token for ``value`` or raise UnknownPeriodTokenError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownPeriodTokenError(str(value)) from None


class Granularity(str, Enum):
    """Calendar unit used to bucket events along the time axis."""

    DAY = "day"
    MONTH = "month"
    YEAR = "year"


_DAY_SPANS: dict[PeriodToken, int] = {
    PeriodToken.LAST_7_DAYS: 7,
    PeriodToken.LAST_30_DAYS: 30,
}

_MONTH_SPANS: dict[PeriodToken, int] = {
    PeriodToken.LAST_3_MONTHS: 3,
    PeriodToken.LAST_6_MONTHS: 6,
    PeriodToken.LAST_YEAR: 12,
}


@dataclass(frozen=True)
class TimeWindow:
    """
    A span of time with an inclusive start.

    ``end_inclusive`` distinguishes the current window (which contains
    "now") from the previous window (which stops just before the current
    window starts).
    """

    start: datetime
    end: datetime
    end_inclusive: bool = True

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        if instant < self.start:
            return False
        if self.end_inclusive:
            return instant <= self.end
        return instant < self.end


@dataclass(frozen=True)
class ResolvedPeriod:
    """The outcome of resolving one period token against one instant."""

    token: PeriodToken
    now: datetime
    current: TimeWindow
    previous: TimeWindow
    granularity: Granularity


def subtract_months(instant: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping the day to the month length."""
    month_index = instant.year * 12 + (instant.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


class PeriodResolver:
    """
    Resolve period tokens into comparison windows.

    Contract:
        Pure function of (token, now) plus the two constructor settings.
    Guarantees:
        - Windows are contiguous and of equal duration for every token.
        - Granularity is DAY for 7d/30d/3m/6m, MONTH for 1y, MONTH or YEAR
          for "all" depending on the resolved span.
    """

    def __init__(
        self,
        all_time_floor: date = ALL_TIME_FLOOR,
        year_granularity_threshold_days: int = YEAR_GRANULARITY_THRESHOLD_DAYS,
    ):
        self.all_time_floor = all_time_floor
        self.year_granularity_threshold_days = year_granularity_threshold_days

    def window_start(self, token: PeriodToken, now: datetime) -> datetime:
        """Start of the current window for ``token``."""
        if token in _DAY_SPANS:
            return now - timedelta(days=_DAY_SPANS[token])
        if token in _MONTH_SPANS:
            return subtract_months(now, _MONTH_SPANS[token])
        floor = datetime(
            self.all_time_floor.year,
            self.all_time_floor.month,
            self.all_time_floor.day,
            tzinfo=now.tzinfo,
        )
        return min(floor, now)

    def granularity_for(self, token: PeriodToken, span: timedelta) -> Granularity:
        """Bucket granularity for ``token`` given the resolved window span."""
        if token in _DAY_SPANS or token in (
            PeriodToken.LAST_3_MONTHS,
            PeriodToken.LAST_6_MONTHS,
        ):
            return Granularity.DAY
        if token == PeriodToken.LAST_YEAR:
            return Granularity.MONTH
        if span > timedelta(days=self.year_granularity_threshold_days):
            return Granularity.YEAR
        return Granularity.MONTH

    @traced_engine("periods", "1.0", fingerprint_fields=("token", "now"))
    def resolve(self, token: PeriodToken | str, now: datetime) -> ResolvedPeriod:
        """
        Resolve ``token`` against ``now``.

        Preconditions:
            - ``now`` is timezone-aware.
        Postconditions:
            - ``result.previous.end == result.current.start``.
            - ``result.previous.duration == result.current.duration``.
        Raises:
            UnknownPeriodTokenError: If ``token`` is not a supported token.
            ValueError: If ``now`` is naive.
        """
        token = PeriodToken.parse(token)
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")

        start = self.window_start(token, now)
        span = now - start
        current = TimeWindow(start=start, end=now, end_inclusive=True)
        previous = TimeWindow(start=start - span, end=start, end_inclusive=False)
        granularity = self.granularity_for(token, span)

        logger.debug("period_resolved", extra={
            "token": token.value,
            "current_start": start.isoformat(),
            "current_end": now.isoformat(),
            "previous_start": previous.start.isoformat(),
            "span_days": span.days,
            "granularity": granularity.value,
        })

        return ResolvedPeriod(
            token=token,
            now=now,
            current=current,
            previous=previous,
            granularity=granularity,
        )


def select_in_window(
    items: Iterable[T],
    timestamp_of: Callable[[T], Any],
    window: TimeWindow,
    tz: tzinfo,
) -> tuple[list[T], int]:
    """
    Keep the items whose resolved timestamp falls inside ``window``.

    Returns:
        (selected items in input order, number of items skipped because
        their timestamp could not be resolved)
    """
    selected: list[T] = []
    skipped = 0
    for item in items:
        instant = parse_timestamp(timestamp_of(item), tz)
        if instant is None:
            skipped += 1
            continue
        if window.contains(instant):
            selected.append(item)
    return selected, skipped
