"""
Values -- Decimal coercion and soft timestamp resolution.

Responsibility:
    Turns the loosely-typed scalars handed over by record collaborators
    (ints, floats from JSON, numeric strings, ISO-8601 strings, naive or
    aware datetimes) into the two canonical shapes the engines compute on:
    ``Decimal`` for quantities and amounts, timezone-aware ``datetime`` in
    the reporting timezone for instants.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str`` so that
      ``0.1`` becomes ``Decimal("0.1")`` and not its binary expansion.
    - Timestamp resolution never raises: anything unparsable becomes ``None``
      and the caller decides to skip the record.

Failure modes:
    - ValueError from ``to_decimal`` for values that are not numbers.
"""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal:
    """
    Coerce a numeric scalar into ``Decimal``.

    Preconditions:
        - ``value`` is a Decimal, int, float, numeric string or None.
    Postconditions:
        - Returns a finite Decimal.
    Raises:
        ValueError: If the value is None without a default, not numeric,
            or not finite.
    """
    if value is None:
        if default is None:
            raise ValueError("Numeric value is required")
        return default
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid numeric value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value!r}")
    return result


def parse_timestamp(value: Any, tz: tzinfo) -> datetime | None:
    """
    Resolve a raw timestamp into an aware datetime in ``tz``.

    Naive datetimes, plain dates and offset-less strings are read as wall
    clock time in ``tz``; aware values are converted into ``tz``.

    Returns:
        The resolved datetime, or None when the value is missing or
        cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=tz)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    try:
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=tz)
        return parsed.astimezone(tz)
    except (OverflowError, ValueError):
        # Parses, but falls outside the datetime range once shifted into tz.
        return None


def parse_calendar_date(value: Any, tz: tzinfo) -> date | None:
    """Resolve a raw date/timestamp into a calendar date in ``tz`` (None if unparsable)."""
    resolved = parse_timestamp(value, tz)
    if resolved is None:
        return None
    return resolved.date()
