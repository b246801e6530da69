"""
inventory_engines.trend -- Period-over-period trend signals.

Responsibility:
    Convert a (current, previous) pair into a direction and a non-negative
    percentage magnitude.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Total function: never raises for numeric input, never divides by zero.
      A zero previous value is handled by an explicit branch:
      100% up when current > 0, otherwise 0% down.
    - magnitude_percent >= 0 in every case; the sign lives in ``direction``.
    - direction is UP iff current > previous (previous != 0), so an
      unchanged value reads as 0% DOWN.

Usage:
    from inventory_engines.trend import calculate_trend

    calculate_trend(Decimal("50"), Decimal("100"))
    # Trend(magnitude_percent=Decimal("50"), direction=TrendDirection.DOWN)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from inventory_kernel.domain.values import HUNDRED, ZERO, to_decimal
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.trend")


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Trend:
    """Direction and magnitude of a change between two periods."""

    magnitude_percent: Decimal
    direction: TrendDirection

    @property
    def is_up(self) -> bool:
        return self.direction == TrendDirection.UP

    def rounded(self, places: int = 1) -> Decimal:
        """Magnitude quantized for display, half-up."""
        return self.magnitude_percent.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def calculate_trend(current: Decimal | int, previous: Decimal | int) -> Trend:
    """
    Compare ``current`` with ``previous``.

    Rules:
        previous == 0: 100% UP if current > 0, else 0% DOWN.
        previous != 0: |(current - previous) / previous| * 100,
                       UP iff current > previous.
    """
    current = to_decimal(current)
    previous = to_decimal(previous)

    if previous == ZERO:
        if current > ZERO:
            return Trend(magnitude_percent=HUNDRED, direction=TrendDirection.UP)
        return Trend(magnitude_percent=ZERO, direction=TrendDirection.DOWN)

    magnitude = abs((current - previous) / previous) * HUNDRED
    direction = TrendDirection.UP if current > previous else TrendDirection.DOWN
    return Trend(magnitude_percent=magnitude, direction=direction)


class TrendCalculator:
    """
    Batch wrapper around ``calculate_trend`` for named KPI pairs.

    Contract:
        Pure -- no I/O, no clock.
    """

    def calculate(self, current: Decimal | int, previous: Decimal | int) -> Trend:
        return calculate_trend(current, previous)

    def compare(
        self,
        current: dict[str, Decimal],
        previous: dict[str, Decimal],
    ) -> dict[str, Trend]:
        """
        Trend per metric name present in ``current``.

        A name missing from ``previous`` compares against zero.
        """
        trends = {
            name: calculate_trend(value, previous.get(name, ZERO))
            for name, value in current.items()
        }
        logger.debug("trends_calculated", extra={
            "metrics": sorted(trends),
            "up": sorted(n for n, t in trends.items() if t.is_up),
        })
        return trends
