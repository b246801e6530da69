"""
inventory_engines.ranking -- Top-N rankings over (key, metric) pairs.

Responsibility:
    Sum a numeric metric per group key, sort groups by their total
    (descending) and keep the first N.  Used for top withdrawn products,
    top beneficiaries and top categories.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Input need not be pre-grouped or ordered.
    - Stable sort: groups with equal totals keep their first-seen order.
    - len(output) == min(limit, number of distinct keys).
    - Empty input yields an empty ranking.

Failure modes:
    - InvalidRankingLimitError for a negative limit.

Usage:
    from inventory_engines.ranking import RankingEngine

    top = RankingEngine().top_n(
        entries=[("Gants", Decimal("3")), ("Casques", Decimal("7")), ("Gants", Decimal("5"))],
        limit=5,
    )
    # (RankedGroup(key="Gants", total=8, ...), RankedGroup(key="Casques", total=7, ...))
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.values import ZERO, to_decimal
from inventory_kernel.exceptions import InvalidRankingLimitError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.ranking")

DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class RankedGroup:
    """
    One ranked group.

    ``rank`` is 1-based; ``entry_count`` is the number of pairs summed
    into ``total``.
    """

    rank: int
    key: Hashable
    total: Decimal
    entry_count: int
    label: str | None = None


class RankingEngine:
    """
    Group, sum, sort descending, truncate.

    Contract:
        Pure functions -- inputs are never mutated.
    """

    @traced_engine("ranking", "1.0", fingerprint_fields=("entries", "limit"))
    def top_n(
        self,
        entries: Iterable[tuple[Hashable, Any]],
        limit: int = DEFAULT_LIMIT,
        labels: dict[Any, str] | None = None,
    ) -> tuple[RankedGroup, ...]:
        """
        Rank group keys by their summed metric.

        Args:
            entries: (group_key, metric) pairs in any order.
            limit: Maximum number of groups returned.
            labels: Optional display label per key.

        Returns:
            At most ``limit`` groups, highest total first.

        Raises:
            InvalidRankingLimitError: If limit is negative.
        """
        if limit < 0:
            raise InvalidRankingLimitError(limit)

        totals: dict[Hashable, Decimal] = {}
        counts: dict[Hashable, int] = {}
        for key, metric in entries:
            totals[key] = totals.get(key, ZERO) + to_decimal(metric, ZERO)
            counts[key] = counts.get(key, 0) + 1

        # dict preserves first-seen order and sorted() is stable
        ordered = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)

        labels = labels or {}
        ranking = tuple(
            RankedGroup(
                rank=index + 1,
                key=key,
                total=total,
                entry_count=counts[key],
                label=labels.get(key),
            )
            for index, (key, total) in enumerate(ordered[:limit])
        )

        logger.debug("ranking_computed", extra={
            "group_count": len(totals),
            "limit": limit,
            "returned": len(ranking),
        })

        return ranking
