"""
Module: inventory_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for inventory_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel (domain, exceptions, logging) and
    sibling engine modules.  MUST NOT import inventory_services or
    inventory_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "now" and "today" are explicit parameters supplied by services.
    - Decimal-only arithmetic for quantities and amounts.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``inventory_engines.tracer``), emitting INVENTORY_ENGINE_TRACE records
    with engine name, version, input fingerprint and duration.

Usage:
    from inventory_engines import PeriodResolver, AlertClassifier
    from inventory_engines.trend import calculate_trend
"""

from inventory_engines.aggregation import (
    Aggregator,
    BucketKey,
    FlowBucket,
    FlowPoint,
    FlowSeries,
)
from inventory_engines.alerts import (
    Alert,
    AlertClassifier,
    AlertFeedSummary,
    AlertId,
    AlertKind,
    AlertSource,
    MaintenanceStatus,
    Severity,
    StockStatus,
    VarianceStatus,
    mark_all_read,
    mark_read,
)
from inventory_engines.periods import (
    Granularity,
    PeriodResolver,
    PeriodToken,
    ResolvedPeriod,
    TimeWindow,
)
from inventory_engines.ranking import RankedGroup, RankingEngine
from inventory_engines.tracer import traced_engine
from inventory_engines.trend import Trend, TrendCalculator, TrendDirection, calculate_trend
from inventory_engines.valuation import PeriodValue, PriceSource, ValueEngine, resolve_unit_price

__all__ = [
    # Aggregation
    "Aggregator",
    "BucketKey",
    "FlowBucket",
    "FlowPoint",
    "FlowSeries",
    # Alerts
    "Alert",
    "AlertClassifier",
    "AlertFeedSummary",
    "AlertId",
    "AlertKind",
    "AlertSource",
    "MaintenanceStatus",
    "Severity",
    "StockStatus",
    "VarianceStatus",
    "mark_all_read",
    "mark_read",
    # Periods
    "Granularity",
    "PeriodResolver",
    "PeriodToken",
    "ResolvedPeriod",
    "TimeWindow",
    # Ranking
    "RankedGroup",
    "RankingEngine",
    # Trend
    "Trend",
    "TrendCalculator",
    "TrendDirection",
    "calculate_trend",
    # Valuation
    "PeriodValue",
    "PriceSource",
    "ValueEngine",
    "resolve_unit_price",
    # Tracer
    "traced_engine",
]
