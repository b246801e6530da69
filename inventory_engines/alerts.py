"""
inventory_engines.alerts -- Stock, maintenance and variance classification; unified alert feed.

Responsibility:
    Classify products (stock level), maintenance records (next due date) and
    inventory count lines (variance); merge stock and maintenance alerts into
    one feed ordered by priority; partition the feed into read / unread as a
    pure function of an externally supplied set of acknowledged alert ids.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    "today" is always an argument.  Persisting acknowledged ids is the
    caller's job (see inventory_services.read_state).

Invariants enforced:
    - StockStatus: quantity <= 0 -> CRITICAL; 0 < quantity <= critical_level
      -> LOW (the boundary value is LOW); otherwise NORMAL.
    - MaintenanceStatus: no next date -> no alert; next <= today -> OVERDUE;
      today < next <= today + horizon -> UPCOMING with
      days_remaining = ceil((next - today) / 1 day); otherwise no alert.
    - VarianceStatus is for reporting only and never enters the feed.
    - Alert identity is a tagged (source, id) pair, so product and
      maintenance ids can never collide.  ``legacy_id`` reproduces the old
      numeric scheme (maintenance id + offset) for persisted read-sets.
    - Feed priority: stock-critical and maintenance-overdue first, then
      maintenance-upcoming, then stock-low.  Inside a tier stock alerts
      come first, ordered by product name collation; maintenance alerts
      follow, ordered by vehicle plate ("" when absent).
    - Identical inputs always produce the identical feed (ids included).

Failure modes:
    - ValueError from ``AlertId.from_key`` for malformed keys.
    - Records with an unresolvable next maintenance date are treated as
      having none (no alert) and logged.

Usage:
    from inventory_engines.alerts import AlertClassifier

    classifier = AlertClassifier(horizon_days=7)
    feed = classifier.build_feed(
        products=snapshot.products,
        maintenances=snapshot.maintenances,
        today=date(2024, 6, 15),
    )
    summary = classifier.summarize(alerts=feed, read_ids=store.load())
    summary.unread_critical_count
"""

from __future__ import annotations

import math
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, timedelta, tzinfo
from decimal import Decimal
from enum import Enum

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.records import (
    CountLine,
    InventoryCount,
    MaintenanceRecord,
    Product,
    RawTimestamp,
)
from inventory_kernel.domain.values import ZERO, parse_calendar_date
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.alerts")

DEFAULT_HORIZON_DAYS = 7

# Pre-tagged read-sets stored maintenance alerts under id + this offset.
LEGACY_MAINTENANCE_ID_OFFSET = 100000


# ---------------------------------------------------------------------------
# Classification rules
# ---------------------------------------------------------------------------


class StockStatus(str, Enum):
    NORMAL = "normal"
    LOW = "low"
    CRITICAL = "critical"


class MaintenanceStatus(str, Enum):
    NONE = "none"
    UPCOMING = "upcoming"
    OVERDUE = "overdue"


class VarianceStatus(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    CONFORMING = "conforming"


@dataclass(frozen=True)
class MaintenanceAssessment:
    """
    Outcome of classifying one maintenance record against ``today``.

    ``days_remaining`` is set for UPCOMING, ``days_overdue`` (>= 0) for
    OVERDUE.  ``unparsable`` marks a date that was given but unreadable.
    """

    status: MaintenanceStatus
    due_date: date | None = None
    days_remaining: int | None = None
    days_overdue: int | None = None
    unparsable: bool = False


def stock_status(product: Product) -> StockStatus:
    """Classify a product's stock level against its critical level."""
    if product.quantity <= ZERO:
        return StockStatus.CRITICAL
    if product.quantity <= product.critical_level:
        return StockStatus.LOW
    return StockStatus.NORMAL


def maintenance_status(
    next_maintenance_date: RawTimestamp,
    today: date,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    tz: tzinfo = UTC,
) -> MaintenanceAssessment:
    """Classify a next maintenance date as overdue, upcoming or neither."""
    due = parse_calendar_date(next_maintenance_date, tz)
    if due is None:
        return MaintenanceAssessment(
            status=MaintenanceStatus.NONE,
            unparsable=next_maintenance_date is not None,
        )
    if due <= today:
        return MaintenanceAssessment(
            status=MaintenanceStatus.OVERDUE,
            due_date=due,
            days_overdue=(today - due).days,
        )
    if due <= today + timedelta(days=horizon_days):
        return MaintenanceAssessment(
            status=MaintenanceStatus.UPCOMING,
            due_date=due,
            days_remaining=math.ceil((due - today) / timedelta(days=1)),
        )
    return MaintenanceAssessment(status=MaintenanceStatus.NONE, due_date=due)


def variance_status(line: CountLine) -> VarianceStatus:
    """Classify a count line by the sign of its variance."""
    if line.variance > ZERO:
        return VarianceStatus.POSITIVE
    if line.variance < ZERO:
        return VarianceStatus.NEGATIVE
    return VarianceStatus.CONFORMING


# ---------------------------------------------------------------------------
# Alert identity
# ---------------------------------------------------------------------------


class AlertSource(str, Enum):
    PRODUCT = "product"
    MAINTENANCE = "maintenance"


_SOURCE_ORDER = {AlertSource.PRODUCT: 0, AlertSource.MAINTENANCE: 1}


@dataclass(frozen=True)
class AlertId:
    """
    Stable alert identifier: which collection the alert comes from and the
    id of the source record.  ``key`` is its string form ("product:1").
    """

    source_kind: AlertSource
    source_id: int

    @property
    def key(self) -> str:
        return f"{self.source_kind.value}:{self.source_id}"

    def legacy_id(self, offset: int = LEGACY_MAINTENANCE_ID_OFFSET) -> int:
        """Numeric id of the pre-tagged scheme."""
        if self.source_kind == AlertSource.MAINTENANCE:
            return self.source_id + offset
        return self.source_id

    @classmethod
    def product(cls, product_id: int) -> AlertId:
        return cls(AlertSource.PRODUCT, product_id)

    @classmethod
    def maintenance(cls, maintenance_id: int) -> AlertId:
        return cls(AlertSource.MAINTENANCE, maintenance_id)

    @classmethod
    def from_key(cls, key: str) -> AlertId:
        """
        Parse "source:id".

        Raises:
            ValueError: If the key is malformed or the source is unknown.
        """
        kind, sep, raw_id = key.partition(":")
        if not sep:
            raise ValueError(f"Malformed alert key: {key!r}")
        return cls(AlertSource(kind), int(raw_id))

    @classmethod
    def from_legacy(cls, legacy_id: int, offset: int = LEGACY_MAINTENANCE_ID_OFFSET) -> AlertId:
        """Map a numeric id of the pre-tagged scheme back to a tagged id."""
        if legacy_id >= offset:
            return cls.maintenance(legacy_id - offset)
        return cls.product(legacy_id)

    def __str__(self) -> str:
        return self.key


# ---------------------------------------------------------------------------
# Alerts and the unified feed
# ---------------------------------------------------------------------------


class AlertKind(str, Enum):
    STOCK_LOW = "stock-low"
    STOCK_CRITICAL = "stock-critical"
    MAINTENANCE_OVERDUE = "maintenance-overdue"
    MAINTENANCE_UPCOMING = "maintenance-upcoming"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


_KIND_SEVERITY: dict[AlertKind, Severity] = {
    AlertKind.STOCK_CRITICAL: Severity.CRITICAL,
    AlertKind.MAINTENANCE_OVERDUE: Severity.CRITICAL,
    AlertKind.MAINTENANCE_UPCOMING: Severity.INFO,
    AlertKind.STOCK_LOW: Severity.WARNING,
}

_KIND_PRIORITY: dict[AlertKind, int] = {
    AlertKind.STOCK_CRITICAL: 0,
    AlertKind.MAINTENANCE_OVERDUE: 0,
    AlertKind.MAINTENANCE_UPCOMING: 1,
    AlertKind.STOCK_LOW: 2,
}


def collation_key(text: str) -> tuple[str, str]:
    """
    Locale-insensitive ordering key: accents stripped and case folded first,
    the raw text second so that distinct spellings still order stably.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), text)


def _format_quantity(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.normalize():f}"


@dataclass(frozen=True)
class Alert:
    """
    One entry of the unified feed.

    ``title`` is the product name or vehicle plate, ``sort_name`` the value
    used for ordering inside a priority tier.
    """

    id: AlertId
    kind: AlertKind
    severity: Severity
    message: str
    title: str
    sort_name: str
    days_remaining: int | None = None

    @property
    def priority(self) -> int:
        return _KIND_PRIORITY[self.kind]

    @property
    def is_maintenance(self) -> bool:
        return self.id.source_kind == AlertSource.MAINTENANCE

    @property
    def sort_key(self) -> tuple:
        return (
            self.priority,
            _SOURCE_ORDER[self.id.source_kind],
            collation_key(self.sort_name),
            self.id.source_id,
        )


@dataclass(frozen=True)
class AlertFeedSummary:
    """
    Read / unread partition of a feed.

    Counts are over unread alerts only: ``unread_critical_count`` counts
    stock-critical alerts, ``unread_low_count`` stock-low alerts and
    ``unread_maintenance_count`` maintenance alerts of either kind.
    """

    unread: tuple[Alert, ...]
    read: tuple[Alert, ...]
    unread_critical_count: int
    unread_low_count: int
    unread_maintenance_count: int

    @property
    def total(self) -> int:
        return len(self.unread) + len(self.read)

    @property
    def unread_count(self) -> int:
        return len(self.unread)


@dataclass(frozen=True)
class VarianceLine:
    """A count line flattened with its inventory context, for reporting."""

    inventory_id: int
    agent: str
    counted_at: RawTimestamp
    product_id: int
    theoretical_qty: Decimal
    counted_qty: Decimal
    variance: Decimal
    status: VarianceStatus


def mark_read(read_ids: Iterable[AlertId], alert_id: AlertId) -> frozenset[AlertId]:
    """New read-set with ``alert_id`` added."""
    return frozenset(read_ids) | {alert_id}


def mark_all_read(alerts: Iterable[Alert]) -> frozenset[AlertId]:
    """New read-set made of exactly the ids of ``alerts`` (stale ids are dropped)."""
    return frozenset(alert.id for alert in alerts)


class AlertClassifier:
    """
    Build and partition the unified alert feed.

    Contract:
        Pure functions -- stateless with respect to read tracking; the
        read-set is an input, never stored.
    Guarantees:
        - ``build_feed`` output is totally ordered by ``Alert.sort_key``.
        - No two alerts of one feed share an id.
    """

    def __init__(
        self,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        tz: tzinfo = UTC,
    ):
        self.horizon_days = horizon_days
        self.tz = tz

    def stock_alert(self, product: Product) -> Alert | None:
        """Alert for one product, or None when its stock is normal."""
        status = stock_status(product)
        if status == StockStatus.NORMAL:
            return None

        quantity = _format_quantity(product.quantity)
        if status == StockStatus.CRITICAL:
            kind = AlertKind.STOCK_CRITICAL
            if product.quantity == ZERO:
                message = "Stock épuisé"
            else:
                message = f"Stock très faible ({quantity} unités restantes)"
        else:
            kind = AlertKind.STOCK_LOW
            threshold = _format_quantity(product.critical_level)
            message = f"Stock faible ({quantity} unités restantes, seuil: {threshold})"

        return Alert(
            id=AlertId.product(product.id),
            kind=kind,
            severity=_KIND_SEVERITY[kind],
            message=message,
            title=product.name,
            sort_name=product.name,
        )

    def maintenance_alert(self, record: MaintenanceRecord, today: date) -> Alert | None:
        """Alert for one maintenance record, or None when nothing is due."""
        assessment = maintenance_status(
            record.next_maintenance_date, today, self.horizon_days, self.tz
        )
        if assessment.unparsable:
            logger.warning("maintenance_next_date_unparsable", extra={
                "maintenance_id": record.id,
                "raw_date": str(record.next_maintenance_date),
            })
        if assessment.status == MaintenanceStatus.NONE:
            return None

        plate = record.vehicle_plate or ""
        vehicle = plate or (
            f"véhicule #{record.vehicle_id}" if record.vehicle_id is not None else "véhicule inconnu"
        )
        label = record.type or "Maintenance"
        due = assessment.due_date.isoformat()

        if assessment.status == MaintenanceStatus.OVERDUE:
            kind = AlertKind.MAINTENANCE_OVERDUE
            if assessment.days_overdue:
                message = (
                    f"Maintenance en retard de {assessment.days_overdue} jour(s) : "
                    f"{label} ({vehicle}), prévue le {due}"
                )
            else:
                message = f"Maintenance en retard : {label} ({vehicle}), prévue aujourd'hui"
        else:
            kind = AlertKind.MAINTENANCE_UPCOMING
            message = (
                f"Maintenance à venir dans {assessment.days_remaining} jour(s) : "
                f"{label} ({vehicle}), prévue le {due}"
            )

        return Alert(
            id=AlertId.maintenance(record.id),
            kind=kind,
            severity=_KIND_SEVERITY[kind],
            message=message,
            title=vehicle,
            sort_name=plate,
            days_remaining=assessment.days_remaining,
        )

    def stock_alerts(self, products: Iterable[Product]) -> list[Alert]:
        return [a for a in (self.stock_alert(p) for p in products) if a is not None]

    def maintenance_alerts(
        self,
        maintenances: Iterable[MaintenanceRecord],
        today: date,
    ) -> list[Alert]:
        return [
            a for a in (self.maintenance_alert(m, today) for m in maintenances)
            if a is not None
        ]

    @traced_engine("alerts", "1.0", fingerprint_fields=("products", "maintenances", "today"))
    def build_feed(
        self,
        products: Iterable[Product],
        maintenances: Iterable[MaintenanceRecord],
        today: date,
    ) -> tuple[Alert, ...]:
        """
        Merge stock and maintenance alerts into one priority-ordered feed.

        Args:
            products: Product snapshot.
            maintenances: Maintenance snapshot (empty when that source is
                unavailable: the feed then holds stock alerts only).
            today: Calendar date maintenance due dates compare against.

        Returns:
            Alerts ordered by (priority tier, source, name/plate, source id).
        """
        alerts = self.stock_alerts(products) + self.maintenance_alerts(maintenances, today)

        # Duplicate source records (same id twice in a snapshot) keep their first alert.
        unique: dict[AlertId, Alert] = {}
        for alert in alerts:
            unique.setdefault(alert.id, alert)

        feed = tuple(sorted(unique.values(), key=lambda a: a.sort_key))

        logger.info("alert_feed_built", extra={
            "alert_count": len(feed),
            "critical_count": sum(1 for a in feed if a.severity == Severity.CRITICAL),
            "maintenance_count": sum(1 for a in feed if a.is_maintenance),
            "duplicate_count": len(alerts) - len(unique),
            "today": today.isoformat(),
        })
        return feed

    def summarize(
        self,
        alerts: Iterable[Alert],
        read_ids: Iterable[AlertId],
    ) -> AlertFeedSummary:
        """Partition ``alerts`` by membership of their id in ``read_ids``."""
        read_set = frozenset(read_ids)
        unread: list[Alert] = []
        read: list[Alert] = []
        for alert in alerts:
            (read if alert.id in read_set else unread).append(alert)

        return AlertFeedSummary(
            unread=tuple(unread),
            read=tuple(read),
            unread_critical_count=sum(1 for a in unread if a.kind == AlertKind.STOCK_CRITICAL),
            unread_low_count=sum(1 for a in unread if a.kind == AlertKind.STOCK_LOW),
            unread_maintenance_count=sum(1 for a in unread if a.is_maintenance),
        )

    def variance_lines(
        self,
        counts: Iterable[InventoryCount],
        status: VarianceStatus | None = None,
        include_conforming: bool = False,
    ) -> list[VarianceLine]:
        """
        Flatten count lines with their variance status.

        Conforming lines are left out unless ``include_conforming`` is set or
        ``status`` asks for them explicitly.
        """
        lines: list[VarianceLine] = []
        for count in counts:
            for line in count.lines:
                line_status = variance_status(line)
                if status is not None and line_status != status:
                    continue
                if (
                    status is None
                    and not include_conforming
                    and line_status == VarianceStatus.CONFORMING
                ):
                    continue
                lines.append(VarianceLine(
                    inventory_id=count.id,
                    agent=count.agent,
                    counted_at=count.counted_at,
                    product_id=line.product_id,
                    theoretical_qty=line.theoretical_qty,
                    counted_qty=line.counted_qty,
                    variance=line.variance,
                    status=line_status,
                ))
        return lines
