"""
inventory_services.dashboard_service -- Compose the analytics pipeline into one dashboard view.

Responsibility:
    For one selected period: load a snapshot, resolve the comparison
    windows, compute value and quantity KPIs for both windows, trends,
    the inflow/outflow chart, the top-N rankings, the unified alert feed
    partitioned by read-state and the inventory variance report.  Also
    records alert acknowledgements through the read-state store.

Architecture position:
    Services -- imperative shell.  Owns the clock, the snapshot source and
    the read-state store; every calculation is delegated to the pure
    engines in ``inventory_engines``.

Invariants enforced:
    - One ``now`` per computation: every engine of one view sees the same
      instant, read from the injected clock once.
    - "today" for maintenance classification is the reporting-zone
      calendar date of ``now``.
    - Only the view of the latest refresh request is ever published
      (see ``RefreshSequencer``).
    - A degraded secondary source still yields a complete view; its name
      is carried in ``DashboardView.degraded_sources``.

Failure modes:
    - UnknownPeriodTokenError for an unsupported period token.
    - SourceUnavailableError when a primary record source fails.
    - ReadStateWriteError when acknowledging alerts cannot be persisted.

Usage:
    service = DashboardService(
        source=PayloadSnapshotSource(payloads),
        read_state=JsonFileReadStateStore(path),
        clock=SystemClock(),
        settings=get_active_settings(),
    )
    view = service.refresh("30d")
    view.kpis.net_value, view.alert_summary.unread_critical_count
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from inventory_config.schema import EngineSettings
from inventory_engines.aggregation import Aggregator, FlowSeries
from inventory_engines.alerts import (
    Alert,
    AlertClassifier,
    AlertFeedSummary,
    AlertId,
    StockStatus,
    VarianceLine,
    VarianceStatus,
    mark_all_read,
    mark_read,
    stock_status,
)
from inventory_engines.periods import PeriodResolver, PeriodToken, ResolvedPeriod, TimeWindow, select_in_window
from inventory_engines.ranking import RankedGroup, RankingEngine
from inventory_engines.trend import Trend, TrendCalculator
from inventory_engines.valuation import PeriodValue, ValueEngine
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.records import InventorySnapshot, Product, StockOutEvent
from inventory_kernel.domain.values import ZERO
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_services.read_state import ReadStateStore, read_state_from_settings
from inventory_services.refresh import RefreshSequencer
from inventory_services.snapshot_loader import SnapshotLoader, SnapshotSource

logger = get_logger("services.dashboard")

UNCATEGORIZED = "Sans catégorie"

TREND_METRICS = (
    "receipts_value",
    "stock_outs_value",
    "net_value",
    "receipts_quantity",
    "stock_outs_quantity",
)


@dataclass(frozen=True)
class DashboardKpis:
    """Headline figures: stock position (all products) and flows (current window)."""

    total_stock_value: Decimal
    product_count: int
    low_stock_count: int
    out_of_stock_count: int
    receipts_value: Decimal
    receipts_quantity: Decimal
    stock_outs_value: Decimal
    stock_outs_quantity: Decimal
    net_value: Decimal
    unpriced_count: int = 0

    def trend_metrics(self) -> dict[str, Decimal]:
        return {
            "receipts_value": self.receipts_value,
            "stock_outs_value": self.stock_outs_value,
            "net_value": self.net_value,
            "receipts_quantity": self.receipts_quantity,
            "stock_outs_quantity": self.stock_outs_quantity,
        }


@dataclass(frozen=True)
class DashboardView:
    """Everything the dashboard shows for one period, computed at one instant."""

    period: ResolvedPeriod
    today: date
    kpis: DashboardKpis
    previous_kpis: DashboardKpis
    trends: dict[str, Trend]
    chart: FlowSeries
    top_products_out: tuple[RankedGroup, ...]
    top_beneficiaries: tuple[RankedGroup, ...]
    top_categories: tuple[RankedGroup, ...]
    alerts: tuple[Alert, ...]
    alert_summary: AlertFeedSummary
    count_lines: tuple[VarianceLine, ...] = ()
    degraded_sources: tuple[str, ...] = field(default=())

    @property
    def computed_at(self) -> datetime:
        return self.period.now

    @property
    def variances(self) -> tuple[VarianceLine, ...]:
        """In-window count lines whose counted quantity differs from theory."""
        return tuple(
            line for line in self.count_lines if line.status != VarianceStatus.CONFORMING
        )


class DashboardService:
    """
    Orchestrates one dashboard refresh.

    Contract:
        Receives the snapshot source, read-state store, clock and settings
        via constructor injection.  Holds no other state than the latest
        committed view.
    Non-goals:
        - Does not cache snapshots between refreshes.
        - Does not merge read-state written concurrently by another session.
    """

    def __init__(
        self,
        source: SnapshotSource,
        read_state: ReadStateStore | None,
        clock: Clock,
        settings: EngineSettings | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.tz = self.settings.tz
        self.clock = clock
        # Without an explicit store, keep read-state in memory under the
        # configured storage key and legacy offset.
        if read_state is None:
            read_state = read_state_from_settings(self.settings, clock=clock)
        self.read_state = read_state
        self.loader = SnapshotLoader(source, self.settings.secondary_sources)
        self.sequencer: RefreshSequencer[DashboardView] = RefreshSequencer()

        self.periods = PeriodResolver(
            all_time_floor=self.settings.all_time_floor,
            year_granularity_threshold_days=self.settings.year_granularity_threshold_days,
        )
        self.aggregator = Aggregator(tz=self.tz)
        self.values = ValueEngine(tz=self.tz)
        self.trends = TrendCalculator()
        self.ranking = RankingEngine()
        self.alerts = AlertClassifier(
            horizon_days=self.settings.maintenance_horizon_days,
            tz=self.tz,
        )

    # -- Refresh ---------------------------------------------------------

    @property
    def current_view(self) -> DashboardView | None:
        return self.sequencer.current

    def begin_refresh(self) -> int:
        """Register a refresh request; results of older requests become stale."""
        return self.sequencer.begin()

    def complete_refresh(self, token: int, view: DashboardView) -> bool:
        """Publish ``view`` unless a newer refresh was requested meanwhile."""
        return self.sequencer.commit(token, view)

    def refresh(self, period: PeriodToken | str) -> DashboardView | None:
        """
        Compute and publish the view for ``period``.

        Returns:
            The published view, or None if a newer refresh was requested
            while this one was computing.
        """
        token = self.begin_refresh()
        with LogContext.bind(request_seq=str(token), view="dashboard"):
            view = self.compute(period)
            if self.complete_refresh(token, view):
                return view
            return None

    # -- Computation -----------------------------------------------------

    def compute(self, period: PeriodToken | str) -> DashboardView:
        """Load a fresh snapshot and build the view, without publishing it."""
        token = PeriodToken.parse(period)
        snapshot = self.loader.load()
        now = self.clock.now().astimezone(self.tz)
        return self.build_view(snapshot=snapshot, token=token, now=now)

    def build_view(
        self,
        snapshot: InventorySnapshot,
        token: PeriodToken,
        now: datetime,
    ) -> DashboardView:
        """Run every engine over ``snapshot`` as of ``now``."""
        resolved = self.periods.resolve(token=token, now=now)
        today = now.astimezone(self.tz).date()
        products = snapshot.products_by_id()

        current_value = self.values.period_value(
            receipts=snapshot.receipts,
            stock_outs=snapshot.stock_outs,
            window=resolved.current,
            products=products,
        )
        previous_value = self.values.period_value(
            receipts=snapshot.receipts,
            stock_outs=snapshot.stock_outs,
            window=resolved.previous,
            products=products,
        )
        kpis = self._kpis(snapshot.products, current_value)
        previous_kpis = self._kpis(snapshot.products, previous_value)
        trends = self.trends.compare(kpis.trend_metrics(), previous_kpis.trend_metrics())

        chart = self.aggregator.aggregate_flows(
            receipts=snapshot.receipts,
            stock_outs=snapshot.stock_outs,
            window=resolved.current,
            granularity=resolved.granularity,
        )

        top_products, top_beneficiaries, top_categories = self._rankings(
            snapshot.stock_outs, resolved.current, products
        )

        feed = self.alerts.build_feed(
            products=snapshot.products,
            maintenances=snapshot.maintenances,
            today=today,
        )
        summary = self.alerts.summarize(alerts=feed, read_ids=self.read_state.load())

        counts, _ = select_in_window(
            snapshot.inventory_counts, lambda c: c.counted_at, resolved.current, self.tz
        )
        count_lines = tuple(self.alerts.variance_lines(counts, include_conforming=True))

        logger.info("dashboard_view_built", extra={
            "period": token.value,
            "now": now.isoformat(),
            "granularity": resolved.granularity.value,
            "bucket_count": len(chart.buckets),
            "alert_count": len(feed),
            "unread_count": summary.unread_count,
            "degraded_sources": list(snapshot.degraded_sources),
        })

        return DashboardView(
            period=resolved,
            today=today,
            kpis=kpis,
            previous_kpis=previous_kpis,
            trends=trends,
            chart=chart,
            top_products_out=top_products,
            top_beneficiaries=top_beneficiaries,
            top_categories=top_categories,
            alerts=feed,
            alert_summary=summary,
            count_lines=count_lines,
            degraded_sources=snapshot.degraded_sources,
        )

    def _kpis(self, products: Iterable[Product], value: PeriodValue) -> DashboardKpis:
        products = tuple(products)
        statuses = [stock_status(p) for p in products]
        return DashboardKpis(
            total_stock_value=self.values.stock_value(products),
            product_count=len(products),
            low_stock_count=sum(1 for s in statuses if s == StockStatus.LOW),
            out_of_stock_count=sum(1 for p in products if p.quantity <= ZERO),
            receipts_value=value.receipts.value,
            receipts_quantity=value.receipts.quantity,
            stock_outs_value=value.stock_outs.value,
            stock_outs_quantity=value.stock_outs.quantity,
            net_value=value.net_value,
            unpriced_count=value.receipts.unpriced_count + value.stock_outs.unpriced_count,
        )

    def _rankings(
        self,
        stock_outs: Iterable[StockOutEvent],
        window: TimeWindow,
        products: dict[int, Product],
    ) -> tuple[tuple[RankedGroup, ...], tuple[RankedGroup, ...], tuple[RankedGroup, ...]]:
        selected, _ = select_in_window(stock_outs, lambda s: s.movement_date, window, self.tz)
        # Every selected event has a resolvable date, so values pair 1:1 with events.
        valued, _ = self.values.stock_out_values(selected, window, products)
        limit = self.settings.ranking_limit

        top_products = self.ranking.top_n(
            entries=[(event.product_id, event.quantity) for event in selected],
            limit=limit,
            labels={pid: p.name for pid, p in products.items()},
        )
        top_beneficiaries = self.ranking.top_n(
            entries=[
                (event.beneficiary, movement.value)
                for event, movement in zip(selected, valued)
                if event.beneficiary
            ],
            limit=limit,
        )
        category_of = {pid: p.category or UNCATEGORIZED for pid, p in products.items()}
        top_categories = self.ranking.top_n(
            entries=[
                (category_of.get(movement.product_id, UNCATEGORIZED), movement.value)
                for movement in valued
            ],
            limit=limit,
        )
        return top_products, top_beneficiaries, top_categories

    # -- Read-state ------------------------------------------------------

    def _feed(self, alerts: Iterable[Alert] | None) -> tuple[Alert, ...]:
        if alerts is not None:
            return tuple(alerts)
        view = self.current_view
        return view.alerts if view is not None else ()

    def legacy_alert_id(self, alert_id: AlertId) -> int:
        """Numeric id of ``alert_id`` under the configured legacy offset."""
        return alert_id.legacy_id(self.settings.legacy_maintenance_offset)

    def acknowledge(self, alert_id: AlertId, alerts: Iterable[Alert] | None = None) -> AlertFeedSummary:
        """Mark one alert as read, persist, and return the new partition."""
        read_ids = mark_read(self.read_state.load(), alert_id)
        self.read_state.save(read_ids)
        logger.info("alert_acknowledged", extra={"alert_key": alert_id.key})
        return self.alerts.summarize(alerts=self._feed(alerts), read_ids=read_ids)

    def acknowledge_all(self, alerts: Iterable[Alert] | None = None) -> AlertFeedSummary:
        """Mark every alert of the feed as read (and forget older ids)."""
        feed = self._feed(alerts)
        read_ids = mark_all_read(feed)
        self.read_state.save(read_ids)
        logger.info("alerts_acknowledged_all", extra={"alert_count": len(read_ids)})
        return self.alerts.summarize(alerts=feed, read_ids=read_ids)

    def variance_report(self, status: VarianceStatus | None = None) -> tuple[VarianceLine, ...]:
        """
        Count lines of the current view.

        Without ``status`` only the lines with a variance are returned;
        ``VarianceStatus.CONFORMING`` selects the lines that matched.
        """
        view = self.current_view
        if view is None:
            return ()
        if status is None:
            return view.variances
        return tuple(line for line in view.count_lines if line.status == status)
