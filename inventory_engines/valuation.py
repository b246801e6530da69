"""
inventory_engines.valuation -- Unit price resolution and movement value sums.

Responsibility:
    Resolve the unit price of each stock movement through a fallback chain
    and compute value KPIs over a window: receipts value, withdrawals value,
    net period value (receipts - withdrawals) and total stock value.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Price resolution, first match wins:
        (a) price captured on the movement itself (None or zero falls through),
        (b) current master price of the referenced product,
        (c) zero.
      Never raises.  Movements priced at zero because neither (a) nor (b)
      exists are counted in ``unpriced_count``: totals may be understated
      and the engine does not try to correct it.
    - Only in-window movements contribute; movements with an unresolvable
      timestamp are skipped and counted.
    - Decimal-only arithmetic.

Usage:
    from inventory_engines.valuation import ValueEngine

    engine = ValueEngine(tz=UTC)
    period_value = engine.period_value(
        receipts=snapshot.receipts,
        stock_outs=snapshot.stock_outs,
        window=period.current,
        products=snapshot.products_by_id(),
    )
    period_value.net_value
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, tzinfo
from decimal import Decimal
from enum import Enum

from inventory_engines.periods import TimeWindow, select_in_window
from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.records import Product, ReceiptEvent, StockOutEvent
from inventory_kernel.domain.values import ZERO
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.valuation")


class PriceSource(str, Enum):
    """Where a resolved unit price came from."""

    CAPTURED = "captured"
    MASTER = "master"
    NONE = "none"


@dataclass(frozen=True)
class ResolvedPrice:
    amount: Decimal
    source: PriceSource


@dataclass(frozen=True)
class MovementValue:
    """One valued movement line: quantity x resolved unit price."""

    product_id: int
    quantity: Decimal
    unit_price: ResolvedPrice
    source_ref: str

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_price.amount


@dataclass(frozen=True)
class FlowValue:
    """Quantity and value totals of one movement direction over a window."""

    quantity: Decimal = ZERO
    value: Decimal = ZERO
    line_count: int = 0
    unpriced_count: int = 0
    skipped_count: int = 0


@dataclass(frozen=True)
class PeriodValue:
    """Receipts and withdrawals of one window, side by side."""

    receipts: FlowValue
    stock_outs: FlowValue

    @property
    def net_value(self) -> Decimal:
        return self.receipts.value - self.stock_outs.value

    @property
    def net_quantity(self) -> Decimal:
        return self.receipts.quantity - self.stock_outs.quantity


def resolve_unit_price(captured: Decimal | None, product: Product | None) -> ResolvedPrice:
    """Apply the captured -> master -> zero fallback chain."""
    if captured:
        return ResolvedPrice(amount=captured, source=PriceSource.CAPTURED)
    if product is not None:
        return ResolvedPrice(amount=product.price, source=PriceSource.MASTER)
    return ResolvedPrice(amount=ZERO, source=PriceSource.NONE)


def _total(values: list[MovementValue], skipped: int) -> FlowValue:
    return FlowValue(
        quantity=sum((v.quantity for v in values), ZERO),
        value=sum((v.value for v in values), ZERO),
        line_count=len(values),
        unpriced_count=sum(1 for v in values if v.unit_price.source == PriceSource.NONE),
        skipped_count=skipped,
    )


class ValueEngine:
    """
    Value movements over a window.

    Contract:
        Pure functions -- all records and the product index are parameters.
    Guarantees:
        - ``net_period_value`` == receipts value - withdrawals value over the
          same window, both priced through ``resolve_unit_price``.
    """

    def __init__(self, tz: tzinfo = UTC):
        self.tz = tz

    def receipt_line_values(
        self,
        receipts: Iterable[ReceiptEvent],
        window: TimeWindow,
        products: Mapping[int, Product],
    ) -> tuple[list[MovementValue], int]:
        """Valued receipt lines of in-window receipts, plus the skipped count."""
        selected, skipped = select_in_window(receipts, lambda r: r.received_at, window, self.tz)
        values = [
            MovementValue(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=resolve_unit_price(line.unit_price, products.get(line.product_id)),
                source_ref=f"receipt:{receipt.id}",
            )
            for receipt in selected
            for line in receipt.lines
        ]
        if skipped:
            logger.warning("receipts_skipped_bad_timestamp", extra={"skipped_count": skipped})
        return values, skipped

    def stock_out_values(
        self,
        stock_outs: Iterable[StockOutEvent],
        window: TimeWindow,
        products: Mapping[int, Product],
    ) -> tuple[list[MovementValue], int]:
        """Valued in-window withdrawals, plus the skipped count."""
        selected, skipped = select_in_window(stock_outs, lambda s: s.movement_date, window, self.tz)
        values = [
            MovementValue(
                product_id=event.product_id,
                quantity=event.quantity,
                unit_price=resolve_unit_price(event.price, products.get(event.product_id)),
                source_ref=f"stock_out:{event.id}",
            )
            for event in selected
        ]
        if skipped:
            logger.warning("stock_outs_skipped_bad_timestamp", extra={"skipped_count": skipped})
        return values, skipped

    def receipts_value(
        self,
        receipts: Iterable[ReceiptEvent],
        window: TimeWindow,
        products: Mapping[int, Product],
    ) -> FlowValue:
        return _total(*self.receipt_line_values(receipts, window, products))

    def stock_outs_value(
        self,
        stock_outs: Iterable[StockOutEvent],
        window: TimeWindow,
        products: Mapping[int, Product],
    ) -> FlowValue:
        return _total(*self.stock_out_values(stock_outs, window, products))

    @traced_engine("valuation", "1.0", fingerprint_fields=("window",))
    def period_value(
        self,
        receipts: Iterable[ReceiptEvent],
        stock_outs: Iterable[StockOutEvent],
        window: TimeWindow,
        products: Mapping[int, Product],
    ) -> PeriodValue:
        """Receipts and withdrawals totals for one window."""
        result = PeriodValue(
            receipts=self.receipts_value(receipts, window, products),
            stock_outs=self.stock_outs_value(stock_outs, window, products),
        )
        logger.debug("period_value_computed", extra={
            "window_start": window.start.isoformat(),
            "window_end": window.end.isoformat(),
            "receipts_value": result.receipts.value,
            "stock_outs_value": result.stock_outs.value,
            "net_value": result.net_value,
            "unpriced_count": result.receipts.unpriced_count + result.stock_outs.unpriced_count,
        })
        return result

    def net_period_value(
        self,
        receipts: Iterable[ReceiptEvent],
        stock_outs: Iterable[StockOutEvent],
        window: TimeWindow,
        products: Mapping[int, Product],
    ) -> Decimal:
        """Receipts value minus withdrawals value over ``window``."""
        return self.period_value(
            receipts=receipts,
            stock_outs=stock_outs,
            window=window,
            products=products,
        ).net_value

    @staticmethod
    def stock_value(products: Iterable[Product]) -> Decimal:
        """Current stock on hand valued at master prices."""
        return sum((p.quantity * p.price for p in products), ZERO)
