"""
Records -- Immutable snapshots of the transactional inventory data.

Responsibility:
    Typed, frozen views of the five record collections the analytics engine
    reads: products, stock receipts (with line items), stock withdrawals,
    physical inventory counts (with line items) and vehicle maintenance
    records.  ``from_payload`` constructors accept the JSON-like dicts
    returned by the record collaborators.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Records are never mutated by the engines; every computation produces
      new output structures.
    - ``CountLine.variance`` is derived (counted - theoretical) and therefore
      always consistent with its two inputs.
    - Timestamps stay raw until an engine resolves them, so that one bad
      timestamp only removes that record from time-based computations.

Failure modes:
    - KeyError from ``from_payload`` when an identifier field is missing.
    - ValueError from ``from_payload`` when a numeric field is not a number.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from inventory_kernel.domain.values import ZERO, to_decimal

RawTimestamp = datetime | date | str | None

# Threshold used when a product payload carries no critical level.
DEFAULT_CRITICAL_LEVEL = Decimal("10")


@dataclass(frozen=True)
class Product:
    """A catalogue product with its current stock level and master price."""

    id: int
    name: str
    category: str
    quantity: Decimal
    price: Decimal
    critical_level: Decimal
    supplier: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> Product:
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            category=str(data.get("category") or ""),
            quantity=to_decimal(data.get("quantity"), ZERO),
            price=to_decimal(data.get("price"), ZERO),
            # Only an absent level takes the default; an explicit 0 is kept.
            critical_level=to_decimal(data.get("critical_level"), DEFAULT_CRITICAL_LEVEL),
            supplier=data.get("supplier"),
        )


@dataclass(frozen=True)
class ReceiptLine:
    """One received product line; ``unit_price`` is the price captured at receipt."""

    product_id: int
    quantity: Decimal
    unit_price: Decimal | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ReceiptLine:
        unit_price = data.get("unit_price")
        return cls(
            product_id=int(data["product_id"]),
            quantity=to_decimal(data.get("quantity"), ZERO),
            unit_price=None if unit_price is None else to_decimal(unit_price),
        )


@dataclass(frozen=True)
class ReceiptEvent:
    """A stock receipt: an ordered list of lines received at one instant."""

    id: int
    received_at: RawTimestamp
    lines: tuple[ReceiptLine, ...] = ()
    supplier: str | None = None
    agent: str | None = None

    @property
    def total_quantity(self) -> Decimal:
        return sum((line.quantity for line in self.lines), ZERO)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ReceiptEvent:
        return cls(
            id=int(data["id"]),
            received_at=data.get("received_at"),
            lines=tuple(ReceiptLine.from_payload(item) for item in data.get("items") or ()),
            supplier=data.get("supplier"),
            agent=data.get("agent"),
        )


@dataclass(frozen=True)
class StockOutEvent:
    """
    A stock withdrawal.

    ``price`` is the unit price captured when the withdrawal was recorded,
    if any.  ``exit_type`` is one of "Définitive", "Affectation",
    "Provisoire" or None.
    """

    id: int
    product_id: int
    quantity: Decimal
    movement_date: RawTimestamp
    price: Decimal | None = None
    beneficiary: str | None = None
    exit_type: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> StockOutEvent:
        price = data.get("price")
        return cls(
            id=int(data["id"]),
            product_id=int(data["product_id"]),
            quantity=to_decimal(data.get("quantity"), ZERO),
            movement_date=data.get("movement_date"),
            price=None if price is None else to_decimal(price),
            beneficiary=data.get("beneficiary") or None,
            exit_type=data.get("exit_type"),
        )


@dataclass(frozen=True)
class CountLine:
    """One counted product line of a physical inventory."""

    product_id: int
    theoretical_qty: Decimal
    counted_qty: Decimal

    @property
    def variance(self) -> Decimal:
        """Signed difference between counted and theoretical quantity."""
        return self.counted_qty - self.theoretical_qty

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CountLine:
        # A stored "variance" column is ignored: it is always recomputed.
        return cls(
            product_id=int(data["product_id"]),
            theoretical_qty=to_decimal(data.get("theoretical_qty"), ZERO),
            counted_qty=to_decimal(data.get("counted_qty"), ZERO),
        )


@dataclass(frozen=True)
class InventoryCount:
    """A physical inventory count performed by one agent."""

    id: int
    agent: str
    counted_at: RawTimestamp
    lines: tuple[CountLine, ...] = ()

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> InventoryCount:
        return cls(
            id=int(data["id"]),
            agent=str(data.get("agent") or ""),
            counted_at=data.get("counted_at"),
            lines=tuple(CountLine.from_payload(item) for item in data.get("items") or ()),
        )


@dataclass(frozen=True)
class MaintenanceRecord:
    """A vehicle maintenance, optionally scheduling the next one."""

    id: int
    vehicle_id: int | None
    type: str
    maintenance_date: RawTimestamp
    cost: Decimal = ZERO
    agent: str | None = None
    next_maintenance_date: RawTimestamp = None
    vehicle_plate: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> MaintenanceRecord:
        vehicle = data.get("vehicle")
        if not isinstance(vehicle, Mapping):
            vehicle = {}
        vehicle_id = data.get("vehicle_id", vehicle.get("id"))
        return cls(
            id=int(data["id"]),
            vehicle_id=None if vehicle_id is None else int(vehicle_id),
            type=str(data.get("type") or ""),
            maintenance_date=data.get("maintenance_date"),
            cost=to_decimal(data.get("cost"), ZERO),
            agent=data.get("agent"),
            next_maintenance_date=data.get("next_maintenance_date"),
            vehicle_plate=vehicle.get("plate_number") or data.get("vehicle_plate"),
        )


@dataclass(frozen=True)
class InventorySnapshot:
    """
    Everything one computation pass reads.

    ``degraded_sources`` names the secondary collections that could not be
    fetched and were replaced by empty tuples.
    """

    products: tuple[Product, ...] = ()
    receipts: tuple[ReceiptEvent, ...] = ()
    stock_outs: tuple[StockOutEvent, ...] = ()
    inventory_counts: tuple[InventoryCount, ...] = ()
    maintenances: tuple[MaintenanceRecord, ...] = ()
    degraded_sources: tuple[str, ...] = field(default=())

    def products_by_id(self) -> dict[int, Product]:
        return {product.id: product for product in self.products}
