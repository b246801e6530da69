"""Record builders with sensible defaults for engine and service tests."""

from datetime import UTC, date, datetime
from decimal import Decimal

from inventory_kernel.domain.records import (
    CountLine,
    InventoryCount,
    MaintenanceRecord,
    Product,
    ReceiptEvent,
    ReceiptLine,
    StockOutEvent,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
TODAY = date(2024, 6, 15)


def make_product(
    id: int = 1,
    name: str = "Gants",
    quantity: str | int = "50",
    price: str | int = "10",
    critical_level: str | int = "5",
    category: str = "EPI",
) -> Product:
    return Product(
        id=id,
        name=name,
        category=category,
        quantity=Decimal(str(quantity)),
        price=Decimal(str(price)),
        critical_level=Decimal(str(critical_level)),
    )


def make_receipt(
    id: int,
    received_at,
    lines: list[tuple[int, str | int, str | int | None]],
) -> ReceiptEvent:
    """Receipt with (product_id, quantity, unit_price) lines."""
    return ReceiptEvent(
        id=id,
        received_at=received_at,
        lines=tuple(
            ReceiptLine(
                product_id=pid,
                quantity=Decimal(str(qty)),
                unit_price=None if price is None else Decimal(str(price)),
            )
            for pid, qty, price in lines
        ),
    )


def make_stock_out(
    id: int,
    product_id: int,
    quantity: str | int,
    movement_date,
    price: str | int | None = None,
    beneficiary: str | None = None,
) -> StockOutEvent:
    return StockOutEvent(
        id=id,
        product_id=product_id,
        quantity=Decimal(str(quantity)),
        movement_date=movement_date,
        price=None if price is None else Decimal(str(price)),
        beneficiary=beneficiary,
    )


def make_maintenance(
    id: int,
    next_maintenance_date=None,
    plate: str | None = "AB-123-CD",
    type: str = "Vidange",
    vehicle_id: int | None = 1,
) -> MaintenanceRecord:
    return MaintenanceRecord(
        id=id,
        vehicle_id=vehicle_id,
        type=type,
        maintenance_date="2024-01-01",
        next_maintenance_date=next_maintenance_date,
        vehicle_plate=plate,
    )


def make_count(
    id: int,
    counted_at,
    lines: list[tuple[int, str | int, str | int]],
    agent: str = "Awa",
) -> InventoryCount:
    """Inventory count with (product_id, theoretical, counted) lines."""
    return InventoryCount(
        id=id,
        agent=agent,
        counted_at=counted_at,
        lines=tuple(
            CountLine(
                product_id=pid,
                theoretical_qty=Decimal(str(theo)),
                counted_qty=Decimal(str(counted)),
            )
            for pid, theo, counted in lines
        ),
    )
