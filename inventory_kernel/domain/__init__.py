"""
Pure domain layer.

This module contains immutable record types and value helpers
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.records import (
    CountLine,
    InventoryCount,
    InventorySnapshot,
    MaintenanceRecord,
    Product,
    ReceiptEvent,
    ReceiptLine,
    StockOutEvent,
)
from inventory_kernel.domain.values import (
    HUNDRED,
    ZERO,
    parse_calendar_date,
    parse_timestamp,
    to_decimal,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Records
    "CountLine",
    "InventoryCount",
    "InventorySnapshot",
    "MaintenanceRecord",
    "Product",
    "ReceiptEvent",
    "ReceiptLine",
    "StockOutEvent",
    # Values
    "HUNDRED",
    "ZERO",
    "parse_calendar_date",
    "parse_timestamp",
    "to_decimal",
]
