"""
inventory_services.snapshot_loader -- Assemble one immutable snapshot from the record collaborators.

Responsibility:
    Fetch the five record collections (products, receipts, stock withdrawals,
    inventory counts, maintenances) through a ``SnapshotSource`` and freeze
    them into an ``InventorySnapshot`` that one computation pass reads.

Architecture position:
    Services -- imperative shell.  The only place collaborator I/O happens;
    engines receive the finished snapshot.

Invariants enforced:
    - Primary collections (products, receipts, stock withdrawals) are
      required: any fetch error from them surfaces as
      ``SourceUnavailableError`` and no snapshot is produced.
    - Secondary collections (by default maintenances and inventory counts)
      degrade: any fetch error (``SourceUnavailableError``, ``ConnectionError``,
      ``TimeoutError`` ...) yields an empty collection, a WARNING log and the
      collection name in ``degraded_sources``.
    - Payload records that cannot be parsed are dropped one by one and
      logged; they never fail the whole collection.

Usage:
    loader = SnapshotLoader(source=PayloadSnapshotSource(payloads))
    snapshot = loader.load()
    snapshot.degraded_sources  # ("maintenances",) when that fetch failed
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, TypeVar

from inventory_config.schema import SECONDARY_SOURCES
from inventory_kernel.domain.records import (
    InventoryCount,
    InventorySnapshot,
    MaintenanceRecord,
    Product,
    ReceiptEvent,
    StockOutEvent,
)
from inventory_kernel.exceptions import SourceUnavailableError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.snapshot_loader")

R = TypeVar("R")


class SnapshotSource(Protocol):
    """Read access to the record collections."""

    def fetch_products(self) -> Iterable[Product]: ...

    def fetch_receipts(self) -> Iterable[ReceiptEvent]: ...

    def fetch_stock_outs(self) -> Iterable[StockOutEvent]: ...

    def fetch_inventory_counts(self) -> Iterable[InventoryCount]: ...

    def fetch_maintenances(self) -> Iterable[MaintenanceRecord]: ...


_PARSERS: dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "products": Product.from_payload,
    "receipts": ReceiptEvent.from_payload,
    "stock_outs": StockOutEvent.from_payload,
    "inventory_counts": InventoryCount.from_payload,
    "maintenances": MaintenanceRecord.from_payload,
}


class PayloadSnapshotSource:
    """
    ``SnapshotSource`` over JSON-like payloads, keyed by collection name.

    A collection missing from ``payloads`` is reported unavailable, as is a
    collection whose payload is an exception instance (used to simulate a
    failed fetch).
    """

    def __init__(self, payloads: Mapping[str, Any]):
        self._payloads = payloads

    def _records(self, collection: str) -> list[Any]:
        if collection not in self._payloads:
            raise SourceUnavailableError(collection, "no payload")
        raw = self._payloads[collection]
        if isinstance(raw, Exception):
            raise SourceUnavailableError(collection, str(raw)) from raw
        if raw is None:
            return []

        parse = _PARSERS[collection]
        records = []
        for index, item in enumerate(raw):
            try:
                records.append(parse(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("record_payload_rejected", extra={
                    "collection": collection,
                    "index": index,
                    "error": str(e),
                })
        return records

    def fetch_products(self) -> list[Product]:
        return self._records("products")

    def fetch_receipts(self) -> list[ReceiptEvent]:
        return self._records("receipts")

    def fetch_stock_outs(self) -> list[StockOutEvent]:
        return self._records("stock_outs")

    def fetch_inventory_counts(self) -> list[InventoryCount]:
        return self._records("inventory_counts")

    def fetch_maintenances(self) -> list[MaintenanceRecord]:
        return self._records("maintenances")


class SnapshotLoader:
    """
    Build ``InventorySnapshot`` instances from a ``SnapshotSource``.

    Contract:
        Receives the source via constructor injection.
    Guarantees:
        - Every returned snapshot holds tuples only (immutable).
        - ``degraded_sources`` lists exactly the secondary collections that
          failed, in fetch order.
    """

    def __init__(
        self,
        source: SnapshotSource,
        secondary_sources: Iterable[str] = SECONDARY_SOURCES,
    ):
        self._source = source
        self._secondary = frozenset(secondary_sources)

    def _fetch(
        self,
        collection: str,
        fetch: Callable[[], Iterable[R]],
        degraded: list[str],
    ) -> tuple[R, ...]:
        try:
            return tuple(fetch())
        except Exception as e:
            reason = e.reason if isinstance(e, SourceUnavailableError) else f"{type(e).__name__}: {e}"
            if collection not in self._secondary:
                logger.error("snapshot_source_failed", extra={
                    "collection": collection,
                    "reason": reason,
                }, exc_info=True)
                if isinstance(e, SourceUnavailableError):
                    raise
                raise SourceUnavailableError(collection, reason) from e
            degraded.append(collection)
            logger.warning("snapshot_source_degraded", extra={
                "collection": collection,
                "reason": reason,
            }, exc_info=True)
            return ()

    def load(self) -> InventorySnapshot:
        """
        Fetch every collection once.

        Raises:
            SourceUnavailableError: If a primary collection is unavailable.
        """
        degraded: list[str] = []
        snapshot = InventorySnapshot(
            products=self._fetch("products", self._source.fetch_products, degraded),
            receipts=self._fetch("receipts", self._source.fetch_receipts, degraded),
            stock_outs=self._fetch("stock_outs", self._source.fetch_stock_outs, degraded),
            inventory_counts=self._fetch(
                "inventory_counts", self._source.fetch_inventory_counts, degraded
            ),
            maintenances=self._fetch("maintenances", self._source.fetch_maintenances, degraded),
            degraded_sources=tuple(degraded),
        )
        logger.info("snapshot_loaded", extra={
            "product_count": len(snapshot.products),
            "receipt_count": len(snapshot.receipts),
            "stock_out_count": len(snapshot.stock_outs),
            "inventory_count_count": len(snapshot.inventory_counts),
            "maintenance_count": len(snapshot.maintenances),
            "degraded_sources": list(snapshot.degraded_sources),
        })
        return snapshot
