"""
inventory_services -- Imperative shell around the analytics engines.

Snapshot loading, read-state persistence, refresh sequencing and the
dashboard orchestration live here.  Engines never import from this package.
"""

from inventory_services.dashboard_service import DashboardKpis, DashboardService, DashboardView
from inventory_services.read_state import (
    InMemoryReadStateStore,
    JsonFileReadStateStore,
    ReadStateStore,
    SqlReadStateStore,
    decode_read_ids,
    encode_read_ids,
    read_state_from_settings,
)
from inventory_services.refresh import RefreshSequencer
from inventory_services.snapshot_loader import PayloadSnapshotSource, SnapshotLoader, SnapshotSource

__all__ = [
    "DashboardKpis",
    "DashboardService",
    "DashboardView",
    "InMemoryReadStateStore",
    "JsonFileReadStateStore",
    "PayloadSnapshotSource",
    "ReadStateStore",
    "RefreshSequencer",
    "SnapshotLoader",
    "SnapshotSource",
    "SqlReadStateStore",
    "decode_read_ids",
    "encode_read_ids",
    "read_state_from_settings",
]
