"""
EngineSettings schema.

The typed, frozen form of one analytics settings file.  YAML documents are
parsed into this type by the loader; engines and services receive the
individual values through their constructors, never the file.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

# Collections whose failure degrades a snapshot instead of failing it.
SECONDARY_SOURCES = ("maintenances", "inventory_counts")

# Every collection a snapshot is assembled from.
KNOWN_SOURCES = ("products", "receipts", "stock_outs", "inventory_counts", "maintenances")


@dataclass(frozen=True)
class EngineSettings:
    """Tunable parameters of the analytics engines and services."""

    ranking_limit: int = 5
    maintenance_horizon_days: int = 7
    all_time_floor: date = date(2000, 1, 1)
    year_granularity_threshold_days: int = 730
    legacy_maintenance_offset: int = 100000
    reporting_timezone: str = "UTC"
    read_state_storage_key: str = "readAlerts"
    secondary_sources: tuple[str, ...] = SECONDARY_SOURCES

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.reporting_timezone)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["all_time_floor"] = self.all_time_floor.isoformat()
        data["secondary_sources"] = list(self.secondary_sources)
        return data
