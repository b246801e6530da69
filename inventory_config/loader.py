"""
Settings Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``inventory_config.schema.EngineSettings`` dataclass.  Services call
``inventory_config.get_active_settings()``, not this module.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel's
exception types only.

Invariants enforced
-------------------
* Unknown keys and invalid values raise ``ConfigurationError``; absent keys
  keep their documented defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  settings for change detection.

Failure modes
-------------
* Settings file absent -> ``FileNotFoundError`` (not wrapped).
* YAML syntax error -> ``yaml.YAMLError`` (not wrapped).
* Document is not a mapping, unknown key or bad value
  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from datetime import date
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from inventory_config.schema import KNOWN_SOURCES, EngineSettings
from inventory_kernel.exceptions import ConfigurationError

_FIELD_NAMES = frozenset(f.name for f in fields(EngineSettings))

_POSITIVE_INT_FIELDS = (
    "maintenance_horizon_days",
    "year_granularity_threshold_days",
    "legacy_maintenance_offset",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Read ``path`` with ``yaml.safe_load``; an empty document reads as ``{}``.

    Raises:
        FileNotFoundError: no file at ``path``.
        yaml.YAMLError: the file is not valid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", f"expected a mapping, got {type(data).__name__}")
    return data


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"not an ISO date: {value!r}")


def _int_field(data: dict[str, Any], name: str, minimum: int) -> int:
    value = data[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(name, f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(name, f"must be >= {minimum}, got {value}")
    return value


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse ``EngineSettings`` from a dict.

    Preconditions:
        - ``data`` keys are a subset of the ``EngineSettings`` field names.
    Postconditions:
        - Returns a frozen ``EngineSettings``; absent keys keep defaults.
    Raises:
        ConfigurationError: on unknown keys or invalid values.
    """
    unknown = sorted(set(data) - _FIELD_NAMES)
    if unknown:
        raise ConfigurationError(unknown[0], "unknown setting")

    values: dict[str, Any] = {}

    if "ranking_limit" in data:
        values["ranking_limit"] = _int_field(data, "ranking_limit", 0)
    for name in _POSITIVE_INT_FIELDS:
        if name in data:
            values[name] = _int_field(data, name, 1)

    if "all_time_floor" in data:
        try:
            values["all_time_floor"] = parse_date(data["all_time_floor"])
        except ValueError as e:
            raise ConfigurationError("all_time_floor", str(e)) from e

    if "reporting_timezone" in data:
        name = data["reporting_timezone"]
        if not isinstance(name, str) or not name:
            raise ConfigurationError("reporting_timezone", f"expected an IANA zone name, got {name!r}")
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError("reporting_timezone", f"unknown time zone {name!r}") from e
        values["reporting_timezone"] = name

    if "read_state_storage_key" in data:
        key = data["read_state_storage_key"]
        if not isinstance(key, str) or not key.strip():
            raise ConfigurationError("read_state_storage_key", "must be a non-empty string")
        values["read_state_storage_key"] = key

    if "secondary_sources" in data:
        sources = data["secondary_sources"] or []
        if not isinstance(sources, list):
            raise ConfigurationError("secondary_sources", "expected a list")
        for source in sources:
            if source not in KNOWN_SOURCES:
                raise ConfigurationError("secondary_sources", f"unknown source {source!r}")
        if "products" in sources:
            raise ConfigurationError("secondary_sources", "products cannot be a secondary source")
        values["secondary_sources"] = tuple(sources)

    return EngineSettings(**values)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 hex digest of ``data`` dumped as key-sorted JSON.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
