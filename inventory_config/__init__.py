"""
inventory_config -- single public entrypoint for analytics settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  Engines never read files or the
    environment; services pass them the values of the returned
    ``EngineSettings``.

Architecture position:
    Configuration -- YAML-driven settings.  Sits above ``inventory_kernel``
    and below ``inventory_services``.  The kernel and the engines MUST NEVER
    import from ``inventory_config``.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Deterministic checksum: the same settings always produce the same
      checksum in the trace record.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ConfigurationError`` -- unknown key or invalid value.
    - ``yaml.YAMLError`` -- the file is not valid YAML.

Audit relevance:
    Every successful call emits an ``INVENTORY_CONFIG_TRACE`` log entry with
    the source path, checksum and effective values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import compute_checksum, load_yaml_file, parse_settings
from inventory_config.schema import EngineSettings

_logger = logging.getLogger("inventory_kernel.config")

_DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = ["EngineSettings", "get_active_settings"]


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Override path to a settings file.  Defaults to
            inventory_config/sets/default.yaml.

    Returns:
        Frozen ``EngineSettings``.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ConfigurationError: If a key is unknown or a value invalid.
    """
    source = Path(path) if path is not None else _DEFAULT_SETTINGS_PATH
    settings = parse_settings(load_yaml_file(source))
    values = settings.to_dict()

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "source_path": str(source),
            "checksum": compute_checksum(values),
            **values,
        },
    )
    return settings
