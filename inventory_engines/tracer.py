"""
inventory_engines.tracer -- ``@traced_engine`` and INVENTORY_ENGINE_TRACE.

Responsibility:
    Wrap pure engine entry points so each call logs which engine ran, its
    version, a fingerprint of the inputs it was given and how long it took.
    Two refreshes over the same snapshot log the same fingerprint, which is
    how a stale or divergent result is traced back to its inputs.

Architecture position:
    Engines -- support code.  Emits a log record and nothing else.

Invariants enforced:
    - The fingerprint depends on input values only: dataclasses by field,
      mappings by sorted key, sets by sorted member.
    - Only keyword arguments are fingerprinted; callers of traced engines
      pass the fingerprinted inputs by keyword.

Usage:
    @traced_engine("ranking", "1.0", fingerprint_fields=("entries", "limit"))
    def top_n(self, *, entries, limit=5):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from inventory_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonicalize(value: Any) -> str:
    """Stable text form of ``value``; unknown types fall back to ``str``."""
    match value:
        case None:
            return "null"
        case Enum():
            return str(value.value)
        case str():
            return value
        case bool() | int() | float() | Decimal():
            return str(value)
        case datetime() | date():
            return value.isoformat()
        case Mapping():
            pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
            return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
        case set() | frozenset():
            return "{" + ",".join(sorted(map(_canonicalize, value))) + "}"
        case list() | tuple():
            return "[" + ",".join(map(_canonicalize, value)) + "]"
    if is_dataclass(value) and not isinstance(value, type):
        body = ",".join(
            f"{f.name}:{_canonicalize(getattr(value, f.name))}" for f in fields(value)
        )
        return f"{type(value).__name__}({body})"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """
    SHA-256 prefix over ``name=value`` pairs of the selected kwargs.

    A selected field absent from ``kwargs`` contributes ``name=null``.
    """
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorate an engine entry point to log INVENTORY_ENGINE_TRACE per call."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracing = _logger.isEnabledFor(logging.INFO)
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if tracing and fingerprint_fields
                else ""
            )

            started = time.perf_counter()
            result = func(*args, **kwargs)

            if tracing:
                _logger.info(
                    "INVENTORY_ENGINE_TRACE",
                    extra={
                        "trace_type": "INVENTORY_ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fingerprint,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                        "function": func.__qualname__,
                    },
                )
            return result

        return wrapper

    return decorator
