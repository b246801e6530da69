"""
inventory_services.read_state -- Persistence of acknowledged (read) alert ids.

Responsibility:
    Load and save the set of alert ids a user has marked as read, behind a
    get/set interface with three backends: in-memory, a client-local JSON
    document under one fixed storage key, and an SQL table shared across
    devices.

Architecture position:
    Services -- imperative shell around the pure ``mark_read`` /
    ``mark_all_read`` helpers of ``inventory_engines.alerts``.

Invariants enforced:
    - Serialized form: ``{"version": 2, "ids": [sorted alert keys]}``.  A
      bare JSON list of integers is read as the version-1 format and mapped
      through ``AlertId.from_legacy``.
    - ``decode_read_ids(encode_read_ids(ids)) == ids``.
    - Loading never raises: missing state is the empty set, corrupt state is
      the empty set plus a WARNING.
    - Saving replaces the whole stored set (last write wins).

Failure modes:
    - ReadStateWriteError from ``save`` when the backend rejects the write.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC
from pathlib import Path
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_config.schema import EngineSettings
from inventory_engines.alerts import LEGACY_MAINTENANCE_ID_OFFSET, AlertId
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import ReadStateWriteError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.acknowledged_alert import AcknowledgedAlert

logger = get_logger("services.read_state")

PAYLOAD_VERSION = 2
DEFAULT_STORAGE_KEY = "readAlerts"


class CorruptReadStateError(ValueError):
    """Stored read-state cannot be decoded.  Never escapes this module."""


def encode_read_ids(ids: Iterable[AlertId]) -> str:
    """Serialize a read-set as a version-2 JSON payload."""
    keys = sorted({alert_id.key for alert_id in ids})
    return json.dumps({"version": PAYLOAD_VERSION, "ids": keys})


def _decode_strict(raw: Any, legacy_offset: int) -> frozenset[AlertId]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise CorruptReadStateError(f"invalid JSON: {e}") from e

    if isinstance(raw, list):
        ids = set()
        for item in raw:
            if isinstance(item, bool) or not isinstance(item, int):
                raise CorruptReadStateError(f"legacy id is not an integer: {item!r}")
            ids.add(AlertId.from_legacy(item, legacy_offset))
        return frozenset(ids)

    if isinstance(raw, dict):
        if raw.get("version") != PAYLOAD_VERSION:
            raise CorruptReadStateError(f"unsupported version: {raw.get('version')!r}")
        keys = raw.get("ids")
        if not isinstance(keys, list):
            raise CorruptReadStateError("ids is not a list")
        try:
            return frozenset(AlertId.from_key(key) for key in keys)
        except (AttributeError, TypeError, ValueError) as e:
            raise CorruptReadStateError(f"invalid alert key: {e}") from e

    raise CorruptReadStateError(f"unexpected payload type {type(raw).__name__}")


def decode_read_ids(
    raw: Any,
    legacy_offset: int = LEGACY_MAINTENANCE_ID_OFFSET,
    storage_key: str = DEFAULT_STORAGE_KEY,
) -> frozenset[AlertId]:
    """
    Decode a stored read-set (JSON text or already-parsed JSON value).

    Returns:
        The decoded ids; the empty set when ``raw`` is missing or corrupt.
    """
    if raw is None or raw == "":
        return frozenset()
    try:
        return _decode_strict(raw, legacy_offset)
    except CorruptReadStateError as e:
        logger.warning("read_state_corrupt", extra={
            "storage_key": storage_key,
            "reason": str(e),
        })
        return frozenset()


class ReadStateStore(ABC):
    """Get/set access to one persisted read-set."""

    storage_key: str

    @abstractmethod
    def load(self) -> frozenset[AlertId]:
        """Current read-set; never raises."""

    @abstractmethod
    def save(self, ids: Iterable[AlertId]) -> None:
        """
        Replace the stored read-set.

        Raises:
            ReadStateWriteError: If the backend rejects the write.
        """


class InMemoryReadStateStore(ReadStateStore):
    """Read-set kept as its serialized payload in process memory."""

    def __init__(
        self,
        initial: str | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        legacy_offset: int = LEGACY_MAINTENANCE_ID_OFFSET,
    ):
        self.storage_key = storage_key
        self.legacy_offset = legacy_offset
        self.raw = initial

    def load(self) -> frozenset[AlertId]:
        return decode_read_ids(self.raw, self.legacy_offset, self.storage_key)

    def save(self, ids: Iterable[AlertId]) -> None:
        self.raw = encode_read_ids(ids)


class JsonFileReadStateStore(ReadStateStore):
    """
    Client-local key/value document: a JSON object whose ``storage_key``
    entry holds the read-set payload.  Other keys of the document are
    preserved on save.
    """

    def __init__(
        self,
        path: Path | str,
        storage_key: str = DEFAULT_STORAGE_KEY,
        legacy_offset: int = LEGACY_MAINTENANCE_ID_OFFSET,
    ):
        self.path = Path(path)
        self.storage_key = storage_key
        self.legacy_offset = legacy_offset

    def _read_document(self) -> dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("read_state_unreadable", extra={
                "storage_key": self.storage_key,
                "path": str(self.path),
                "error": str(e),
            })
            return {}
        try:
            document = json.loads(text)
        except ValueError:
            logger.warning("read_state_document_corrupt", extra={
                "storage_key": self.storage_key,
                "path": str(self.path),
            })
            return {}
        if not isinstance(document, dict):
            logger.warning("read_state_document_corrupt", extra={
                "storage_key": self.storage_key,
                "path": str(self.path),
            })
            return {}
        return document

    def load(self) -> frozenset[AlertId]:
        document = self._read_document()
        return decode_read_ids(document.get(self.storage_key), self.legacy_offset, self.storage_key)

    def save(self, ids: Iterable[AlertId]) -> None:
        document = self._read_document()
        document[self.storage_key] = encode_read_ids(ids)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise ReadStateWriteError(self.storage_key, str(e)) from e
        logger.debug("read_state_saved", extra={
            "storage_key": self.storage_key,
            "path": str(self.path),
        })


class SqlReadStateStore(ReadStateStore):
    """
    Read-set stored as rows of ``acknowledged_alerts``.

    Contract:
        Receives a Session via constructor injection and flushes on save;
        the caller owns the transaction boundary.
    """

    def __init__(
        self,
        session: Session,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Clock | None = None,
    ):
        self.session = session
        self.storage_key = storage_key
        self.clock = clock or SystemClock()

    def load(self) -> frozenset[AlertId]:
        try:
            keys = self.session.scalars(
                select(AcknowledgedAlert.alert_key)
                .where(AcknowledgedAlert.storage_key == self.storage_key)
                .order_by(AcknowledgedAlert.position)
            ).all()
        except SQLAlchemyError as e:
            logger.warning("read_state_unreadable", extra={
                "storage_key": self.storage_key,
                "error": str(e),
            })
            return frozenset()

        ids = set()
        for key in keys:
            try:
                ids.add(AlertId.from_key(key))
            except ValueError:
                logger.warning("read_state_corrupt", extra={
                    "storage_key": self.storage_key,
                    "reason": f"invalid alert key: {key!r}",
                })
        return frozenset(ids)

    def save(self, ids: Iterable[AlertId]) -> None:
        keys = sorted({alert_id.key for alert_id in ids})
        now = self.clock.now().astimezone(UTC)
        try:
            self.session.execute(
                delete(AcknowledgedAlert).where(AcknowledgedAlert.storage_key == self.storage_key)
            )
            self.session.add_all(
                AcknowledgedAlert(
                    storage_key=self.storage_key,
                    alert_key=key,
                    position=position,
                    acknowledged_at=now,
                )
                for position, key in enumerate(keys)
            )
            self.session.flush()
        except SQLAlchemyError as e:
            raise ReadStateWriteError(self.storage_key, str(e)) from e
        logger.debug("read_state_saved", extra={
            "storage_key": self.storage_key,
            "id_count": len(keys),
        })


def read_state_from_settings(
    settings: EngineSettings,
    *,
    path: Path | str | None = None,
    session: Session | None = None,
    clock: Clock | None = None,
) -> ReadStateStore:
    """
    Build the read-state store configured by ``settings``.

    The SQL store is chosen when a ``session`` is given, the JSON document
    when a ``path`` is given, and the in-memory store otherwise.  Every
    store uses ``read_state_storage_key``; the stores that keep serialized
    payloads decode legacy integer lists with ``legacy_maintenance_offset``.
    """
    if session is not None and path is not None:
        raise ValueError("Pass either a session or a path, not both")
    key = settings.read_state_storage_key
    offset = settings.legacy_maintenance_offset
    if session is not None:
        return SqlReadStateStore(session, storage_key=key, clock=clock)
    if path is not None:
        return JsonFileReadStateStore(path, storage_key=key, legacy_offset=offset)
    return InMemoryReadStateStore(storage_key=key, legacy_offset=offset)
