"""
Module: inventory_kernel.db.base
Responsibility: Declarative base for the ORM models of the shared read-state
    store.
Architecture position: Kernel > DB.  Imports nothing from models/ or outer
    layers.

Invariants enforced:
    - Every table has a uuid4 primary key stored as String(36).
    - ``datetime`` columns are timezone-aware.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID held as its 36-character text form, so SQLite and others agree."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
