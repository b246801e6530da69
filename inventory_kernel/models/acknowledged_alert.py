"""
Module: inventory_kernel.models.acknowledged_alert
Responsibility: ORM persistence for alert ids a user has marked as read.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (storage_key, alert_key) pair.
    - ``position`` preserves the serialized order of the id list.

Non-goals:
    - No merge between concurrent writers: a save replaces every row of its
      storage key (last write wins).
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class AcknowledgedAlert(Base):
    """An alert id acknowledged under one storage key."""

    __tablename__ = "acknowledged_alerts"

    __table_args__ = (
        UniqueConstraint("storage_key", "alert_key", name="uq_acknowledged_alert_key"),
        Index("idx_acknowledged_alert_storage", "storage_key"),
    )

    # Read-state namespace (e.g., "readAlerts", or one per user)
    storage_key: Mapped[str] = mapped_column(String(100), nullable=False)

    # Composite alert identifier (e.g., "product:1", "maintenance:9")
    alert_key: Mapped[str] = mapped_column(String(64), nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    acknowledged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AcknowledgedAlert {self.storage_key}:{self.alert_key}>"
