"""ORM models owned by the analytics boundary."""

from inventory_kernel.models.acknowledged_alert import AcknowledgedAlert

__all__ = ["AcknowledgedAlert"]
