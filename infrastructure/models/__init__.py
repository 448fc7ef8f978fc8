"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, OrderItemModel
from .refund import RefundModel, RefundItemModel
from .notification import NotificationModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "OrderItemModel",
    "RefundModel",
    "RefundItemModel",
    "NotificationModel",
]
