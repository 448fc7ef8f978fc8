"""
订单领域实体 - 退款流程只关心订单的金额、归属与退款状态
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    """履约状态"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderRefundStatus(str, Enum):
    """订单退款状态（由 Refund 生命周期驱动的冗余字段）"""
    NONE = "none"
    REQUESTED = "requested"
    PARTIAL = "partial"
    COMPLETED = "completed"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class OrderItem:
    """订单明细"""

    product_id: int
    quantity: int
    unit_price: Decimal
    id: Optional[int] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class Order:
    """
    订单聚合（退款视角）

    业务规则：
    1. 已取消的订单不能退款
    2. 已全额退款的订单不能再次退款
    3. refund_status 只能随 Refund 状态变化而变化
    """

    id: Optional[int]
    customer_id: Optional[int]
    total_amount: Decimal
    status: OrderStatus
    refund_status: OrderRefundStatus = OrderRefundStatus.NONE
    payment_intent_id: Optional[str] = None
    store_owner_id: Optional[int] = None
    currency: str = "USD"
    # 下单时的联系人快照，用于退款确认邮件
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    items: list[OrderItem] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        if self.items is None:
            self.items = []

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    @property
    def is_fully_refunded(self) -> bool:
        return self.refund_status == OrderRefundStatus.COMPLETED

    def is_owned_by(self, customer_id: Optional[int]) -> bool:
        """requester 为空（管理员/匿名查询）时不做归属过滤"""
        if customer_id is None:
            return True
        return self.customer_id == customer_id

    def find_item(self, product_id: int) -> Optional[OrderItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None
