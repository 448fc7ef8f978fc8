"""
退款领域实体 - 退款聚合根与状态机
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, InvalidRefundStateException
from domain.order.entity import _ensure_utc


class RefundStatus(str, Enum):
    """退款状态枚举"""
    PENDING = "pending"           # 待审核
    PROCESSING = "processing"     # 网关处理中
    COMPLETED = "completed"       # 退款成功
    FAILED = "failed"             # 网关失败
    CANCELLED = "cancelled"       # 已取消

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES


TERMINAL_STATUSES = frozenset({RefundStatus.COMPLETED, RefundStatus.FAILED, RefundStatus.CANCELLED})
OPEN_STATUSES = frozenset({RefundStatus.PENDING, RefundStatus.PROCESSING})

# pending -> processing -> {completed | failed}; pending -> cancelled
ALLOWED_TRANSITIONS: dict[RefundStatus, frozenset[RefundStatus]] = {
    RefundStatus.PENDING: frozenset({RefundStatus.PROCESSING, RefundStatus.CANCELLED}),
    RefundStatus.PROCESSING: frozenset({RefundStatus.COMPLETED, RefundStatus.FAILED}),
    RefundStatus.COMPLETED: frozenset(),
    RefundStatus.FAILED: frozenset(),
    RefundStatus.CANCELLED: frozenset(),
}


class RefundType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class RequesterRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


def ensure_transition(current: RefundStatus, target: RefundStatus) -> None:
    """状态机校验，不允许的转换抛出 InvalidRefundStateException"""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidRefundStateException(
            f"Refund is already {current.value}",
            details={"status": current.value, "target": target.value},
        )


@dataclass
class RefundItem:
    """部分退款明细"""

    product_id: int
    quantity: int
    amount: Decimal
    reason: str = ""
    id: Optional[int] = None
    refund_id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise DomainValidationException(
                f"Refund item quantity must be positive: {self.quantity}",
                field="quantity",
            )
        if self.amount <= 0:
            raise DomainValidationException(
                f"Refund item amount must be positive: {self.amount}",
                field="refundAmount",
            )
        self.created_at = _ensure_utc(self.created_at)


@dataclass
class Refund:
    """
    退款聚合根

    业务规则：
    1. 金额必须大于0且不超过订单总额
    2. 只能在 pending 状态下被处理或取消
    3. completed / failed / cancelled 为终态，不可再变更
    """

    id: Optional[int]
    order_id: int
    customer_id: Optional[int]
    amount: Decimal
    reason: str
    refund_type: RefundType
    status: RefundStatus
    requested_by: RequesterRole
    requested_by_id: Optional[int] = None
    store_owner_id: Optional[int] = None
    payment_intent_id: Optional[str] = None
    gateway_refund_id: Optional[str] = None
    processed_by_id: Optional[int] = None
    admin_notes: Optional[str] = None
    items: list[RefundItem] = field(default_factory=list)

    # 时间戳
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    # 联表只读字段（列表/详情展示）
    order_total: Optional[Decimal] = None
    order_status: Optional[str] = None
    currency: str = "USD"
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(
                f"Refund amount must be positive: {self.amount}",
                field="amount",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.processed_at = _ensure_utc(self.processed_at)
        if self.items is None:
            self.items = []

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def mark_processing(self, actor_id: Optional[int], notes: Optional[str]) -> None:
        ensure_transition(self.status, RefundStatus.PROCESSING)
        self.status = RefundStatus.PROCESSING
        self.processed_by_id = actor_id
        self.admin_notes = notes
        self.updated_at = datetime.now(timezone.utc)

    def mark_completed(self, gateway_refund_id: str) -> None:
        ensure_transition(self.status, RefundStatus.COMPLETED)
        self.status = RefundStatus.COMPLETED
        self.gateway_refund_id = gateway_refund_id
        self.processed_at = datetime.now(timezone.utc)
        self.updated_at = self.processed_at

    def mark_failed(self, note: str) -> None:
        ensure_transition(self.status, RefundStatus.FAILED)
        self.status = RefundStatus.FAILED
        self.admin_notes = note
        self.processed_at = datetime.now(timezone.utc)
        self.updated_at = self.processed_at

    def cancel(self, actor_id: Optional[int], reason: Optional[str]) -> None:
        ensure_transition(self.status, RefundStatus.CANCELLED)
        self.status = RefundStatus.CANCELLED
        self.processed_by_id = actor_id
        self.admin_notes = reason
        self.processed_at = datetime.now(timezone.utc)
        self.updated_at = self.processed_at
