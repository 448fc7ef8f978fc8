"""
退款 DTO - 应用层与表现层之间的数据传输

对外统一使用 camelCase 字段名，时间统一序列化为 UTC-Z。
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_serializer
from pydantic.alias_generators import to_camel

from domain.refund.entity import Refund, RefundItem


class DTOBase(BaseModel):
    """camelCase 别名 + UTC-Z 时间序列化"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


# ---- 请求体 ----

class RefundItemInputDTO(DTOBase):
    """部分退款明细"""
    product_id: int
    quantity: int = Field(..., gt=0)
    refund_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=500)

    def to_entity(self) -> RefundItem:
        return RefundItem(
            product_id=self.product_id,
            quantity=self.quantity,
            amount=self.refund_amount,
            reason=self.reason or "",
        )


class RefundRequestDTO(DTOBase):
    """发起退款；orderId/reason 缺失由领域层给出统一的错误消息"""
    order_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=2000)
    refund_type: str = "full"
    items: Optional[list[RefundItemInputDTO]] = None


class ProcessRefundDTO(DTOBase):
    admin_notes: Optional[str] = Field(None, max_length=2000)


class CancelRefundDTO(DTOBase):
    cancel_reason: Optional[str] = Field(None, max_length=2000)


# ---- 响应体 ----

class RefundRequestedDTO(DTOBase):
    refund_id: int
    status: str
    amount: Decimal

    @field_serializer("amount")
    def _amount(self, v: Decimal) -> float:
        return float(v)


class RefundProcessedDTO(DTOBase):
    refund_id: int
    gateway_refund_id: str
    amount: Decimal
    status: str

    @field_serializer("amount")
    def _amount(self, v: Decimal) -> float:
        return float(v)


class RefundCancelledDTO(DTOBase):
    refund_id: int


class RefundItemDTO(DTOBase):
    id: Optional[int]
    product_id: int
    quantity: int
    refund_amount: Decimal
    reason: str = ""

    @field_serializer("refund_amount")
    def _amount(self, v: Decimal) -> float:
        return float(v)


class RefundDTO(DTOBase):
    """退款详情/列表行"""
    id: int
    order_id: int
    customer_id: Optional[int]
    store_owner_id: Optional[int]
    amount: Decimal
    reason: str
    refund_type: str
    status: str
    requested_by: str
    requested_by_id: Optional[int]
    processed_by_id: Optional[int]
    admin_notes: Optional[str]
    payment_intent_id: Optional[str]
    gateway_refund_id: Optional[str]
    order_total: Optional[Decimal]
    order_status: Optional[str]
    currency: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    processed_at: Optional[datetime]
    items: Optional[list[RefundItemDTO]] = None

    @field_serializer("amount", "order_total")
    def _money(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None

    @classmethod
    def from_entity(cls, refund: Refund, *, include_items: bool = False) -> "RefundDTO":
        items = None
        if include_items:
            items = [
                RefundItemDTO(
                    id=i.id,
                    product_id=i.product_id,
                    quantity=i.quantity,
                    refund_amount=i.amount,
                    reason=i.reason,
                )
                for i in refund.items
            ]
        return cls(
            id=refund.id,
            order_id=refund.order_id,
            customer_id=refund.customer_id,
            store_owner_id=refund.store_owner_id,
            amount=refund.amount,
            reason=refund.reason,
            refund_type=refund.refund_type.value,
            status=refund.status.value,
            requested_by=refund.requested_by.value,
            requested_by_id=refund.requested_by_id,
            processed_by_id=refund.processed_by_id,
            admin_notes=refund.admin_notes,
            payment_intent_id=refund.payment_intent_id,
            gateway_refund_id=refund.gateway_refund_id,
            order_total=refund.order_total,
            order_status=refund.order_status,
            currency=refund.currency,
            customer_name=refund.customer_name,
            customer_email=refund.customer_email,
            created_at=refund.created_at,
            updated_at=refund.updated_at,
            processed_at=refund.processed_at,
            items=items,
        )


class RefundPageDTO(DTOBase):
    """分页查询结果（应用层内部使用，路由层转为统一分页响应）"""
    items: list[RefundDTO]
    total: int
    page: int
    limit: int
