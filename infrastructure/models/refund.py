"""
退款数据库模型 - SQLAlchemy ORM模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text,
    Index, ForeignKey, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


OPEN_REFUND_PREDICATE = "status IN ('pending', 'processing')"


class RefundModel(Base):
    """
    退款数据库模型

    所有业务规则都在 domain.refund.entity.Refund 中；
    这里只通过部分唯一索引兜底“每个订单最多一笔进行中的退款”
    """
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID"
    )
    customer_id = Column(Integer, nullable=True, index=True, comment="订单所属客户ID")
    store_owner_id = Column(Integer, nullable=True, index=True, comment="店主ID（冗余）")

    amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="退款金额")
    reason = Column(Text, nullable=False, comment="退款原因")
    refund_type = Column(String(20), nullable=False, comment="退款类型: full/partial")

    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="退款状态: pending/processing/completed/failed/cancelled"
    )

    # 网关信息
    payment_intent_id = Column(String(200), nullable=True, comment="支付引用（创建时从订单复制）")
    gateway_refund_id = Column(String(200), nullable=True, index=True, comment="网关退款ID")

    # 操作人
    requested_by = Column(String(20), nullable=False, default="customer", comment="发起方: customer/admin")
    requested_by_id = Column(Integer, nullable=True, comment="发起人ID")
    processed_by_id = Column(Integer, nullable=True, comment="处理人ID")
    admin_notes = Column(Text, nullable=True, comment="处理备注")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    processed_at = Column(DateTime(timezone=True), nullable=True, comment="处理完成时间")

    order = relationship("OrderModel", lazy="joined")
    items = relationship(
        "RefundItemModel",
        back_populates="refund",
        lazy="select",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_refunds_amount_positive"),
        Index("ix_refunds_status_updated", "status", "updated_at"),
        Index(
            "uq_refunds_open_per_order",
            "order_id",
            unique=True,
            postgresql_where=text(OPEN_REFUND_PREDICATE),
            sqlite_where=text(OPEN_REFUND_PREDICATE),
        ),
    )

    def __repr__(self):
        return (
            f"<RefundModel(id={self.id}, order_id={self.order_id}, "
            f"amount={self.amount}, status='{self.status}')>"
        )


class RefundItemModel(Base):
    """部分退款明细"""
    __tablename__ = "refund_items"

    id = Column(Integer, primary_key=True, index=True)
    refund_id = Column(
        Integer,
        ForeignKey("refunds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="退款ID"
    )
    product_id = Column(Integer, nullable=False, comment="商品ID")
    quantity = Column(Integer, nullable=False, comment="数量")
    amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="明细退款金额")
    reason = Column(Text, nullable=True, comment="明细原因")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    refund = relationship("RefundModel", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_refund_items_quantity_positive"),
        CheckConstraint("amount > 0", name="ck_refund_items_amount_positive"),
    )
