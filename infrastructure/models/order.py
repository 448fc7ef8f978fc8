"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Index, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    退款流程只读写其中的金额、归属与 refund_status 字段
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # 归属
    customer_id = Column(Integer, nullable=True, index=True, comment="下单客户ID")
    store_owner_id = Column(Integer, nullable=True, index=True, comment="店主ID")

    # 金额
    total_amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="订单总额")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码 ISO-4217")

    # 状态
    status = Column(
        String(20),
        nullable=False,
        default="pending",
        comment="履约状态: pending/confirmed/processing/shipped/delivered/cancelled"
    )
    refund_status = Column(
        String(20),
        nullable=False,
        default="none",
        index=True,
        comment="退款状态: none/requested/partial/completed"
    )

    # 支付渠道的支付引用（Stripe PaymentIntent）
    payment_intent_id = Column(String(200), nullable=True, comment="支付引用")

    # 联系人快照
    customer_email = Column(String(255), nullable=True, comment="客户邮箱")
    customer_name = Column(String(100), nullable=True, comment="客户姓名")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, total_amount={self.total_amount}, "
            f"status='{self.status}', refund_status='{self.refund_status}')>"
        )


class OrderItemModel(Base):
    """订单明细"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="订单ID"
    )
    product_id = Column(Integer, nullable=False, comment="商品ID")
    quantity = Column(Integer, nullable=False, comment="数量")
    unit_price = Column(Numeric(precision=10, scale=2), nullable=False, comment="单价")

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order_product", "order_id", "product_id"),
    )
