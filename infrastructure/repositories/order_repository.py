"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from domain.order.entity import Order, OrderItem, OrderStatus, OrderRefundStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderItemModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            customer_id=model.customer_id,
            store_owner_id=model.store_owner_id,
            total_amount=Decimal(str(model.total_amount)),
            currency=model.currency,
            status=OrderStatus(model.status),
            refund_status=OrderRefundStatus(model.refund_status),
            payment_intent_id=model.payment_intent_id,
            customer_email=model.customer_email,
            customer_name=model.customer_name,
            items=[
                OrderItem(
                    id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=Decimal(str(item.unit_price)),
                )
                for item in model.items
            ],
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        return OrderModel(
            id=entity.id,
            customer_id=entity.customer_id,
            store_owner_id=entity.store_owner_id,
            total_amount=entity.total_amount,
            currency=entity.currency,
            status=entity.status.value,
            refund_status=entity.refund_status.value,
            payment_intent_id=entity.payment_intent_id,
            customer_email=entity.customer_email,
            customer_name=entity.customer_name,
            items=[
                OrderItemModel(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in entity.items
            ],
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, order: Order) -> Order:
        """创建订单（含明细）"""
        db_order = self._to_model(order)
        self.session.add(db_order)
        await self.session.flush()
        await self.session.refresh(db_order, attribute_names=["items"])
        logger.info(
            "order_created",
            order_id=db_order.id,
            customer_id=db_order.customer_id,
            total_amount=str(db_order.total_amount),
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单"""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_for_requester(self, order_id: int, customer_id: Optional[int]) -> Optional[Order]:
        """获取请求者可见的订单"""
        query = select(OrderModel).where(OrderModel.id == order_id)
        if customer_id is not None:
            query = query.where(OrderModel.customer_id == customer_id)
        result = await self.session.execute(query.execution_options(populate_existing=True))
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def set_refund_status(self, order_id: int, refund_status: OrderRefundStatus) -> bool:
        """更新订单退款状态"""
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(refund_status=refund_status.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount > 0
        logger.info(
            "order_refund_status_updated",
            order_id=order_id,
            refund_status=refund_status.value,
            updated=updated,
        )
        return updated
