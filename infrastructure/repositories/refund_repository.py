"""
退款仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError

from domain.refund.entity import Refund, RefundItem, RefundStatus, RefundType, RequesterRole
from domain.refund.repository import RefundRepository
from domain.common.exceptions import RefundAlreadyOpenException
from infrastructure.models.refund import RefundModel, RefundItemModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyRefundRepository(RefundRepository):
    """退款仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _item_to_entity(self, model: RefundItemModel) -> RefundItem:
        return RefundItem(
            id=model.id,
            refund_id=model.refund_id,
            product_id=model.product_id,
            quantity=model.quantity,
            amount=Decimal(str(model.amount)),
            reason=model.reason or "",
            created_at=model.created_at,
        )

    def _to_entity(self, model: RefundModel, items: Optional[List[RefundItem]] = None) -> Refund:
        """将数据库模型转换为领域实体"""
        order = model.order
        return Refund(
            id=model.id,
            order_id=model.order_id,
            customer_id=model.customer_id,
            store_owner_id=model.store_owner_id,
            amount=Decimal(str(model.amount)),
            reason=model.reason,
            refund_type=RefundType(model.refund_type),
            status=RefundStatus(model.status),
            requested_by=RequesterRole(model.requested_by),
            requested_by_id=model.requested_by_id,
            payment_intent_id=model.payment_intent_id,
            gateway_refund_id=model.gateway_refund_id,
            processed_by_id=model.processed_by_id,
            admin_notes=model.admin_notes,
            items=items or [],
            created_at=model.created_at,
            updated_at=model.updated_at,
            processed_at=model.processed_at,
            order_total=Decimal(str(order.total_amount)) if order is not None else None,
            order_status=order.status if order is not None else None,
            currency=order.currency if order is not None else "USD",
            customer_email=order.customer_email if order is not None else None,
            customer_name=order.customer_name if order is not None else None,
        )

    def _to_model(self, entity: Refund) -> RefundModel:
        """将领域实体转换为数据库模型"""
        return RefundModel(
            id=entity.id,
            order_id=entity.order_id,
            customer_id=entity.customer_id,
            store_owner_id=entity.store_owner_id,
            amount=entity.amount,
            reason=entity.reason,
            refund_type=entity.refund_type.value,
            status=entity.status.value,
            requested_by=entity.requested_by.value,
            requested_by_id=entity.requested_by_id,
            payment_intent_id=entity.payment_intent_id,
            gateway_refund_id=entity.gateway_refund_id,
            processed_by_id=entity.processed_by_id,
            admin_notes=entity.admin_notes,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            processed_at=entity.processed_at,
            items=[
                RefundItemModel(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    amount=item.amount,
                    reason=item.reason,
                    created_at=item.created_at,
                )
                for item in entity.items
            ],
        )

    async def create(self, refund: Refund) -> Refund:
        """创建退款记录（含明细）"""
        try:
            db_refund = self._to_model(refund)
            self.session.add(db_refund)
            await self.session.flush()
            await self.session.refresh(db_refund, attribute_names=["items", "order"])
        except IntegrityError as e:
            # 部分唯一索引命中：并发请求已为该订单创建了进行中的退款
            if "uq_refunds_open_per_order" in str(e) or "refunds.order_id" in str(e):
                logger.warning("refund_create_conflict", order_id=refund.order_id)
                raise RefundAlreadyOpenException(refund.order_id) from e
            raise

        logger.info(
            "refund_created",
            refund_id=db_refund.id,
            order_id=db_refund.order_id,
            amount=str(db_refund.amount),
            refund_type=db_refund.refund_type,
        )
        return self._to_entity(db_refund, [self._item_to_entity(i) for i in db_refund.items])

    async def get_by_id(self, refund_id: int, *, with_items: bool = False) -> Optional[Refund]:
        """根据ID获取退款"""
        result = await self.session.execute(
            select(RefundModel)
            .where(RefundModel.id == refund_id)
            .execution_options(populate_existing=True)
        )
        db_refund = result.unique().scalar_one_or_none()
        if not db_refund:
            return None
        items = await self.get_items(refund_id) if with_items else None
        return self._to_entity(db_refund, items)

    async def get_items(self, refund_id: int) -> List[RefundItem]:
        """获取部分退款明细"""
        result = await self.session.execute(
            select(RefundItemModel)
            .where(RefundItemModel.refund_id == refund_id)
            .order_by(RefundItemModel.id)
        )
        return [self._item_to_entity(m) for m in result.scalars().all()]

    async def save_transition(self, refund: Refund, expected: RefundStatus) -> bool:
        """条件更新：UPDATE ... WHERE id = :id AND status = :expected"""
        result = await self.session.execute(
            update(RefundModel)
            .where(RefundModel.id == refund.id, RefundModel.status == expected.value)
            .values(
                status=refund.status.value,
                gateway_refund_id=refund.gateway_refund_id,
                processed_by_id=refund.processed_by_id,
                admin_notes=refund.admin_notes,
                processed_at=refund.processed_at,
                updated_at=refund.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount == 1
        if updated:
            logger.info(
                "refund_status_changed",
                refund_id=refund.id,
                from_status=expected.value,
                to_status=refund.status.value,
            )
        else:
            logger.warning(
                "refund_transition_lost",
                refund_id=refund.id,
                expected=expected.value,
                target=refund.status.value,
            )
        return updated

    async def has_open_refund(self, order_id: int) -> bool:
        """订单是否存在进行中的退款"""
        result = await self.session.execute(
            select(func.count(RefundModel.id)).where(
                RefundModel.order_id == order_id,
                RefundModel.status.in_([s.value for s in (RefundStatus.PENDING, RefundStatus.PROCESSING)]),
            )
        )
        return result.scalar_one() > 0

    async def get_completed_amount(self, order_id: int) -> Decimal:
        """订单已完成的退款总额"""
        result = await self.session.execute(
            select(func.sum(RefundModel.amount)).where(
                RefundModel.order_id == order_id,
                RefundModel.status == RefundStatus.COMPLETED.value,
            )
        )
        total = result.scalar_one_or_none()
        return Decimal(str(total)) if total else Decimal("0")

    async def get_latest_completed(self, order_id: int) -> Optional[Refund]:
        """订单最近一笔已完成的退款"""
        result = await self.session.execute(
            select(RefundModel)
            .where(
                RefundModel.order_id == order_id,
                RefundModel.status == RefundStatus.COMPLETED.value,
            )
            .order_by(RefundModel.processed_at.desc(), RefundModel.id.desc())
            .limit(1)
        )
        db_refund = result.unique().scalar_one_or_none()
        return self._to_entity(db_refund) if db_refund else None

    def _filtered(self, query, status: Optional[RefundStatus], store_owner_id: Optional[int]):
        if status:
            query = query.where(RefundModel.status == status.value)
        if store_owner_id is not None:
            query = query.where(RefundModel.store_owner_id == store_owner_id)
        return query

    async def list(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[RefundStatus] = None,
        store_owner_id: Optional[int] = None,
    ) -> List[Refund]:
        """分页列表（按创建时间倒序）"""
        query = self._filtered(select(RefundModel), status, store_owner_id)
        query = query.order_by(RefundModel.created_at.desc(), RefundModel.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(r) for r in result.unique().scalars().all()]

    async def count(
        self,
        status: Optional[RefundStatus] = None,
        store_owner_id: Optional[int] = None,
    ) -> int:
        """统计数量"""
        query = self._filtered(select(func.count(RefundModel.id)), status, store_owner_id)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def list_by_customer(self, customer_id: int) -> List[Refund]:
        """客户自己的退款"""
        result = await self.session.execute(
            select(RefundModel)
            .where(RefundModel.customer_id == customer_id)
            .order_by(RefundModel.created_at.desc(), RefundModel.id.desc())
        )
        return [self._to_entity(r) for r in result.unique().scalars().all()]

    async def list_stale_processing(self, older_than: datetime, limit: int = 100) -> List[Refund]:
        """updated_at 早于 older_than 且仍为 processing 的退款"""
        result = await self.session.execute(
            select(RefundModel)
            .where(
                RefundModel.status == RefundStatus.PROCESSING.value,
                RefundModel.updated_at < older_than,
            )
            .order_by(RefundModel.updated_at)
            .limit(limit)
        )
        return [self._to_entity(r) for r in result.unique().scalars().all()]
