"""
退款领域服务 - 处理退款请求校验、金额计算与状态流转

所有方法都在调用方提供的事务（Unit of Work）内执行，本身不提交也不调用外部网关。
"""
from collections import defaultdict
from decimal import Decimal
from typing import List, Optional, Sequence

from .entity import Refund, RefundItem, RefundStatus, RefundType, RequesterRole
from .events import RefundCancelled, RefundCompleted, RefundFailed, RefundRequested
from .repository import RefundRepository
from domain.order.entity import Order, OrderRefundStatus
from domain.order.repository import OrderRepository
from domain.common.exceptions import (
    CancelledOrderRefundException,
    InvalidRefundAmountException,
    InvalidRefundStateException,
    OrderAlreadyRefundedException,
    OrderNotFoundException,
    RefundAlreadyOpenException,
    RefundNotCancellableException,
    RefundNotFoundException,
    RefundValidationException,
)


def order_status_after_completion(refund: Refund) -> OrderRefundStatus:
    """退款完成后订单应处的退款状态"""
    if refund.refund_type == RefundType.FULL:
        return OrderRefundStatus.COMPLETED
    return OrderRefundStatus.PARTIAL


def derive_order_refund_status(latest_completed: Optional[Refund]) -> OrderRefundStatus:
    """取消后按最近一笔已完成的退款回推订单退款状态"""
    if latest_completed is None:
        return OrderRefundStatus.NONE
    return order_status_after_completion(latest_completed)


class RefundDomainService:
    """
    退款领域服务

    职责：
    1. 退款请求的业务校验（订单归属、订单状态、金额）
    2. 退款状态机转换（条件更新，保证并发下只有一个调用方成功）
    3. 维护订单 refund_status 与退款状态同步
    4. 产生领域事件
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        refund_repository: RefundRepository,
    ):
        self.order_repository = order_repository
        self.refund_repository = refund_repository
        self.events: List = []

    async def request_refund(
        self,
        *,
        order_id: int,
        requester_id: Optional[int],
        reason: str,
        refund_type: str,
        items: Optional[Sequence[RefundItem]] = None,
    ) -> Refund:
        """
        创建退款请求

        业务规则：
        1. 订单必须存在且对请求者可见
        2. 已取消或已全额退款的订单不可退款
        3. 同一订单同一时间只能有一笔进行中的退款
        4. 金额 > 0 且不超过订单总额（及剩余可退金额）
        """
        if not order_id or not reason or not reason.strip():
            raise RefundValidationException("Order ID and reason are required", field="reason")

        order = await self.order_repository.get_for_requester(order_id, requester_id)
        if not order:
            raise OrderNotFoundException(order_id)

        if order.is_cancelled:
            raise CancelledOrderRefundException(order.id)
        if order.is_fully_refunded:
            raise OrderAlreadyRefundedException(order.id)
        if await self.refund_repository.has_open_refund(order.id):
            raise RefundAlreadyOpenException(order.id)

        kind, amount, refund_items = self._compute_amount(order, refund_type, items)
        await self._validate_amount(order, amount)

        refund = Refund(
            id=None,
            order_id=order.id,
            customer_id=order.customer_id,
            amount=amount,
            reason=reason.strip(),
            refund_type=kind,
            status=RefundStatus.PENDING,
            requested_by=RequesterRole.CUSTOMER if requester_id is not None else RequesterRole.ADMIN,
            requested_by_id=requester_id,
            store_owner_id=order.store_owner_id,
            payment_intent_id=order.payment_intent_id,
            items=refund_items,
            currency=order.currency,
        )
        created = await self.refund_repository.create(refund)
        await self.order_repository.set_refund_status(order.id, OrderRefundStatus.REQUESTED)

        self.events.append(RefundRequested(
            refund_id=created.id,
            order_id=created.order_id,
            customer_id=created.customer_id,
            amount=created.amount,
            refund_type=created.refund_type.value,
            store_owner_id=created.store_owner_id,
            requested_by=created.requested_by.value,
        ))
        return created

    def _compute_amount(
        self,
        order: Order,
        refund_type: str,
        items: Optional[Sequence[RefundItem]],
    ) -> tuple[RefundType, Decimal, list[RefundItem]]:
        try:
            kind = RefundType(refund_type)
        except ValueError:
            kind = None

        if kind == RefundType.FULL:
            return kind, order.total_amount, []
        if kind == RefundType.PARTIAL and items:
            self._verify_items(order, items)
            total = sum((item.amount for item in items), Decimal("0"))
            return kind, total, list(items)

        raise RefundValidationException(
            "Invalid refund type or missing items for partial refund",
            field="refundType" if kind is None else "items",
        )

    def _verify_items(self, order: Order, items: Sequence[RefundItem]) -> None:
        """订单记录了明细时，按订单明细校验客户端提交的退款明细"""
        if not order.items:
            return
        quantities: dict[int, int] = defaultdict(int)
        amounts: dict[int, Decimal] = defaultdict(Decimal)
        for item in items:
            quantities[item.product_id] += item.quantity
            amounts[item.product_id] += item.amount

        for product_id, quantity in quantities.items():
            ordered = order.find_item(product_id)
            if ordered is None:
                raise RefundValidationException(
                    f"Product {product_id} is not part of this order",
                    field="items",
                    details={"product_id": product_id},
                )
            if quantity > ordered.quantity:
                raise RefundValidationException(
                    f"Refund quantity for product {product_id} exceeds ordered quantity",
                    field="items",
                    details={"product_id": product_id, "quantity": quantity, "ordered": ordered.quantity},
                )
            limit = ordered.unit_price * quantity
            if amounts[product_id] > limit:
                raise InvalidRefundAmountException(amounts[product_id], limit)

    async def _validate_amount(self, order: Order, amount: Decimal) -> None:
        if amount <= 0 or amount > order.total_amount:
            raise InvalidRefundAmountException(amount, order.total_amount)
        refunded = await self.refund_repository.get_completed_amount(order.id)
        remaining = order.total_amount - refunded
        if amount > remaining:
            raise InvalidRefundAmountException(amount, remaining)

    async def _load(self, refund_id: int, store_owner_id: Optional[int]) -> Refund:
        refund = await self.refund_repository.get_by_id(refund_id)
        # 店主只能看到自己店铺的退款，其余一律按不存在处理
        if not refund or (store_owner_id is not None and refund.store_owner_id != store_owner_id):
            raise RefundNotFoundException(refund_id)
        return refund

    async def begin_processing(
        self,
        refund_id: int,
        *,
        actor_id: Optional[int],
        notes: Optional[str],
        store_owner_id: Optional[int] = None,
    ) -> Refund:
        """pending -> processing；并发下只有条件更新成功的调用方继续调用网关"""
        refund = await self._load(refund_id, store_owner_id)
        refund.mark_processing(actor_id, notes)
        if not await self.refund_repository.save_transition(refund, expected=RefundStatus.PENDING):
            current = await self.refund_repository.get_by_id(refund_id)
            status = current.status.value if current else "unknown"
            raise InvalidRefundStateException(
                f"Refund is already {status}",
                details={"refund_id": refund_id, "status": status},
            )
        return refund

    async def complete(self, refund: Refund, gateway_refund_id: str) -> Refund:
        """processing -> completed，同事务内更新订单退款状态"""
        refund.mark_completed(gateway_refund_id)
        if not await self.refund_repository.save_transition(refund, expected=RefundStatus.PROCESSING):
            raise InvalidRefundStateException(
                "Refund is no longer processing",
                details={"refund_id": refund.id},
            )
        await self.order_repository.set_refund_status(refund.order_id, order_status_after_completion(refund))

        self.events.append(RefundCompleted(
            refund_id=refund.id,
            order_id=refund.order_id,
            customer_id=refund.customer_id,
            amount=refund.amount,
            refund_type=refund.refund_type.value,
            store_owner_id=refund.store_owner_id,
            gateway_refund_id=gateway_refund_id,
            currency=refund.currency,
            customer_email=refund.customer_email,
            customer_name=refund.customer_name,
        ))
        return refund

    async def fail(self, refund: Refund, gateway_message: str) -> Refund:
        """processing -> failed；订单退款状态保持 requested"""
        refund.mark_failed(f"Gateway error: {gateway_message}")
        if not await self.refund_repository.save_transition(refund, expected=RefundStatus.PROCESSING):
            raise InvalidRefundStateException(
                "Refund is no longer processing",
                details={"refund_id": refund.id},
            )
        self.events.append(RefundFailed(
            refund_id=refund.id,
            order_id=refund.order_id,
            customer_id=refund.customer_id,
            amount=refund.amount,
            refund_type=refund.refund_type.value,
            store_owner_id=refund.store_owner_id,
            reason=gateway_message,
        ))
        return refund

    async def cancel(
        self,
        refund_id: int,
        *,
        actor_id: Optional[int],
        reason: Optional[str],
        store_owner_id: Optional[int] = None,
    ) -> Refund:
        """pending -> cancelled，并回推订单退款状态"""
        refund = await self._load(refund_id, store_owner_id)
        if refund.status != RefundStatus.PENDING:
            raise RefundNotCancellableException(refund_id, refund.status.value)

        refund.cancel(actor_id, reason)
        if not await self.refund_repository.save_transition(refund, expected=RefundStatus.PENDING):
            current = await self.refund_repository.get_by_id(refund_id)
            raise RefundNotCancellableException(refund_id, current.status.value if current else "unknown")

        latest = await self.refund_repository.get_latest_completed(refund.order_id)
        await self.order_repository.set_refund_status(refund.order_id, derive_order_refund_status(latest))

        self.events.append(RefundCancelled(
            refund_id=refund.id,
            order_id=refund.order_id,
            customer_id=refund.customer_id,
            amount=refund.amount,
            refund_type=refund.refund_type.value,
            store_owner_id=refund.store_owner_id,
            reason=reason,
        ))
        return refund

    def clear_events(self) -> List:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
