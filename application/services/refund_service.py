"""
Refund application service - orchestrates the refund lifecycle.

Each operation opens its own Unit of Work. Processing spans two
transactions with the gateway call in between so no database transaction is
ever held open while the processor is on the wire.
"""
from __future__ import annotations

import hashlib
from typing import Callable, List, Optional

from application.dtos.payments import GatewayRefundRequest
from application.dtos.refunds import (
    RefundCancelledDTO,
    RefundDTO,
    RefundPageDTO,
    RefundProcessedDTO,
    RefundRequestDTO,
    RefundRequestedDTO,
)
from application.ports.notifications import NotificationSink
from application.ports.payment_gateway import PaymentGateway
from application.services.refund_notifications import RefundNotifier
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    RefundNotFoundException,
    RefundProcessingFailedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.refund.entity import Refund, RefundStatus, RefundType
from domain.refund.service import RefundDomainService


logger = get_logger(__name__)


def _ensure_idempotency_key(req: GatewayRefundRequest) -> None:
    if req.idempotency_key:
        return
    # Stable key derived from the refund id only, so any retry of the same refund collapses
    base = f"refund|{req.refund_id}|{req.order_id}"
    req.idempotency_key = hashlib.sha256(base.encode("utf-8")).hexdigest()


def build_gateway_request(refund: Refund) -> GatewayRefundRequest:
    req = GatewayRefundRequest(
        refund_id=refund.id,
        order_id=refund.order_id,
        refund_type=refund.refund_type.value,
        payment_reference=refund.payment_intent_id,
        amount=refund.amount,
        currency=refund.currency,
        reason="requested_by_customer",
    )
    _ensure_idempotency_key(req)
    return req


class RefundApplicationService:
    """Entry point for refund operations used by the HTTP layer."""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._notifier = RefundNotifier(notifier)

    async def request_refund(self, dto: RefundRequestDTO, requester_id: Optional[int]) -> RefundRequestedDTO:
        """Create a pending refund; requester_id=None means an admin acting on any order."""
        items = [item.to_entity() for item in dto.items] if dto.items else None
        async with self._uow_factory() as uow:
            domain_service = RefundDomainService(uow.order_repository, uow.refund_repository)
            refund = await domain_service.request_refund(
                order_id=dto.order_id,
                requester_id=requester_id,
                reason=dto.reason or "",
                refund_type=dto.refund_type,
                items=items,
            )
            events = domain_service.clear_events()

        logger.info(
            "refund_requested",
            refund_id=refund.id,
            order_id=refund.order_id,
            amount=str(refund.amount),
            refund_type=refund.refund_type.value,
            requested_by=refund.requested_by.value,
        )
        await self._notifier.publish(events)
        return RefundRequestedDTO(refund_id=refund.id, status=refund.status.value, amount=refund.amount)

    async def process_refund(
        self,
        refund_id: int,
        *,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        store_owner_id: Optional[int] = None,
    ) -> RefundProcessedDTO:
        """pending -> processing -> completed | failed."""
        async with self._uow_factory() as uow:
            domain_service = RefundDomainService(uow.order_repository, uow.refund_repository)
            refund = await domain_service.begin_processing(
                refund_id, actor_id=actor_id, notes=notes, store_owner_id=store_owner_id
            )

        # past this point every failure must be recorded as failed
        try:
            req = build_gateway_request(refund)
            logger.info(
                "refund_gateway_request",
                refund_id=refund.id,
                provider=self._gateway.provider,
                amount_minor=req.amount_minor,
                idempotency_key=req.idempotency_key,
            )
            result = await self._gateway.create_refund(req)
        except Exception as exc:
            gateway_message = exc.message if isinstance(exc, BusinessException) else str(exc)
            logger.warning(
                "refund_gateway_failed",
                refund_id=refund.id,
                provider=self._gateway.provider,
                error=gateway_message,
                exc_info=not isinstance(exc, BusinessException),
            )
            await self._finalize_failed(refund, gateway_message)
            raise RefundProcessingFailedException(refund.id, gateway_message) from exc

        async with self._uow_factory() as uow:
            domain_service = RefundDomainService(uow.order_repository, uow.refund_repository)
            await domain_service.complete(refund, result.gateway_refund_id)
            events = domain_service.clear_events()

        logger.info(
            "refund_completed",
            refund_id=refund.id,
            order_id=refund.order_id,
            gateway_refund_id=result.gateway_refund_id,
            amount=str(refund.amount),
        )
        await self._notifier.publish(events)
        return RefundProcessedDTO(
            refund_id=refund.id,
            gateway_refund_id=result.gateway_refund_id,
            amount=refund.amount,
            status=RefundStatus.COMPLETED.value,
        )

    async def _finalize_failed(self, refund: Refund, gateway_message: str) -> None:
        async with self._uow_factory() as uow:
            domain_service = RefundDomainService(uow.order_repository, uow.refund_repository)
            await domain_service.fail(refund, gateway_message)
            events = domain_service.clear_events()
        await self._notifier.publish(events)

    async def cancel_refund(
        self,
        refund_id: int,
        *,
        actor_id: Optional[int],
        reason: Optional[str] = None,
        store_owner_id: Optional[int] = None,
    ) -> RefundCancelledDTO:
        async with self._uow_factory() as uow:
            domain_service = RefundDomainService(uow.order_repository, uow.refund_repository)
            refund = await domain_service.cancel(
                refund_id, actor_id=actor_id, reason=reason, store_owner_id=store_owner_id
            )
            events = domain_service.clear_events()

        logger.info("refund_cancelled", refund_id=refund.id, order_id=refund.order_id, actor_id=actor_id)
        await self._notifier.publish(events)
        return RefundCancelledDTO(refund_id=refund.id)

    async def list_refunds(
        self,
        *,
        status: Optional[RefundStatus] = None,
        page: int = 1,
        limit: int = 50,
        store_owner_id: Optional[int] = None,
    ) -> RefundPageDTO:
        """All refunds (admin) or one store's refunds, newest first."""
        skip = (page - 1) * limit
        async with self._uow_factory(readonly=True) as uow:
            refunds = await uow.refund_repository.list(
                skip=skip, limit=limit, status=status, store_owner_id=store_owner_id
            )
            total = await uow.refund_repository.count(status=status, store_owner_id=store_owner_id)
        return RefundPageDTO(
            items=[RefundDTO.from_entity(r) for r in refunds],
            total=total,
            page=page,
            limit=limit,
        )

    async def list_store_refunds(
        self,
        store_owner_id: int,
        *,
        status: Optional[RefundStatus] = None,
        page: int = 1,
        limit: int = 50,
    ) -> RefundPageDTO:
        return await self.list_refunds(status=status, page=page, limit=limit, store_owner_id=store_owner_id)

    async def get_refund(self, refund_id: int) -> RefundDTO:
        async with self._uow_factory(readonly=True) as uow:
            refund = await uow.refund_repository.get_by_id(refund_id, with_items=True)
        if not refund:
            raise RefundNotFoundException(refund_id)
        return RefundDTO.from_entity(refund, include_items=refund.refund_type == RefundType.PARTIAL)

    async def list_customer_refunds(self, customer_id: int) -> List[RefundDTO]:
        async with self._uow_factory(readonly=True) as uow:
            refunds = await uow.refund_repository.list_by_customer(customer_id)
        return [RefundDTO.from_entity(r) for r in refunds]
