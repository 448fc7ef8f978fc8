"""
Reconciliation of refunds stuck in ``processing``.

A crash between the gateway call and the finalizing transaction leaves a
refund in ``processing``. The processor is asked what happened, using the
refund id carried in the refund's metadata, and the refund is finalized the
same way the request path would have.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from application.ports.notifications import NotificationSink
from application.ports.payment_gateway import PaymentGateway
from application.services.refund_notifications import RefundNotifier
from core.logging_config import get_logger
from domain.common.exceptions import InvalidRefundStateException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.refund.entity import Refund
from domain.refund.service import RefundDomainService


logger = get_logger(__name__)

NO_GATEWAY_RECORD = "no refund found at the payment processor during reconciliation"


class RefundReconciler:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._notifier = RefundNotifier(notifier)

    async def reconcile_stale_processing(self, older_than: datetime, limit: int = 100) -> dict:
        async with self._uow_factory(readonly=True) as uow:
            stale = await uow.refund_repository.list_stale_processing(older_than, limit=limit)

        summary = {"checked": len(stale), "completed": 0, "failed": 0, "pending": 0, "skipped": 0}
        for refund in stale:
            outcome = await self._reconcile_one(refund)
            summary[outcome] += 1
        return summary

    async def _reconcile_one(self, refund: Refund) -> str:
        try:
            result = await self._gateway.find_refund(refund.payment_intent_id, refund.id)
        except Exception as exc:
            # Processor unreachable; try again on the next sweep
            logger.warning("refund_reconcile_lookup_failed", refund_id=refund.id, error=str(exc))
            return "skipped"

        if result is not None and result.status == "pending":
            logger.info("refund_reconcile_still_pending", refund_id=refund.id, gateway_refund_id=result.gateway_refund_id)
            return "pending"

        try:
            async with self._uow_factory() as uow:
                domain_service = RefundDomainService(uow.order_repository, uow.refund_repository)
                if result is not None and result.status == "succeeded":
                    await domain_service.complete(refund, result.gateway_refund_id)
                    outcome = "completed"
                else:
                    message = NO_GATEWAY_RECORD if result is None else (result.failure_reason or "refund failed at the payment processor")
                    await domain_service.fail(refund, message)
                    outcome = "failed"
                events = domain_service.clear_events()
        except InvalidRefundStateException:
            # A concurrent finalizer got there first
            logger.info("refund_reconcile_lost_race", refund_id=refund.id)
            return "skipped"

        logger.info("refund_reconciled", refund_id=refund.id, outcome=outcome)
        await self._notifier.publish(events)
        return outcome
