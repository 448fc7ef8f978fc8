"""Refund maintenance tasks: reconciliation of refunds stuck in processing."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional

from celery import shared_task

from ..utils.base_task import BaseTask
from ..utils.db import task_session_factory
from application.services.refund_reconciler import RefundReconciler
from core.config import settings
from core.logging_config import get_logger
from infrastructure.external.payments import get_payment_gateway
from infrastructure.notifications import CeleryNotificationSink
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger(__name__)


@shared_task(
    name="refunds.reconcile_stale_processing",
    bind=True,
    base=BaseTask,
    max_retries=3,
    default_retry_delay=60,
)
def reconcile_stale_processing(self, stale_after_seconds: Optional[int] = None) -> dict:
    threshold = stale_after_seconds or settings.refund.stale_after_seconds
    older_than = datetime.now(timezone.utc) - timedelta(seconds=threshold)

    async def _run() -> dict:
        async with task_session_factory() as session_factory:
            gateway = get_payment_gateway()
            try:
                reconciler = RefundReconciler(
                    uow_factory=partial(SQLAlchemyUnitOfWork, session_factory=session_factory),
                    gateway=gateway,
                    notifier=CeleryNotificationSink(),
                )
                return await reconciler.reconcile_stale_processing(
                    older_than, limit=settings.refund.reconcile_batch_size
                )
            finally:
                await gateway.aclose()

    try:
        summary = asyncio.run(_run())
    except Exception as exc:
        logger.error("refund_reconcile_failed", error=str(exc))
        raise self.retry(exc=exc)
    logger.info("refund_reconcile_finished", **summary)
    return summary
