"""
Notification sink backed by Celery tasks.

Enqueueing talks to the broker synchronously, so it runs in a worker thread
to keep the request's event loop free.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from application.ports.notifications import NotificationSink
from core.logging_config import get_logger
from infrastructure.tasks.utils.dispatcher import TaskDispatcher


logger = get_logger(__name__)


class CeleryNotificationSink(NotificationSink):
    def __init__(self, dispatcher: Optional[TaskDispatcher] = None) -> None:
        self._dispatcher = dispatcher or TaskDispatcher()

    async def notify(
        self,
        *,
        recipient_id: Optional[int],
        recipient_role: str,
        title: str,
        body: str,
        category: str = "refund",
        link: Optional[str] = None,
    ) -> None:
        await asyncio.to_thread(
            self._dispatcher.notify,
            recipient_id=recipient_id,
            recipient_role=recipient_role,
            title=title,
            body=body,
            category=category,
            link=link,
        )
        logger.debug("notification_enqueued", recipient_id=recipient_id, recipient_role=recipient_role, title=title)

    async def send_refund_confirmation(self, customer_id: int, details: dict[str, Any]) -> None:
        await asyncio.to_thread(self._dispatcher.send_refund_confirmation, customer_id, details)
        logger.debug("refund_confirmation_enqueued", customer_id=customer_id, refund_id=details.get("refund_id"))
