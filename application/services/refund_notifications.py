"""
Translate refund domain events into notification sink calls.

Runs after the owning transaction commits. Every sink failure is logged and
swallowed: a notification outage never changes a refund's outcome.
"""
from __future__ import annotations

from typing import Iterable, Optional

from application.ports.notifications import NotificationSink
from core.logging_config import get_logger
from domain.refund.events import (
    RefundCancelled,
    RefundCompleted,
    RefundEvent,
    RefundFailed,
    RefundRequested,
)


logger = get_logger(__name__)


def _money(amount) -> str:
    return f"${amount:.2f}"


class RefundNotifier:
    def __init__(self, sink: Optional[NotificationSink]) -> None:
        self._sink = sink

    async def publish(self, events: Iterable[RefundEvent]) -> None:
        if self._sink is None:
            return
        for event in events:
            try:
                await self._dispatch(event)
            except Exception as exc:
                logger.warning(
                    "refund_notification_failed",
                    refund_id=event.refund_id,
                    event=type(event).__name__,
                    error=str(exc),
                    exc_info=True,
                )

    async def _dispatch(self, event: RefundEvent) -> None:
        if isinstance(event, RefundRequested):
            await self._on_requested(event)
        elif isinstance(event, RefundCompleted):
            await self._on_completed(event)
        elif isinstance(event, RefundFailed):
            await self._to_customer(
                event,
                "Refund Failed",
                f"We could not process your refund for order #{event.order_id}. Our team will follow up.",
            )
        elif isinstance(event, RefundCancelled):
            await self._to_customer(
                event,
                "Refund Request Cancelled",
                f"Your refund request for order #{event.order_id} has been cancelled.",
            )

    async def _on_requested(self, event: RefundRequested) -> None:
        body = (
            f"Customer requested {event.refund_type} refund for order "
            f"#{event.order_id}: {_money(event.amount)}"
        )
        # recipient_id=None addresses every admin
        await self._sink.notify(
            recipient_id=None,
            recipient_role="admin",
            title=f"New Refund Request #{event.refund_id}",
            body=body,
            category="refund",
            link=f"/admin/refunds/{event.refund_id}",
        )
        if event.store_owner_id is not None:
            await self._sink.notify(
                recipient_id=event.store_owner_id,
                recipient_role="store_owner",
                title=f"New Refund Request #{event.refund_id}",
                body=body,
                category="refund",
                link=f"/store/refunds/{event.refund_id}",
            )

    async def _on_completed(self, event: RefundCompleted) -> None:
        await self._to_customer(
            event,
            "Refund Processed",
            f"Your refund of {_money(event.amount)} for order #{event.order_id} has been processed.",
        )
        if event.customer_id is None:
            return
        await self._sink.send_refund_confirmation(
            event.customer_id,
            {
                "refund_id": event.refund_id,
                "order_id": event.order_id,
                "amount": str(event.amount),
                "currency": event.currency,
                "refund_type": event.refund_type,
                "gateway_refund_id": event.gateway_refund_id,
                "email": event.customer_email,
                "name": event.customer_name,
            },
        )

    async def _to_customer(self, event: RefundEvent, title: str, body: str) -> None:
        if event.customer_id is None:
            return
        await self._sink.notify(
            recipient_id=event.customer_id,
            recipient_role="customer",
            title=title,
            body=body,
            category="refund",
            link=f"/account/orders/{event.order_id}",
        )
