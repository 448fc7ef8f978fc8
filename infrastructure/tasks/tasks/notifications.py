"""Notification related Celery tasks: in-app rows and the refund confirmation email."""
from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Any, Optional

from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..utils.base_task import BaseTask
from ..utils.db import task_session_factory
from core.config import settings
from core.logging_config import get_logger
from infrastructure.models.notification import NotificationModel

logger = get_logger(__name__)


async def persist_notification(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    recipient_id: Optional[int],
    recipient_role: str,
    title: str,
    body: str,
    category: str = "refund",
    link: Optional[str] = None,
) -> int:
    """Insert one notification row and return its id."""
    async with session_factory() as session:
        async with session.begin():
            row = NotificationModel(
                recipient_id=recipient_id,
                recipient_role=recipient_role,
                title=title,
                body=body,
                category=category,
                link=link,
            )
            session.add(row)
            await session.flush()
            notification_id = row.id
    logger.info(
        "notification_created",
        notification_id=notification_id,
        recipient_id=recipient_id,
        recipient_role=recipient_role,
        category=category,
    )
    return notification_id


@shared_task(
    name="notifications.create",
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def create_notification(
    self,
    recipient_id: Optional[int],
    recipient_role: str,
    title: str,
    body: str,
    category: str = "refund",
    link: Optional[str] = None,
) -> int:
    async def _run() -> int:
        async with task_session_factory() as session_factory:
            return await persist_notification(
                session_factory,
                recipient_id=recipient_id,
                recipient_role=recipient_role,
                title=title,
                body=body,
                category=category,
                link=link,
            )

    return asyncio.run(_run())


def build_refund_confirmation(details: dict[str, Any]) -> EmailMessage:
    """Plain-text refund confirmation email."""
    name = details.get("name") or "Customer"
    order_id = details["order_id"]
    message = EmailMessage()
    message["Subject"] = f"Refund Processed for Order #{order_id}"
    message["From"] = settings.smtp.from_address
    message["To"] = details["email"]
    message.set_content(
        "\n".join(
            [
                f"Hi {name},",
                "",
                f"Your refund for order #{order_id} has been processed.",
                "",
                f"Refund ID: {details['refund_id']}",
                f"Refund amount: {details['amount']} {details.get('currency', 'USD')}",
                f"Refund type: {details['refund_type']}",
                f"Reference: {details.get('gateway_refund_id') or '-'}",
                "",
                "Funds usually appear on your statement within 5-10 business days.",
                f"View your orders: {settings.FRONTEND_URL}/account",
            ]
        )
    )
    return message


@shared_task(
    name="notifications.send_refund_confirmation",
    bind=True,
    base=BaseTask,
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def send_refund_confirmation(self, customer_id: int, details: dict[str, Any]) -> bool:
    """Send the refund confirmation email; logs only when SMTP is not configured."""
    if not details.get("email"):
        logger.info("refund_confirmation_skipped", customer_id=customer_id, reason="no_email")
        return False

    message = build_refund_confirmation(details)
    smtp = settings.smtp
    if not smtp.host:
        logger.info(
            "refund_confirmation_dev_mode",
            customer_id=customer_id,
            to=details["email"],
            refund_id=details.get("refund_id"),
        )
        return False

    with smtplib.SMTP(smtp.host, smtp.port, timeout=10) as client:
        if smtp.use_tls:
            client.starttls()
        if smtp.username and smtp.password:
            client.login(smtp.username, smtp.password)
        client.send_message(message)
    logger.info("refund_confirmation_sent", customer_id=customer_id, refund_id=details.get("refund_id"))
    return True
