"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..config.celery import celery_app

NOTIFY_TASK = "notifications.create"
REFUND_CONFIRMATION_TASK = "notifications.send_refund_confirmation"


class TaskDispatcher:
    """Internal facade used by the notification sink to schedule tasks."""

    def notify(
        self,
        *,
        recipient_id: Optional[int],
        recipient_role: str,
        title: str,
        body: str,
        category: str,
        link: Optional[str],
    ) -> None:
        self.enqueue(
            NOTIFY_TASK,
            kwargs={
                "recipient_id": recipient_id,
                "recipient_role": recipient_role,
                "title": title,
                "body": body,
                "category": category,
                "link": link,
            },
        )

    def send_refund_confirmation(self, customer_id: int, details: Dict[str, Any]) -> None:
        self.enqueue(REFUND_CONFIRMATION_TASK, kwargs={"customer_id": customer_id, "details": details})

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Schedule a task by name.

        Registered tasks go through ``apply_async`` so eager mode runs them
        in-process; unknown names are sent to the broker as-is.
        """
        task = celery_app.tasks.get(task_name)
        if task is not None:
            task.apply_async(args=args or (), kwargs=kwargs or {})
            return
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})
