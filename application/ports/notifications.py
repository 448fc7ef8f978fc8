"""
Notification sink port.

Both operations are fire-and-forget from the caller's point of view: the
refund service awaits them after its transaction commits and only logs
failures.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class NotificationSink(Protocol):
    async def notify(
        self,
        *,
        recipient_id: Optional[int],
        recipient_role: str,
        title: str,
        body: str,
        category: str = "refund",
        link: Optional[str] = None,
    ) -> None: ...

    async def send_refund_confirmation(self, customer_id: int, details: dict[str, Any]) -> None: ...
