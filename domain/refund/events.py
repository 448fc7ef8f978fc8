"""
Refund domain events.

Dataclass events record refund lifecycle facts. The application layer turns
them into notifications once the owning transaction has committed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid


@dataclass
class RefundEvent:
    refund_id: int
    order_id: int
    customer_id: Optional[int]
    amount: Decimal
    refund_type: str
    store_owner_id: Optional[int] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class RefundRequested(RefundEvent):
    requested_by: str = "customer"


@dataclass
class RefundCompleted(RefundEvent):
    gateway_refund_id: str = ""
    currency: str = "USD"
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None


@dataclass
class RefundFailed(RefundEvent):
    reason: Optional[str] = None


@dataclass
class RefundCancelled(RefundEvent):
    reason: Optional[str] = None
