"""
Payment gateway DTOs (Pydantic v2) exchanged with gateway adapters.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.types import condecimal

# Zero-decimal currencies are sent to processors without scaling
ZERO_DECIMAL_CURRENCIES = {
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
}

GatewayRefundStatus = Literal["pending", "succeeded", "failed"]


class GatewayRefundRequest(BaseModel):
    refund_id: int
    order_id: int
    refund_type: str
    payment_reference: Optional[str] = None  # Stripe PaymentIntent id
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="USD")
    reason: str = "requested_by_customer"
    idempotency_key: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u

    @property
    def metadata(self) -> dict[str, str]:
        # Stripe metadata values must be strings
        return {
            "refund_id": str(self.refund_id),
            "order_id": str(self.order_id),
            "refund_type": self.refund_type,
        }

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.amount, self.currency)


class GatewayRefundResult(BaseModel):
    gateway_refund_id: str
    status: GatewayRefundStatus
    provider: str
    amount_minor: Optional[int] = None
    failure_reason: Optional[str] = None


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a decimal amount to the smallest currency unit, rounding half up."""
    exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
    scaled = Decimal(amount) * (Decimal(10) ** exponent)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
