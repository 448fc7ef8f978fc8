"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import GatewayRefundRequest, GatewayRefundResult


@runtime_checkable
class PaymentGateway(Protocol):
    """Refund side of a third-party payment processor.

    ``create_refund`` raises ``PaymentProviderError`` (declined, invalid) or
    ``PaymentRecoverableError`` (network, rate limit after retries).
    ``find_refund`` looks a refund up by payment reference and our refund id
    metadata, returning None when the processor has no record of it.
    """

    provider: str

    async def create_refund(self, req: GatewayRefundRequest) -> GatewayRefundResult: ...

    async def find_refund(self, payment_reference: Optional[str], refund_id: int) -> Optional[GatewayRefundResult]: ...

    async def aclose(self) -> None: ...
