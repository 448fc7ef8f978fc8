"""Configurable fake refund gateway for development and testing.

Simulates the processor without any external calls. Records every call so
tests can assert on exactly what would have been sent to Stripe.
"""
from __future__ import annotations

from typing import Optional
from uuid import uuid4

from application.dtos.payments import GatewayRefundRequest, GatewayRefundResult
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentProviderError
from core.settings import payment_settings


class FakeRefundGateway(BasePaymentClient):
    provider = "fake"

    def __init__(self, *, fail_with: Optional[str] = None, refund_id_prefix: Optional[str] = None) -> None:
        super().__init__(retry={"max": 0, "base": 0.0})
        self.fail_with = fail_with if fail_with is not None else payment_settings.fake.fail_with
        self.refund_id_prefix = refund_id_prefix or payment_settings.fake.refund_id_prefix
        self.calls: list[GatewayRefundRequest] = []
        self._refunds: dict[int, GatewayRefundResult] = {}

    def configure(self, *, fail_with: Optional[str] = None) -> None:
        """Switch between succeeding (None) and failing with the given message."""
        self.fail_with = fail_with

    async def create_refund(self, req: GatewayRefundRequest) -> GatewayRefundResult:  # type: ignore[override]
        self.calls.append(req)
        # Same idempotency semantics as the real processor
        existing = self._refunds.get(req.refund_id)
        if existing is not None and existing.status == "succeeded":
            return existing

        if self.fail_with:
            self._refunds[req.refund_id] = GatewayRefundResult(
                gateway_refund_id=f"{self.refund_id_prefix}{uuid4().hex[:12]}",
                status="failed",
                provider=self.provider,
                amount_minor=req.amount_minor,
                failure_reason=self.fail_with,
            )
            self._log("fake_refund_failed", refund_id=req.refund_id, reason=self.fail_with)
            raise PaymentProviderError(self.fail_with, provider=self.provider)

        result = GatewayRefundResult(
            gateway_refund_id=f"{self.refund_id_prefix}{uuid4().hex[:12]}",
            status="succeeded",
            provider=self.provider,
            amount_minor=req.amount_minor,
        )
        self._refunds[req.refund_id] = result
        self._log("fake_refund_succeeded", refund_id=req.refund_id, gateway_refund_id=result.gateway_refund_id)
        return result

    async def find_refund(self, payment_reference: Optional[str], refund_id: int) -> Optional[GatewayRefundResult]:  # type: ignore[override]
        return self._refunds.get(refund_id)
