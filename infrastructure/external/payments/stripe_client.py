"""
Stripe Refunds adapter using the official stripe-python SDK.

Notes on SDK usage:
- The SDK is synchronous; calls run in a worker thread so the event loop is
  never blocked while Stripe is on the wire.
- Idempotency keys are passed through the ``idempotency_key`` kwarg, so a
  retried request never creates a second refund.
- Refunds are created against the order's PaymentIntent and tagged with our
  refund id in metadata, which is what ``find_refund`` searches on.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

import stripe

from application.dtos.payments import GatewayRefundRequest, GatewayRefundResult
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)
from core.settings import payment_settings


class StripeClient(BasePaymentClient):
    provider = "stripe"
    retryable_exceptions = (stripe.APIConnectionError, stripe.RateLimitError)

    def __init__(self, api_key: Optional[str] = None):
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
        )
        key = api_key or payment_settings.stripe.secret_key
        if not key:
            raise RuntimeError("PAYMENT__STRIPE__SECRET_KEY not configured")
        # Module-level configuration is what the Refund resource helpers read
        stripe.api_key = key
        stripe.max_network_retries = 0
        if payment_settings.stripe.api_version:
            stripe.api_version = payment_settings.stripe.api_version

    def _result(self, refund: Any) -> GatewayRefundResult:
        return GatewayRefundResult(
            gateway_refund_id=str(refund["id"]),
            status=self._map_status(str(refund.get("status") or "")),
            provider=self.provider,
            amount_minor=refund.get("amount"),
            failure_reason=refund.get("failure_reason"),
        )

    async def create_refund(self, req: GatewayRefundRequest) -> GatewayRefundResult:  # type: ignore[override]
        if not req.payment_reference:
            raise PaymentProviderError(
                "Order has no payment reference to refund against",
                provider=self.provider,
                details={"refund_id": req.refund_id},
            )

        def _create():
            return stripe.Refund.create(
                payment_intent=req.payment_reference,
                amount=req.amount_minor,
                reason=req.reason,
                metadata=req.metadata,
                idempotency_key=req.idempotency_key,
            )

        self._log(
            "stripe_refund_request",
            refund_id=req.refund_id,
            amount_minor=req.amount_minor,
            idempotency_key=req.idempotency_key,
        )
        try:
            refund = await self._retry(lambda: asyncio.to_thread(_create))
        except self.retryable_exceptions as exc:
            raise PaymentRecoverableError(
                self._message(exc), provider=self.provider, provider_code=getattr(exc, "code", None)
            ) from exc
        except stripe.StripeError as exc:
            raise PaymentProviderError(
                self._message(exc), provider=self.provider, provider_code=getattr(exc, "code", None)
            ) from exc

        result = self._result(refund)
        self._log("stripe_refund_response", refund_id=req.refund_id, gateway_refund_id=result.gateway_refund_id, status=result.status)
        if result.status == "failed":
            raise PaymentProviderError(
                result.failure_reason or "Refund failed",
                provider=self.provider,
                provider_code=result.failure_reason,
                details={"gateway_refund_id": result.gateway_refund_id},
            )
        return result

    async def find_refund(self, payment_reference: Optional[str], refund_id: int) -> Optional[GatewayRefundResult]:  # type: ignore[override]
        if not payment_reference:
            return None

        def _list():
            return stripe.Refund.list(payment_intent=payment_reference, limit=100)

        try:
            listing = await self._retry(lambda: asyncio.to_thread(_list))
        except self.retryable_exceptions as exc:
            raise PaymentRecoverableError(self._message(exc), provider=self.provider) from exc
        except stripe.StripeError as exc:
            raise PaymentProviderError(self._message(exc), provider=self.provider) from exc

        for refund in listing["data"]:
            metadata = refund.get("metadata") or {}
            if str(metadata.get("refund_id")) == str(refund_id):
                return self._result(refund)
        return None

    @staticmethod
    def _message(exc: Exception) -> str:
        return getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__
