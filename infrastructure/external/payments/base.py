"""
Base payment client implementing shared concerns: retry, logging, status mapping.

Concrete providers subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from application.dtos.payments import GatewayRefundRequest, GatewayRefundResult
from application.ports.payment_gateway import PaymentGateway
from shared.codes.payment_codes import PROVIDER_REFUND_STATUS_TO_INTERNAL


logger = get_logger(__name__)

T = TypeVar("T")


class BasePaymentClient(PaymentGateway):
    provider: str = "base"
    # Exceptions worth retrying; providers override with their SDK's transient errors
    retryable_exceptions: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError)

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    async def aclose(self) -> None:
        """Release provider resources; SDK-backed clients hold none."""
        return None

    async def _retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(self.retryable_exceptions),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self._log("gateway_retry", attempt=attempt.retry_state.attempt_number)
                return await fn()
        raise RuntimeError("unreachable")  # pragma: no cover

    async def create_refund(self, req: GatewayRefundRequest) -> GatewayRefundResult:  # type: ignore[override]
        raise NotImplementedError

    async def find_refund(self, payment_reference: Optional[str], refund_id: int) -> Optional[GatewayRefundResult]:  # type: ignore[override]
        raise NotImplementedError

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_REFUND_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, "pending")

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
