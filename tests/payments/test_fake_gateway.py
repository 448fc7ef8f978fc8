from decimal import Decimal

import pytest

from application.dtos.payments import GatewayRefundRequest
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.exceptions import PaymentProviderError
from infrastructure.external.payments.fake_client import FakeRefundGateway


def _req(refund_id: int = 1) -> GatewayRefundRequest:
    return GatewayRefundRequest(
        refund_id=refund_id,
        order_id=2,
        refund_type="full",
        payment_reference="pi_1",
        amount=Decimal("12.34"),
        idempotency_key="k",
    )


@pytest.mark.asyncio
async def test_success_is_idempotent_per_refund():
    gateway = FakeRefundGateway()
    first = await gateway.create_refund(_req())
    second = await gateway.create_refund(_req())
    assert first.gateway_refund_id == second.gateway_refund_id
    assert first.amount_minor == 1234
    assert len(gateway.calls) == 2
    assert (await gateway.find_refund("pi_1", 1)) == first


@pytest.mark.asyncio
async def test_configured_failure():
    gateway = FakeRefundGateway()
    gateway.configure(fail_with="insufficient balance")
    with pytest.raises(PaymentProviderError):
        await gateway.create_refund(_req())
    found = await gateway.find_refund("pi_1", 1)
    assert found.status == "failed"
    assert found.failure_reason == "insufficient balance"


def test_factory():
    assert get_payment_gateway("fake").provider == "fake"
    with pytest.raises(ValueError):
        get_payment_gateway("paypal")
