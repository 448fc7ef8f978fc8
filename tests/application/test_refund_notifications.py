from decimal import Decimal

import pytest

from application.services.refund_notifications import RefundNotifier
from domain.refund.events import RefundCancelled, RefundCompleted, RefundRequested


@pytest.mark.asyncio
async def test_request_notifies_admins_and_store_owner(sink):
    await RefundNotifier(sink).publish([
        RefundRequested(refund_id=5, order_id=9, customer_id=7, amount=Decimal("12.5"), refund_type="full", store_owner_id=3)
    ])

    admin, owner = sink.notifications
    assert admin["recipient_id"] is None
    assert admin["recipient_role"] == "admin"
    assert admin["title"] == "New Refund Request #5"
    assert admin["body"] == "Customer requested full refund for order #9: $12.50"
    assert admin["link"] == "/admin/refunds/5"
    assert owner["recipient_id"] == 3
    assert owner["link"] == "/store/refunds/5"


@pytest.mark.asyncio
async def test_completion_sends_confirmation(sink):
    await RefundNotifier(sink).publish([
        RefundCompleted(
            refund_id=5,
            order_id=9,
            customer_id=7,
            amount=Decimal("50"),
            refund_type="full",
            gateway_refund_id="re_123",
            customer_email="ann@example.com",
        )
    ])
    assert sink.notifications[0]["recipient_id"] == 7
    assert sink.notifications[0]["link"] == "/account/orders/9"
    assert sink.confirmations == [
        (
            7,
            {
                "refund_id": 5,
                "order_id": 9,
                "amount": "50",
                "currency": "USD",
                "refund_type": "full",
                "gateway_refund_id": "re_123",
                "email": "ann@example.com",
                "name": None,
            },
        )
    ]


@pytest.mark.asyncio
async def test_guest_orders_skip_customer_notifications(sink):
    await RefundNotifier(sink).publish([
        RefundCancelled(refund_id=5, order_id=9, customer_id=None, amount=Decimal("1"), refund_type="full"),
        RefundCompleted(refund_id=6, order_id=9, customer_id=None, amount=Decimal("1"), refund_type="full"),
    ])
    assert sink.notifications == []
    assert sink.confirmations == []


@pytest.mark.asyncio
async def test_sink_errors_are_swallowed(failing_sink):
    await RefundNotifier(failing_sink).publish([
        RefundCancelled(refund_id=5, order_id=9, customer_id=7, amount=Decimal("1"), refund_type="full"),
    ])


@pytest.mark.asyncio
async def test_missing_sink_is_a_no_op():
    await RefundNotifier(None).publish([
        RefundCancelled(refund_id=5, order_id=9, customer_id=7, amount=Decimal("1"), refund_type="full"),
    ])
