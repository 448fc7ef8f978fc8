from decimal import Decimal

import pytest

from application.dtos.payments import GatewayRefundRequest, GatewayRefundResult
from application.dtos.refunds import RefundItemInputDTO, RefundRequestDTO
from application.services.refund_service import RefundApplicationService
from domain.common.exceptions import (
    CancelledOrderRefundException,
    InvalidRefundAmountException,
    InvalidRefundStateException,
    OrderNotFoundException,
    RefundAlreadyOpenException,
    RefundNotCancellableException,
    RefundNotFoundException,
    RefundProcessingFailedException,
    RefundValidationException,
)
from domain.order.entity import OrderItem, OrderRefundStatus, OrderStatus
from domain.refund.entity import RefundStatus, RequesterRole
from infrastructure.external.payments.exceptions import PaymentProviderError


class StubGateway:
    """Returns a fixed processor id or fails with a fixed message."""

    provider = "stub"

    def __init__(self, *, gateway_refund_id: str = "re_123", fail_with: str | None = None) -> None:
        self.gateway_refund_id = gateway_refund_id
        self.fail_with = fail_with
        self.calls: list[GatewayRefundRequest] = []

    async def create_refund(self, req: GatewayRefundRequest) -> GatewayRefundResult:
        self.calls.append(req)
        if self.fail_with:
            raise PaymentProviderError(self.fail_with, provider=self.provider)
        return GatewayRefundResult(
            gateway_refund_id=self.gateway_refund_id,
            status="succeeded",
            provider=self.provider,
            amount_minor=req.amount_minor,
        )

    async def find_refund(self, payment_reference, refund_id):
        return None

    async def aclose(self) -> None:
        return None


def _partial(product_id: int, quantity: int, amount: str) -> RefundItemInputDTO:
    return RefundItemInputDTO(product_id=product_id, quantity=quantity, refund_amount=Decimal(amount), reason="scratched")


async def _order_state(uow_factory, order_id):
    async with uow_factory(readonly=True) as uow:
        return await uow.order_repository.get_by_id(order_id)


async def _refund_state(uow_factory, refund_id):
    async with uow_factory(readonly=True) as uow:
        return await uow.refund_repository.get_by_id(refund_id, with_items=True)


@pytest.mark.asyncio
async def test_full_refund_completes_and_marks_order(uow_factory, seed_order, sink):
    gateway = StubGateway(gateway_refund_id="re_123")
    service = RefundApplicationService(uow_factory, gateway, sink)
    order = await seed_order(total="50.00")

    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)
    assert requested.status == "pending"
    assert requested.amount == Decimal("50.00")
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.REQUESTED

    processed = await service.process_refund(requested.refund_id, actor_id=1, notes="approved")
    assert processed.gateway_refund_id == "re_123"
    assert processed.status == "completed"

    refund = await _refund_state(uow_factory, requested.refund_id)
    assert refund.status == RefundStatus.COMPLETED
    assert refund.gateway_refund_id == "re_123"
    assert refund.processed_at is not None
    assert refund.payment_intent_id == "pi_123"
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.COMPLETED

    sent = gateway.calls[0]
    assert sent.amount_minor == 5000
    assert sent.payment_reference == "pi_123"
    assert sent.metadata["refund_id"] == str(requested.refund_id)
    assert sent.reason == "requested_by_customer"
    assert len(sent.idempotency_key) == 64

    assert "Refund Processed" in sink.titles()
    customer_id, details = sink.confirmations[0]
    assert customer_id == 7
    assert details["email"] == "ann@example.com"
    assert details["gateway_refund_id"] == "re_123"


@pytest.mark.asyncio
async def test_gateway_decline_records_failure(uow_factory, seed_order, sink):
    gateway = StubGateway(fail_with="card network declined")
    service = RefundApplicationService(uow_factory, gateway, sink)
    order = await seed_order(
        total="80.00",
        items=[OrderItem(product_id=11, quantity=2, unit_price=Decimal("40.00"))],
    )
    requested = await service.request_refund(
        RefundRequestDTO(order_id=order.id, reason="one arrived broken", refund_type="partial", items=[_partial(11, 1, "30.00")]),
        requester_id=7,
    )
    assert requested.amount == Decimal("30.00")

    with pytest.raises(RefundProcessingFailedException) as exc_info:
        await service.process_refund(requested.refund_id, actor_id=1)
    assert exc_info.value.gateway_message == "card network declined"

    refund = await _refund_state(uow_factory, requested.refund_id)
    assert refund.status == RefundStatus.FAILED
    assert refund.gateway_refund_id is None
    assert refund.admin_notes == "Gateway error: card network declined"
    assert refund.processed_at is not None
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.REQUESTED
    assert "Refund Failed" in sink.titles()
    assert sink.confirmations == []


@pytest.mark.asyncio
async def test_any_iso_currency_reaches_gateway(uow_factory, seed_order, sink):
    gateway = StubGateway()
    service = RefundApplicationService(uow_factory, gateway, sink)
    order = await seed_order(total="50.00", currency="MXN")
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)

    processed = await service.process_refund(requested.refund_id, actor_id=1)

    assert processed.status == "completed"
    assert gateway.calls[0].currency == "MXN"
    assert gateway.calls[0].amount_minor == 5000


@pytest.mark.asyncio
async def test_unbuildable_gateway_request_is_recorded_as_failed(uow_factory, seed_order, sink):
    gateway = StubGateway()
    service = RefundApplicationService(uow_factory, gateway, sink)
    order = await seed_order(currency="X1Z")
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)

    with pytest.raises(RefundProcessingFailedException) as exc_info:
        await service.process_refund(requested.refund_id, actor_id=1)
    assert "currency must be ISO-4217 alpha-3" in exc_info.value.gateway_message

    refund = await _refund_state(uow_factory, requested.refund_id)
    assert refund.status == RefundStatus.FAILED
    assert refund.admin_notes.startswith("Gateway error: ")
    assert gateway.calls == []
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.REQUESTED
    assert "Refund Failed" in sink.titles()


@pytest.mark.asyncio
async def test_partial_without_items_is_rejected(uow_factory, seed_order, sink):
    service = RefundApplicationService(uow_factory, StubGateway(), sink)
    order = await seed_order(total="80.00")

    with pytest.raises(RefundValidationException) as exc_info:
        await service.request_refund(
            RefundRequestDTO(order_id=order.id, reason="x", refund_type="partial", items=[]),
            requester_id=7,
        )
    assert exc_info.value.message == "Invalid refund type or missing items for partial refund"

    async with uow_factory(readonly=True) as uow:
        assert await uow.refund_repository.count() == 0
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.NONE


@pytest.mark.asyncio
async def test_unknown_refund_type_is_rejected(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order()
    with pytest.raises(RefundValidationException):
        await service.request_refund(RefundRequestDTO(order_id=order.id, reason="x", refund_type="store_credit"), requester_id=7)


@pytest.mark.asyncio
async def test_missing_reason_is_rejected(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order()
    with pytest.raises(RefundValidationException) as exc_info:
        await service.request_refund(RefundRequestDTO(order_id=order.id, reason="   "), requester_id=7)
    assert exc_info.value.message == "Order ID and reason are required"


@pytest.mark.asyncio
async def test_second_process_does_not_call_gateway_again(uow_factory, seed_order, sink):
    gateway = StubGateway()
    service = RefundApplicationService(uow_factory, gateway, sink)
    order = await seed_order()
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)
    await service.process_refund(requested.refund_id, actor_id=1)

    with pytest.raises(InvalidRefundStateException) as exc_info:
        await service.process_refund(requested.refund_id, actor_id=1)
    assert exc_info.value.message == "Refund is already completed"
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_second_request_while_open_is_rejected(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order()
    await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)

    with pytest.raises(RefundAlreadyOpenException):
        await service.request_refund(RefundRequestDTO(order_id=order.id, reason="again"), requester_id=7)


@pytest.mark.asyncio
async def test_fully_refunded_order_is_rejected(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order()
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)
    await service.process_refund(requested.refund_id, actor_id=1)

    with pytest.raises(InvalidRefundStateException):
        await service.request_refund(RefundRequestDTO(order_id=order.id, reason="more"), requester_id=7)


@pytest.mark.asyncio
async def test_cancel_resets_order_status(uow_factory, seed_order, sink):
    service = RefundApplicationService(uow_factory, StubGateway(), sink)
    order = await seed_order()
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="damaged"), requester_id=7)

    cancelled = await service.cancel_refund(requested.refund_id, actor_id=1, reason="duplicate")
    assert cancelled.refund_id == requested.refund_id

    refund = await _refund_state(uow_factory, requested.refund_id)
    assert refund.status == RefundStatus.CANCELLED
    assert refund.admin_notes == "duplicate"
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.NONE
    assert "Refund Request Cancelled" in sink.titles()

    with pytest.raises(RefundNotCancellableException):
        await service.cancel_refund(requested.refund_id, actor_id=1)


@pytest.mark.asyncio
async def test_cancel_after_partial_keeps_partial_status(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order(
        total="80.00",
        items=[OrderItem(product_id=11, quantity=2, unit_price=Decimal("40.00"))],
    )
    first = await service.request_refund(
        RefundRequestDTO(order_id=order.id, reason="broken", refund_type="partial", items=[_partial(11, 1, "30.00")]),
        requester_id=7,
    )
    await service.process_refund(first.refund_id, actor_id=1)
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.PARTIAL

    second = await service.request_refund(
        RefundRequestDTO(order_id=order.id, reason="other one too", refund_type="partial", items=[_partial(11, 1, "20.00")]),
        requester_id=7,
    )
    await service.cancel_refund(second.refund_id, actor_id=1)
    assert (await _order_state(uow_factory, order.id)).refund_status == OrderRefundStatus.PARTIAL


@pytest.mark.asyncio
async def test_partial_cannot_exceed_remaining_balance(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order(total="80.00")
    first = await service.request_refund(
        RefundRequestDTO(order_id=order.id, reason="broken", refund_type="partial", items=[_partial(11, 1, "30.00")]),
        requester_id=7,
    )
    await service.process_refund(first.refund_id, actor_id=1)

    with pytest.raises(InvalidRefundAmountException):
        await service.request_refund(
            RefundRequestDTO(order_id=order.id, reason="rest", refund_type="partial", items=[_partial(12, 1, "60.00")]),
            requester_id=7,
        )


@pytest.mark.asyncio
async def test_partial_items_checked_against_order_lines(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order(
        total="80.00",
        items=[OrderItem(product_id=11, quantity=2, unit_price=Decimal("40.00"))],
    )
    with pytest.raises(RefundValidationException):
        await service.request_refund(
            RefundRequestDTO(order_id=order.id, reason="x", refund_type="partial", items=[_partial(99, 1, "5.00")]),
            requester_id=7,
        )
    with pytest.raises(RefundValidationException):
        await service.request_refund(
            RefundRequestDTO(order_id=order.id, reason="x", refund_type="partial", items=[_partial(11, 3, "5.00")]),
            requester_id=7,
        )
    with pytest.raises(InvalidRefundAmountException):
        await service.request_refund(
            RefundRequestDTO(order_id=order.id, reason="x", refund_type="partial", items=[_partial(11, 1, "45.00")]),
            requester_id=7,
        )


@pytest.mark.asyncio
async def test_foreign_order_is_not_found_but_admin_can_request(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order(customer_id=7)

    with pytest.raises(OrderNotFoundException):
        await service.request_refund(RefundRequestDTO(order_id=order.id, reason="mine?"), requester_id=8)

    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="goodwill"), requester_id=None)
    refund = await _refund_state(uow_factory, requested.refund_id)
    assert refund.requested_by == RequesterRole.ADMIN
    assert refund.customer_id == 7


@pytest.mark.asyncio
async def test_cancelled_order_cannot_be_refunded(uow_factory, seed_order):
    service = RefundApplicationService(uow_factory, StubGateway())
    order = await seed_order(status=OrderStatus.CANCELLED)
    with pytest.raises(CancelledOrderRefundException):
        await service.request_refund(RefundRequestDTO(order_id=order.id, reason="x"), requester_id=7)


@pytest.mark.asyncio
async def test_store_owner_cannot_touch_other_stores(uow_factory, seed_order):
    gateway = StubGateway()
    service = RefundApplicationService(uow_factory, gateway)
    order = await seed_order(store_owner_id=3)
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="x"), requester_id=7)

    with pytest.raises(RefundNotFoundException):
        await service.process_refund(requested.refund_id, actor_id=4, store_owner_id=4)
    with pytest.raises(RefundNotFoundException):
        await service.cancel_refund(requested.refund_id, actor_id=4, store_owner_id=4)
    assert gateway.calls == []

    processed = await service.process_refund(requested.refund_id, actor_id=3, store_owner_id=3)
    assert processed.status == "completed"


@pytest.mark.asyncio
async def test_notification_failures_do_not_break_requests(uow_factory, seed_order, failing_sink):
    service = RefundApplicationService(uow_factory, StubGateway(), failing_sink)
    order = await seed_order()
    requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="x"), requester_id=7)
    processed = await service.process_refund(requested.refund_id, actor_id=1)
    assert processed.status == "completed"


@pytest.mark.asyncio
async def test_process_unknown_refund(uow_factory):
    service = RefundApplicationService(uow_factory, StubGateway())
    with pytest.raises(RefundNotFoundException):
        await service.process_refund(404, actor_id=1)
