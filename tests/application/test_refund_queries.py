from decimal import Decimal

import pytest

from application.dtos.refunds import RefundItemInputDTO, RefundRequestDTO
from application.services.refund_service import RefundApplicationService
from domain.common.exceptions import RefundNotFoundException
from domain.refund.entity import RefundStatus


async def _three_refunds(service, seed_order):
    """Two pending refunds for store 3, one completed for store 4."""
    ids = []
    for store in (3, 3, 4):
        order = await seed_order(store_owner_id=store, total="20.00")
        requested = await service.request_refund(RefundRequestDTO(order_id=order.id, reason="x"), requester_id=7)
        ids.append(requested.refund_id)
    await service.process_refund(ids[2], actor_id=1)
    return ids


@pytest.mark.asyncio
async def test_admin_list_pages_and_filters(uow_factory, seed_order, gateway):
    service = RefundApplicationService(uow_factory, gateway)
    ids = await _three_refunds(service, seed_order)

    page = await service.list_refunds(page=1, limit=2)
    assert page.total == 3
    assert [r.id for r in page.items] == [ids[2], ids[1]]
    assert page.items[0].order_total == Decimal("20.00")

    second = await service.list_refunds(page=2, limit=2)
    assert [r.id for r in second.items] == [ids[0]]

    pending = await service.list_refunds(status=RefundStatus.PENDING)
    assert pending.total == 2
    assert all(r.status == "pending" for r in pending.items)


@pytest.mark.asyncio
async def test_store_list_is_scoped(uow_factory, seed_order, gateway):
    service = RefundApplicationService(uow_factory, gateway)
    ids = await _three_refunds(service, seed_order)

    store = await service.list_store_refunds(3)
    assert store.total == 2
    assert {r.id for r in store.items} == {ids[0], ids[1]}


@pytest.mark.asyncio
async def test_customer_list_newest_first(uow_factory, seed_order, gateway):
    service = RefundApplicationService(uow_factory, gateway)
    ids = await _three_refunds(service, seed_order)

    mine = await service.list_customer_refunds(7)
    assert [r.id for r in mine] == list(reversed(ids))
    assert await service.list_customer_refunds(8) == []


@pytest.mark.asyncio
async def test_detail_includes_items_for_partial(uow_factory, seed_order, gateway):
    service = RefundApplicationService(uow_factory, gateway)
    order = await seed_order(total="80.00")
    requested = await service.request_refund(
        RefundRequestDTO(
            order_id=order.id,
            reason="one broken",
            refund_type="partial",
            items=[RefundItemInputDTO(product_id=11, quantity=1, refund_amount=Decimal("30.00"))],
        ),
        requester_id=7,
    )

    detail = await service.get_refund(requested.refund_id)
    assert detail.refund_type == "partial"
    assert len(detail.items) == 1
    assert detail.items[0].refund_amount == Decimal("30.00")
    assert detail.customer_email == "ann@example.com"

    with pytest.raises(RefundNotFoundException):
        await service.get_refund(999)
