from decimal import Decimal

import pytest

from domain.common.exceptions import RefundAlreadyOpenException
from domain.refund.entity import Refund, RefundItem, RefundStatus, RefundType, RequesterRole


def _refund(order, **overrides) -> Refund:
    data = dict(
        id=None,
        order_id=order.id,
        customer_id=order.customer_id,
        amount=Decimal("10.00"),
        reason="damaged",
        refund_type=RefundType.FULL,
        status=RefundStatus.PENDING,
        requested_by=RequesterRole.CUSTOMER,
        requested_by_id=order.customer_id,
        store_owner_id=order.store_owner_id,
        payment_intent_id=order.payment_intent_id,
    )
    data.update(overrides)
    return Refund(**data)


@pytest.mark.asyncio
async def test_create_with_items_and_join_fields(uow_factory, seed_order):
    order = await seed_order(total="80.00")
    async with uow_factory() as uow:
        created = await uow.refund_repository.create(
            _refund(
                order,
                amount=Decimal("30.00"),
                refund_type=RefundType.PARTIAL,
                items=[RefundItem(product_id=11, quantity=1, amount=Decimal("30.00"), reason="broken")],
            )
        )

    assert created.id is not None
    assert created.order_total == Decimal("80.00")
    assert created.customer_email == "ann@example.com"
    async with uow_factory(readonly=True) as uow:
        items = await uow.refund_repository.get_items(created.id)
    assert [(i.product_id, i.quantity, i.amount) for i in items] == [(11, 1, Decimal("30.00"))]


@pytest.mark.asyncio
async def test_open_refund_index_rejects_second_open_refund(uow_factory, seed_order):
    order = await seed_order()
    async with uow_factory() as uow:
        await uow.refund_repository.create(_refund(order))

    with pytest.raises(RefundAlreadyOpenException):
        async with uow_factory() as uow:
            await uow.refund_repository.create(_refund(order))

    async with uow_factory(readonly=True) as uow:
        assert await uow.refund_repository.count() == 1


@pytest.mark.asyncio
async def test_terminal_refunds_do_not_block_new_ones(uow_factory, seed_order):
    order = await seed_order()
    async with uow_factory() as uow:
        await uow.refund_repository.create(_refund(order, status=RefundStatus.FAILED))
        await uow.refund_repository.create(_refund(order, status=RefundStatus.CANCELLED))
        await uow.refund_repository.create(_refund(order))
        assert await uow.refund_repository.has_open_refund(order.id)


@pytest.mark.asyncio
async def test_conditional_update_loses_on_stale_status(uow_factory, seed_order):
    order = await seed_order()
    async with uow_factory() as uow:
        refund = await uow.refund_repository.create(_refund(order))

    async with uow_factory() as uow:
        winner = await uow.refund_repository.get_by_id(refund.id)
        winner.mark_processing(actor_id=1, notes=None)
        assert await uow.refund_repository.save_transition(winner, expected=RefundStatus.PENDING)

    async with uow_factory() as uow:
        loser = refund
        loser.mark_processing(actor_id=2, notes=None)
        assert not await uow.refund_repository.save_transition(loser, expected=RefundStatus.PENDING)

    async with uow_factory(readonly=True) as uow:
        stored = await uow.refund_repository.get_by_id(refund.id)
    assert stored.status == RefundStatus.PROCESSING
    assert stored.processed_by_id == 1


@pytest.mark.asyncio
async def test_completed_amount_and_latest(uow_factory, seed_order):
    order = await seed_order(total="80.00")
    async with uow_factory() as uow:
        repo = uow.refund_repository
        await repo.create(_refund(order, amount=Decimal("30.00"), refund_type=RefundType.PARTIAL, status=RefundStatus.COMPLETED))
        await repo.create(_refund(order, amount=Decimal("5.00"), refund_type=RefundType.PARTIAL, status=RefundStatus.FAILED))

    async with uow_factory(readonly=True) as uow:
        assert await uow.refund_repository.get_completed_amount(order.id) == Decimal("30.00")
        latest = await uow.refund_repository.get_latest_completed(order.id)
    assert latest.amount == Decimal("30.00")
    assert latest.refund_type == RefundType.PARTIAL


@pytest.mark.asyncio
async def test_unit_of_work_rolls_back_on_error(uow_factory, seed_order):
    order = await seed_order()
    with pytest.raises(RuntimeError):
        async with uow_factory() as uow:
            await uow.refund_repository.create(_refund(order))
            raise RuntimeError("boom")

    async with uow_factory(readonly=True) as uow:
        assert await uow.refund_repository.count() == 0
