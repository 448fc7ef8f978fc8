from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest
import pytest_asyncio

from core.config import settings
from domain.order.entity import OrderRefundStatus
from main import app


def _token(actor_id: int, role: str, *, expires_in: int = 3600) -> dict:
    payload = {
        "sub": str(actor_id),
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


CUSTOMER = _token(7, "customer")
OTHER_CUSTOMER = _token(8, "customer")
ADMIN = _token(1, "admin")
STORE_OWNER = _token(3, "store_owner")


@pytest_asyncio.fixture
async def client(uow_factory, gateway, sink):
    app.state.uow_factory = uow_factory
    app.state.payment_gateway = gateway
    app.state.notification_sink = sink
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _request(client, order_id, **body):
    payload = {"orderId": order_id, "reason": "damaged", **body}
    return await client.post("/api/v1/refunds/request", json=payload, headers=CUSTOMER)


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}


@pytest.mark.asyncio
async def test_request_and_process_full_refund(client, seed_order, uow_factory):
    order = await seed_order(total="50.00")

    resp = await _request(client, order.id)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["code"] == 0
    assert body["message"] == "Refund request submitted successfully"
    refund_id = body["data"]["refundId"]
    assert body["data"] == {"refundId": refund_id, "status": "pending", "amount": 50.0}

    resp = await client.post(f"/api/v1/refunds/{refund_id}/process", json={"adminNotes": "ok"}, headers=ADMIN)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "completed"
    assert data["gatewayRefundId"].startswith("re_fake_")
    assert data["amount"] == 50.0

    async with uow_factory(readonly=True) as uow:
        stored = await uow.order_repository.get_by_id(order.id)
    assert stored.refund_status == OrderRefundStatus.COMPLETED


@pytest.mark.asyncio
async def test_gateway_failure_is_500(client, seed_order, gateway):
    gateway.configure(fail_with="card network declined")
    order = await seed_order(total="80.00")
    refund_id = (await _request(
        client,
        order.id,
        refundType="partial",
        items=[{"productId": 11, "quantity": 1, "refundAmount": 30}],
    )).json()["data"]["refundId"]

    resp = await client.post(f"/api/v1/refunds/{refund_id}/process", headers=ADMIN)
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert "card network declined" in body["message"]

    detail = (await client.get(f"/api/v1/refunds/{refund_id}")).json()["data"]
    assert detail["status"] == "failed"
    assert detail["adminNotes"] == "Gateway error: card network declined"
    assert detail["items"][0]["refundAmount"] == 30.0


@pytest.mark.asyncio
async def test_validation_errors_are_400(client, seed_order):
    order = await seed_order()

    missing = await client.post("/api/v1/refunds/request", json={"orderId": order.id}, headers=CUSTOMER)
    assert missing.status_code == 400
    assert missing.json()["message"] == "Order ID and reason are required"

    partial = await _request(client, order.id, refundType="partial", items=[])
    assert partial.status_code == 400
    assert partial.json()["message"] == "Invalid refund type or missing items for partial refund"

    bad_item = await _request(client, order.id, refundType="partial", items=[{"productId": 1, "quantity": 0, "refundAmount": 5}])
    assert bad_item.status_code == 400
    assert bad_item.json()["error"]["type"] == "ValidationError"


@pytest.mark.asyncio
async def test_foreign_order_is_404(client, seed_order):
    order = await seed_order(customer_id=7)
    resp = await client.post(
        "/api/v1/refunds/request",
        json={"orderId": order.id, "reason": "not mine"},
        headers=OTHER_CUSTOMER,
    )
    assert resp.status_code == 404
    assert resp.json()["message"] == "Order not found or unauthorized"


@pytest.mark.asyncio
async def test_invalid_state_is_400_and_not_cancellable_is_404(client, seed_order):
    order = await seed_order()
    refund_id = (await _request(client, order.id)).json()["data"]["refundId"]

    again = await _request(client, order.id)
    assert again.status_code == 400

    await client.post(f"/api/v1/refunds/{refund_id}/process", headers=ADMIN)
    reprocess = await client.post(f"/api/v1/refunds/{refund_id}/process", headers=ADMIN)
    assert reprocess.status_code == 400
    assert reprocess.json()["message"] == "Refund is already completed"

    cancel = await client.post(f"/api/v1/refunds/{refund_id}/cancel", headers=ADMIN)
    assert cancel.status_code == 404


@pytest.mark.asyncio
async def test_cancel(client, seed_order, sink):
    order = await seed_order()
    refund_id = (await _request(client, order.id)).json()["data"]["refundId"]

    resp = await client.post(
        f"/api/v1/refunds/{refund_id}/cancel",
        json={"cancelReason": "duplicate"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Refund cancelled successfully"
    assert resp.json()["data"] == {"refundId": refund_id}
    assert "Refund Request Cancelled" in sink.titles()


@pytest.mark.asyncio
async def test_admin_list_has_pagination(client, seed_order):
    for _ in range(3):
        order = await seed_order()
        await _request(client, order.id)

    resp = await client.get("/api/v1/refunds/admin/all", params={"page": 1, "limit": 2, "status": "pending"}, headers=ADMIN)
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    bad_status = await client.get("/api/v1/refunds/admin/all", params={"status": "lost"}, headers=ADMIN)
    assert bad_status.status_code == 400


@pytest.mark.asyncio
async def test_store_owner_routes_are_scoped(client, seed_order):
    mine = await seed_order(store_owner_id=3)
    theirs = await seed_order(store_owner_id=4)
    mine_id = (await _request(client, mine.id)).json()["data"]["refundId"]
    theirs_id = (await _request(client, theirs.id)).json()["data"]["refundId"]

    listing = await client.get("/api/v1/refunds/store-owner/all", headers=STORE_OWNER)
    assert [r["id"] for r in listing.json()["data"]] == [mine_id]

    foreign = await client.post(f"/api/v1/refunds/store-owner/{theirs_id}/process", headers=STORE_OWNER)
    assert foreign.status_code == 404

    own = await client.post(f"/api/v1/refunds/store-owner/{mine_id}/cancel", headers=STORE_OWNER)
    assert own.status_code == 200


@pytest.mark.asyncio
async def test_my_refunds(client, seed_order):
    order = await seed_order()
    refund_id = (await _request(client, order.id)).json()["data"]["refundId"]

    resp = await client.get("/api/v1/refunds/customer/my-refunds", headers=CUSTOMER)
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()["data"]] == [refund_id]

    other = await client.get("/api/v1/refunds/customer/my-refunds", headers=OTHER_CUSTOMER)
    assert other.json()["data"] == []


@pytest.mark.asyncio
async def test_get_unknown_refund_is_404(client):
    resp = await client.get("/api/v1/refunds/12345")
    assert resp.status_code == 404
    assert resp.json()["code"] == 20102


@pytest.mark.asyncio
async def test_authentication_and_roles(client, seed_order):
    order = await seed_order()

    anonymous = await client.post("/api/v1/refunds/request", json={"orderId": order.id, "reason": "x"})
    assert anonymous.status_code == 401

    garbage = await client.post(
        "/api/v1/refunds/request",
        json={"orderId": order.id, "reason": "x"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert garbage.status_code == 401

    expired = await client.get("/api/v1/refunds/admin/all", headers=_token(1, "admin", expires_in=-60))
    assert expired.status_code == 401

    forbidden = await client.get("/api/v1/refunds/admin/all", headers=CUSTOMER)
    assert forbidden.status_code == 403

    store_on_admin_route = await client.post("/api/v1/refunds/1/process", headers=STORE_OWNER)
    assert store_on_admin_route.status_code == 403
