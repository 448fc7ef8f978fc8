"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
# Test environment: Celery runs eagerly, SQLite instead of PostgreSQL
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYMENT__DEFAULT_PROVIDER", "fake")

from decimal import Decimal  # noqa: E402
from functools import partial  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from domain.order.entity import Order, OrderItem, OrderStatus  # noqa: E402
from infrastructure.external.payments.fake_client import FakeRefundGateway  # noqa: E402
from infrastructure.models import Base  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402


class RecordingSink:
    """Notification sink that keeps every call in memory."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.notifications: list[dict[str, Any]] = []
        self.confirmations: list[tuple[int, dict[str, Any]]] = []

    async def notify(
        self,
        *,
        recipient_id: Optional[int],
        recipient_role: str,
        title: str,
        body: str,
        category: str = "refund",
        link: Optional[str] = None,
    ) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.notifications.append(
            {
                "recipient_id": recipient_id,
                "recipient_role": recipient_role,
                "title": title,
                "body": body,
                "category": category,
                "link": link,
            }
        )

    async def send_refund_confirmation(self, customer_id: int, details: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.confirmations.append((customer_id, details))

    def titles(self) -> list[str]:
        return [n["title"] for n in self.notifications]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def uow_factory(session_factory):
    return partial(SQLAlchemyUnitOfWork, session_factory=session_factory)


@pytest.fixture
def gateway():
    return FakeRefundGateway(fail_with=None, refund_id_prefix="re_fake_")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def seed_order(uow_factory):
    """Insert an order and return the persisted entity."""

    async def _seed(
        *,
        total: str = "50.00",
        customer_id: Optional[int] = 7,
        store_owner_id: Optional[int] = 3,
        status: OrderStatus = OrderStatus.DELIVERED,
        payment_intent_id: Optional[str] = "pi_123",
        items: Optional[list[OrderItem]] = None,
        customer_email: Optional[str] = "ann@example.com",
        currency: str = "USD",
    ) -> Order:
        async with uow_factory() as uow:
            return await uow.order_repository.create(
                Order(
                    id=None,
                    customer_id=customer_id,
                    store_owner_id=store_owner_id,
                    total_amount=Decimal(total),
                    status=status,
                    payment_intent_id=payment_intent_id,
                    customer_email=customer_email,
                    customer_name="Ann",
                    currency=currency,
                    items=items or [],
                )
            )

    return _seed


@pytest.fixture
def failing_sink():
    return RecordingSink(fail=True)
