"""
Same-order writers racing each other. The engine here starts every transaction
with BEGIN IMMEDIATE, so SQLite serializes them the way FOR UPDATE does on
PostgreSQL and the second writer sees what the first one committed.
"""
import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from services.auth_service.models import User
from services.order_service.repository import OrderRepository, WebhookOutcome
from services.product_service.models import Product
from shared.config.database import build_engine, init_models


@pytest.fixture
async def serialized_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", echo=False, serialize_sqlite=True)
    await init_models(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def pending_order(serialized_factory):
    async def _pending_order(intent_id="pi_race", path=()):
        async with serialized_factory() as db:
            user = User(email="racer@example.com")
            product = Product(sku="SKU-RACE", name="Race", price_cents=500, currency="EUR", is_active=True)
            db.add_all([user, product])
            await db.commit()

            created = await OrderRepository.create_order_from_cart(
                db, user.id, [{"product_id": product.id, "quantity": 1}]
            )
            order_id = created.order.id
            await OrderRepository.attach_payment_intent(db, order_id, intent_id)
            for step in path:
                await OrderRepository.set_status(db, order_id, step)
        return order_id

    return _pending_order


async def race(factory, *operations):
    """Runs each operation on its own session at the same time."""

    async def _run(operation):
        async with factory() as db:
            return await operation(db)

    return await asyncio.gather(*(_run(op) for op in operations), return_exceptions=True)


async def transitions(factory, order_id):
    async with factory() as db:
        order = await OrderRepository.get_order(db, order_id)
        events = await OrderRepository.get_timeline(db, order_id)
    return order, [(event.from_status, event.to_status) for event in events]


async def test_duplicate_success_deliveries_apply_once(serialized_factory, pending_order):
    order_id = await pending_order()

    outcomes = await race(
        serialized_factory,
        lambda db: OrderRepository.mark_paid(db, order_id, "pi_race"),
        lambda db: OrderRepository.mark_paid(db, order_id, "pi_race"),
    )

    assert sorted(outcomes, key=lambda o: o.value) == [WebhookOutcome.ALREADY_APPLIED, WebhookOutcome.APPLIED]
    order, history = await transitions(serialized_factory, order_id)
    assert order.status == "paid"
    assert history == [(None, "pending"), ("pending", "paid")]


async def test_duplicate_cancellation_deliveries_apply_once(serialized_factory, pending_order):
    order_id = await pending_order()

    outcomes = await race(
        serialized_factory,
        lambda db: OrderRepository.mark_cancelled(db, order_id, "pi_race", meta={"reason": "expired"}),
        lambda db: OrderRepository.mark_cancelled(db, order_id, "pi_race", meta={"reason": "expired"}),
    )

    assert sorted(outcomes, key=lambda o: o.value) == [WebhookOutcome.ALREADY_APPLIED, WebhookOutcome.APPLIED]
    order, history = await transitions(serialized_factory, order_id)
    assert order.status == "cancelled"
    assert history == [(None, "pending"), ("pending", "cancelled")]


async def test_admin_cancel_racing_payment_keeps_a_consistent_history(serialized_factory, pending_order):
    order_id = await pending_order()

    outcomes = await race(
        serialized_factory,
        lambda db: OrderRepository.set_status(db, order_id, "cancelled", reason="customer called"),
        lambda db: OrderRepository.mark_paid(db, order_id, "pi_race"),
    )

    assert not [o for o in outcomes if isinstance(o, Exception)]
    order, history = await transitions(serialized_factory, order_id)
    assert order.status == "cancelled"
    # either paid then cancelled, or cancelled with the late payment ignored
    assert history in (
        [(None, "pending"), ("pending", "paid"), ("paid", "cancelled")],
        [(None, "pending"), ("pending", "cancelled")],
    )
    if len(history) == 2:
        assert outcomes[1] is WebhookOutcome.IGNORED


async def test_two_admins_shipping_the_same_order(serialized_factory, pending_order):
    order_id = await pending_order(path=("paid",))

    outcomes = await race(
        serialized_factory,
        lambda db: OrderRepository.set_status(db, order_id, "shipped"),
        lambda db: OrderRepository.set_status(db, order_id, "shipped"),
    )

    assert [o.status for o in outcomes] == ["shipped", "shipped"]
    order, history = await transitions(serialized_factory, order_id)
    assert order.shipped_at is not None
    assert history == [(None, "pending"), ("pending", "paid"), ("paid", "shipped")]
