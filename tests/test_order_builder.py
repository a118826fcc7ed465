import pytest
from sqlalchemy import func, select

from services.order_service.models import Order, OrderItem, OrderStatusEvent
from services.order_service.repository import OrderRepository
from services.product_service.models import Product
from shared.errors import CartEmpty, MixedCurrency, ProductInactive, ProductNotFound, ValidationError


async def _count(db, model):
    return await db.scalar(select(func.count()).select_from(model))


async def test_creates_pending_order_with_frozen_snapshot(db, make_user, make_product):
    user_id = await make_user()
    first = await make_product(product_id=7, price_cents=500)
    second = await make_product(product_id=3, price_cents=1250)

    created = await OrderRepository.create_order_from_cart(
        db, user_id, [{"product_id": first, "quantity": 2}, {"product_id": second, "quantity": 1}]
    )

    order = created.order
    assert order.status == "pending"
    assert order.user_id == user_id
    assert order.currency == "EUR"
    assert order.subtotal_cents == 2 * 500 + 1250
    assert order.payment_intent_id is None
    assert order.paid_at is None

    items = await OrderRepository.get_order_items(db, order.id)
    assert [(i.product_id, i.quantity, i.unit_price_cents, i.line_total_cents) for i in items] == [
        (3, 1, 1250, 1250),
        (7, 2, 500, 1000),
    ]
    assert items[1].sku == "SKU-0001"
    assert items[1].name == "Product 7"

    events = await OrderRepository.get_timeline(db, order.id)
    assert len(events) == 1
    assert events[0].from_status is None
    assert events[0].to_status == "pending"
    assert events[0].source == "system"


async def test_prices_stay_frozen_after_catalog_change(db, make_user, make_product):
    user_id = await make_user()
    product_id = await make_product(price_cents=500)

    created = await OrderRepository.create_order_from_cart(
        db, user_id, [{"product_id": product_id, "quantity": 2}]
    )
    order_id = created.order.id

    product = await db.get(Product, product_id)
    product.price_cents = 900
    await db.commit()

    details = await OrderRepository.get_order_details(db, order_id)
    assert details.order.subtotal_cents == 1000
    assert details.items[0].unit_price_cents == 500
    assert details.items[0].line_total_cents == 1000

    newer = await OrderRepository.create_order_from_cart(
        db, user_id, [{"product_id": product_id, "quantity": 2}]
    )
    assert newer.order.subtotal_cents == 1800


async def test_duplicate_products_are_merged(db, make_user, make_product):
    user_id = await make_user()
    product_id = await make_product(price_cents=200)

    created = await OrderRepository.create_order_from_cart(
        db, user_id, [{"product_id": product_id, "quantity": 1}, {"product_id": product_id, "quantity": 4}]
    )

    assert len(created.items) == 1
    assert created.items[0].quantity == 5
    assert created.order.subtotal_cents == 1000


async def test_empty_cart_is_rejected(db, make_user):
    user_id = await make_user()

    with pytest.raises(CartEmpty):
        await OrderRepository.create_order_from_cart(db, user_id, [])

    assert await _count(db, Order) == 0


@pytest.mark.parametrize(
    "item",
    [
        {"product_id": 1, "quantity": 0},
        {"product_id": 1, "quantity": -2},
        {"product_id": 0, "quantity": 1},
        {"product_id": "1", "quantity": 1},
        {"product_id": 1},
    ],
)
async def test_malformed_cart_items_are_rejected(db, make_user, make_product, item):
    user_id = await make_user()
    await make_product(product_id=1)

    with pytest.raises(ValidationError):
        await OrderRepository.create_order_from_cart(db, user_id, [item])

    assert await _count(db, Order) == 0


async def test_unknown_product_leaves_nothing_behind(db, make_user, make_product):
    user_id = await make_user()
    product_id = await make_product()

    with pytest.raises(ProductNotFound) as exc_info:
        await OrderRepository.create_order_from_cart(
            db, user_id, [{"product_id": product_id, "quantity": 1}, {"product_id": 999, "quantity": 1}]
        )

    assert exc_info.value.details == {"product_id": 999}
    assert await _count(db, Order) == 0
    assert await _count(db, OrderItem) == 0
    assert await _count(db, OrderStatusEvent) == 0


async def test_inactive_product_is_rejected(db, make_user, make_product):
    user_id = await make_user()
    product_id = await make_product(is_active=False)

    with pytest.raises(ProductInactive):
        await OrderRepository.create_order_from_cart(db, user_id, [{"product_id": product_id, "quantity": 1}])

    assert await _count(db, Order) == 0


async def test_mixed_currencies_are_rejected(db, make_user, make_product):
    user_id = await make_user()
    euro = await make_product(currency="EUR")
    dollar = await make_product(currency="USD")

    with pytest.raises(MixedCurrency):
        await OrderRepository.create_order_from_cart(
            db, user_id, [{"product_id": euro, "quantity": 1}, {"product_id": dollar, "quantity": 1}]
        )

    assert await _count(db, Order) == 0
