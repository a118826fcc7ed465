"""
Checkout with payment.

A cart session remembers the fingerprint of the cart it last checked out and
the order that checkout produced. Repeating the request for the same cart (or
after the cart was already emptied by a successful checkout) returns the same
order and client secret instead of charging twice; any change to the cart
starts a new order.
"""
import json
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.models import Order, OrderStatus
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService
from services.session_service.repository import SessionRepository
from services.session_service.service import SessionService
from shared.errors import CartEmpty, PaymentProcessorError
from shared.observability import ecomm_checkout_duration_seconds, ecomm_checkout_total

from .gateway import PaymentGateway

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    client_secret: str
    created: bool


def cart_fingerprint(items: Iterable[Mapping[str, Any]]) -> str:
    """Stable key for a cart: positive pairs merged by product, sorted by product id."""
    merged: dict[int, int] = {}
    for item in items:
        product_id, quantity = item.get("product_id"), item.get("quantity")
        if isinstance(product_id, int) and isinstance(quantity, int) and product_id > 0 and quantity > 0:
            merged[product_id] = merged.get(product_id, 0) + quantity
    pairs = [{"product_id": pid, "quantity": merged[pid]} for pid in sorted(merged)]
    return json.dumps(pairs, separators=(",", ":"))


def intent_metadata(order: Order) -> dict[str, str]:
    return {"orderId": str(order.id), "userId": str(order.user_id)}


def idempotency_key(order_id: int) -> str:
    return f"order_{order_id}"


class PaymentService:
    @staticmethod
    async def create_intent(
        db: AsyncSession,
        gateway: PaymentGateway,
        user_id: int,
        session_id: str,
        timeout: Optional[float] = None,
    ) -> CheckoutResult:
        start_time = time.perf_counter()
        try:
            result = await PaymentService._checkout(db, gateway, user_id, session_id, timeout)
        except Exception:
            ecomm_checkout_total.labels(status="failed").inc()
            raise
        finally:
            ecomm_checkout_duration_seconds.observe(time.perf_counter() - start_time)

        ecomm_checkout_total.labels(status="created" if result.created else "reused").inc()
        logger.info(
            "checkout_completed",
            order_id=result.order_id,
            user_id=user_id,
            created=result.created,
        )
        return result

    @staticmethod
    async def _checkout(
        db: AsyncSession,
        gateway: PaymentGateway,
        user_id: int,
        session_id: str,
        timeout: Optional[float],
    ) -> CheckoutResult:
        session = await OrderService.get_owned_session(db, user_id, session_id)
        items = SessionService.cart_items(session)
        remembered_key = session.checkout_cart_key
        remembered_order_id = session.checkout_order_id

        if not items:
            # Double click or retry after the cart was already emptied
            resumed = await PaymentService._resume(db, gateway, user_id, remembered_order_id, timeout)
            if resumed is not None:
                return resumed
            raise CartEmpty()

        cart_key = cart_fingerprint(items)
        if remembered_order_id is not None and remembered_key == cart_key:
            resumed = await PaymentService._resume(db, gateway, user_id, remembered_order_id, timeout)
            if resumed is not None:
                if resumed.created:
                    await SessionRepository.clear_cart(db, session_id)
                return resumed

        if remembered_key is not None or remembered_order_id is not None:
            logger.info("checkout_marker_cleared", session_id=session_id, order_id=remembered_order_id)
            await SessionRepository.set_checkout_marker(db, session_id, None, None)

        return await PaymentService._fresh_checkout(db, gateway, user_id, session_id, items, cart_key, timeout)

    @staticmethod
    async def _resume(
        db: AsyncSession,
        gateway: PaymentGateway,
        user_id: int,
        order_id: Optional[int],
        timeout: Optional[float],
    ) -> Optional[CheckoutResult]:
        """Reuses a remembered pending order, or None when it cannot be reused."""
        if order_id is None:
            return None
        order = await OrderRepository.get_order_for_payment_reuse(db, user_id, order_id)
        # ends the read transaction before any processor round trip
        await db.commit()
        if order is None or order.status != OrderStatus.PENDING.value:
            return None

        if order.payment_intent_id:
            intent = await gateway.retrieve_intent(order.payment_intent_id, timeout=timeout)
            if not intent.client_secret:
                return None
            logger.info("checkout_reused", order_id=order.id, payment_intent_id=intent.intent_id)
            return CheckoutResult(order_id=order.id, client_secret=intent.client_secret, created=False)

        # An earlier processor call failed after the order was committed
        client_secret = await PaymentService._create_and_attach(db, gateway, order, timeout)
        return CheckoutResult(order_id=order.id, client_secret=client_secret, created=True)

    @staticmethod
    async def _fresh_checkout(
        db: AsyncSession,
        gateway: PaymentGateway,
        user_id: int,
        session_id: str,
        items: list[dict],
        cart_key: str,
        timeout: Optional[float],
    ) -> CheckoutResult:
        created = await OrderRepository.create_order_from_cart(db, user_id, items)
        order = created.order

        # Remembered before the processor call so a timeout is resumable
        await SessionRepository.set_checkout_marker(db, session_id, cart_key, order.id)

        client_secret = await PaymentService._create_and_attach(db, gateway, order, timeout)
        await SessionRepository.clear_cart(db, session_id)
        return CheckoutResult(order_id=order.id, client_secret=client_secret, created=True)

    @staticmethod
    async def _create_and_attach(
        db: AsyncSession, gateway: PaymentGateway, order: Order, timeout: Optional[float]
    ) -> str:
        # Called between transactions so the processor round trip never holds a row lock
        intent = await gateway.create_intent(
            amount_cents=order.subtotal_cents,
            currency=order.currency,
            metadata=intent_metadata(order),
            idempotency_key=idempotency_key(order.id),
            timeout=timeout,
        )
        if not intent.client_secret:
            raise PaymentProcessorError("Payment intent has no client secret")

        await OrderRepository.attach_payment_intent(db, order.id, intent.intent_id)
        return intent.client_secret
