"""
Transactional order operations.

Every mutating call runs in exactly one transaction and takes a row lock on
the order (SELECT ... FOR UPDATE) before reading its status, so concurrent
admin actions and duplicate webhook deliveries for the same order serialize
and each one observes the committed result of the previous one. The audit
event is written in the same transaction as the status change.
"""
import enum
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.config.settings import DEFAULT_CURRENCY, MAX_REASON_LENGTH
from shared.errors import (
    CartEmpty,
    MixedCurrency,
    OrderNotFound,
    PaymentIntentConflict,
    ProductInactive,
    ProductNotFound,
    ValidationError,
)
from shared.observability import ecomm_order_status_transitions_total

from .models import EventSource, Order, OrderItem, OrderStatus, OrderStatusEvent
from .status import FIRST_TOUCHED_TIMESTAMP, check_transition, parse_status

logger = structlog.get_logger(__name__)

# Statuses that already imply a successful payment
_PAYMENT_SATISFIED = frozenset({OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.COMPLETED})


class WebhookOutcome(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    IGNORED = "ignored"


@dataclass
class CreatedOrder:
    order: Order
    items: list[OrderItem] = field(default_factory=list)


def _utcnow():
    return datetime.now(timezone.utc)


def _is_payment_intent_violation(exc: IntegrityError) -> bool:
    return "payment_intent_id" in str(exc.orig)


@asynccontextmanager
async def _transaction(db: AsyncSession):
    """Commit on success; roll back everything on any failure."""
    try:
        yield
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if _is_payment_intent_violation(exc):
            raise PaymentIntentConflict(
                "Payment intent is already attached to another order"
            ) from exc
        raise
    except Exception:
        await db.rollback()
        raise


async def _lock_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if order is None:
        raise OrderNotFound(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def _normalize_cart(cart_items: Iterable[Mapping[str, Any]]) -> dict[int, int]:
    """Validates the cart snapshot and merges duplicate products, keeping first-seen order."""
    quantities: dict[int, int] = {}
    for item in cart_items or []:
        product_id, quantity = item.get("product_id"), item.get("quantity")
        for name, value in (("product_id", product_id), ("quantity", quantity)):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(
                    f"{name} must be a positive integer",
                    details={"field": name, "value": value},
                )
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    if not quantities:
        raise CartEmpty()
    return quantities


def _validate_reason(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    reason = reason.strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(
            f"reason must be at most {MAX_REASON_LENGTH} characters",
            details={"field": "reason", "max_length": MAX_REASON_LENGTH},
        )
    return reason or None


def _require_intent_id(intent_id: Optional[str]) -> str:
    intent_id = (intent_id or "").strip()
    if not intent_id:
        raise ValidationError("payment intent id is required", details={"field": "payment_intent_id"})
    return intent_id


def _ensure_intent_matches(order: Order, intent_id: str) -> None:
    if order.payment_intent_id is not None and order.payment_intent_id != intent_id:
        raise PaymentIntentConflict(
            f"Order {order.id} is bound to a different payment intent",
            details={"order_id": order.id},
        )


def _bind_missing_intent(order: Order, intent_id: str) -> bool:
    if order.payment_intent_id is None:
        order.payment_intent_id = intent_id
        order.updated_at = _utcnow()
        return True
    return False


def _apply_transition(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    source: EventSource,
    reason: Optional[str] = None,
    meta: Optional[dict] = None,
) -> OrderStatusEvent:
    now = _utcnow()
    event = OrderStatusEvent(
        order_id=order.id,
        from_status=order.status,
        to_status=target.value,
        reason=reason,
        source=source.value,
        meta=meta or {},
        created_at=now,
    )
    order.status = target.value
    order.updated_at = now
    timestamp_column = FIRST_TOUCHED_TIMESTAMP.get(target)
    if timestamp_column and getattr(order, timestamp_column) is None:
        setattr(order, timestamp_column, now)
    db.add(event)
    return event


class OrderRepository:

    # --- ORDER BUILDER ---

    @staticmethod
    async def create_order_from_cart(
        db: AsyncSession, user_id: int, cart_items: Iterable[Mapping[str, Any]]
    ) -> CreatedOrder:
        """
        Freezes current catalog prices into a new pending order.
        Order, items and the initial audit event commit together or not at all.
        """
        quantities = _normalize_cart(cart_items)

        async with _transaction(db):
            products = await ProductRepository.get_products_by_ids(db, quantities.keys())

            currency = None
            items: list[OrderItem] = []
            for product_id, quantity in quantities.items():
                product = products.get(product_id)
                if product is None:
                    raise ProductNotFound(
                        f"Product {product_id} does not exist", details={"product_id": product_id}
                    )
                if not product.is_active:
                    raise ProductInactive(
                        f"Product {product_id} is not active", details={"product_id": product_id}
                    )

                product_currency = product.currency or DEFAULT_CURRENCY
                if currency is None:
                    currency = product_currency
                elif product_currency != currency:
                    raise MixedCurrency(details={"currencies": sorted({currency, product_currency})})

                items.append(OrderItem(
                    product_id=product.id,
                    sku=product.sku,
                    name=product.name,
                    unit_price_cents=product.price_cents,
                    currency=product_currency,
                    quantity=quantity,
                    line_total_cents=product.price_cents * quantity,
                ))

            now = _utcnow()
            order = Order(
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                currency=currency,
                subtotal_cents=sum(item.line_total_cents for item in items),
                created_at=now,
                updated_at=now,
            )
            db.add(order)
            await db.flush()

            for item in items:
                item.order_id = order.id
                db.add(item)
            db.add(OrderStatusEvent(
                order_id=order.id,
                from_status=None,
                to_status=OrderStatus.PENDING.value,
                source=EventSource.SYSTEM.value,
                meta={},
                created_at=now,
            ))
            await db.flush()

        ecomm_order_status_transitions_total.labels(source="system", to_status="pending").inc()
        logger.info(
            "order_created",
            order_id=order.id,
            user_id=user_id,
            subtotal_cents=order.subtotal_cents,
            currency=order.currency,
            item_count=len(items),
        )
        return CreatedOrder(order=order, items=items)

    # --- STATUS REPOSITORY ---

    @staticmethod
    async def set_status(
        db: AsyncSession, order_id: int, next_status: str, reason: Optional[str] = None
    ) -> Order:
        """Admin-driven transition. Same-status requests succeed silently without an event."""
        target = parse_status(next_status)
        reason = _validate_reason(reason)

        async with _transaction(db):
            order = await _lock_order(db, order_id)
            previous = order.status
            changed = check_transition(previous, target)
            if changed:
                _apply_transition(db, order, target, EventSource.ADMIN, reason=reason)
                await db.flush()

        if changed:
            ecomm_order_status_transitions_total.labels(source="admin", to_status=target.value).inc()
            logger.info(
                "order_status_changed",
                order_id=order_id,
                from_status=previous,
                to_status=target.value,
                source="admin",
            )
        return order

    # --- PAYMENT-INTENT BINDING ---

    @staticmethod
    async def attach_payment_intent(db: AsyncSession, order_id: int, intent_id: str) -> None:
        """
        Binds an intent to an order once. Re-attaching the same id is a no-op;
        a different id, or an id already owned by another order, is a conflict.
        """
        intent_id = _require_intent_id(intent_id)

        async with _transaction(db):
            order = await _lock_order(db, order_id)
            _ensure_intent_matches(order, intent_id)
            bound = _bind_missing_intent(order, intent_id)
            if bound:
                # surfaces the unique violation inside this transaction
                await db.flush()

        if bound:
            logger.info("payment_intent_attached", order_id=order_id, payment_intent_id=intent_id)

    # --- WEBHOOK RECONCILIATION ---

    @staticmethod
    async def mark_paid(
        db: AsyncSession, order_id: int, intent_id: str, meta: Optional[dict] = None
    ) -> WebhookOutcome:
        intent_id = _require_intent_id(intent_id)
        meta = dict(meta or {})

        async with _transaction(db):
            order = await _lock_order(db, order_id)
            _ensure_intent_matches(order, intent_id)
            current = OrderStatus(order.status)

            if current in _PAYMENT_SATISFIED:
                _bind_missing_intent(order, intent_id)
                outcome = WebhookOutcome.ALREADY_APPLIED
            elif current is OrderStatus.CANCELLED:
                # a late success must not resurrect a cancelled order
                outcome = WebhookOutcome.IGNORED
            else:
                check_transition(current, OrderStatus.PAID)
                _bind_missing_intent(order, intent_id)
                meta.setdefault("event_type", "payment_intent.succeeded")
                meta["payment_intent_id"] = intent_id
                _apply_transition(db, order, OrderStatus.PAID, EventSource.WEBHOOK, meta=meta)
                outcome = WebhookOutcome.APPLIED
            await db.flush()

        if outcome is WebhookOutcome.APPLIED:
            ecomm_order_status_transitions_total.labels(source="webhook", to_status="paid").inc()
        logger.info(
            "order_payment_reconciled",
            order_id=order_id,
            payment_intent_id=intent_id,
            status=order.status,
            outcome=outcome.value,
        )
        return outcome

    @staticmethod
    async def mark_cancelled(
        db: AsyncSession, order_id: int, intent_id: str, meta: Optional[dict] = None
    ) -> WebhookOutcome:
        intent_id = _require_intent_id(intent_id)
        meta = dict(meta or {})
        reason = meta.get("reason")
        if reason is not None:
            # processor-supplied text is clipped, never rejected
            reason = str(reason)[:MAX_REASON_LENGTH]
            meta["reason"] = reason

        async with _transaction(db):
            order = await _lock_order(db, order_id)
            _ensure_intent_matches(order, intent_id)
            current = OrderStatus(order.status)

            if current is OrderStatus.CANCELLED:
                _bind_missing_intent(order, intent_id)
                outcome = WebhookOutcome.ALREADY_APPLIED
            elif current is OrderStatus.COMPLETED:
                outcome = WebhookOutcome.IGNORED
            else:
                check_transition(current, OrderStatus.CANCELLED)
                _bind_missing_intent(order, intent_id)
                meta.setdefault("event_type", "payment_intent.canceled")
                meta["payment_intent_id"] = intent_id
                _apply_transition(
                    db, order, OrderStatus.CANCELLED, EventSource.WEBHOOK, reason=reason, meta=meta
                )
                outcome = WebhookOutcome.APPLIED
            await db.flush()

        if outcome is WebhookOutcome.APPLIED:
            ecomm_order_status_transitions_total.labels(source="webhook", to_status="cancelled").inc()
        logger.info(
            "order_cancellation_reconciled",
            order_id=order_id,
            payment_intent_id=intent_id,
            status=order.status,
            outcome=outcome.value,
            reason=reason,
        )
        return outcome

    # --- READS ---

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, user_id: Optional[int] = None) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_order_items(db: AsyncSession, order_id: int) -> list[OrderItem]:
        result = await db.execute(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.product_id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_order_details(
        db: AsyncSession, order_id: int, user_id: Optional[int] = None
    ) -> Optional[CreatedOrder]:
        order = await OrderRepository.get_order(db, order_id, user_id=user_id)
        if order is None:
            return None
        return CreatedOrder(order=order, items=await OrderRepository.get_order_items(db, order_id))

    @staticmethod
    async def get_order_for_payment_reuse(db: AsyncSession, user_id: int, order_id: int) -> Optional[Order]:
        return await OrderRepository.get_order(db, order_id, user_id=user_id)

    @staticmethod
    async def list_orders_by_user(db: AsyncSession, user_id: int) -> list[Order]:
        result = await db.execute(
            select(Order).where(Order.user_id == user_id).order_by(Order.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_all_orders(db: AsyncSession) -> list[Order]:
        result = await db.execute(select(Order).order_by(Order.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_timeline(
        db: AsyncSession, order_id: int, user_id: Optional[int] = None
    ) -> Optional[list[OrderStatusEvent]]:
        """Audit events oldest-first, or None when the order is not visible to the caller."""
        order = await OrderRepository.get_order(db, order_id, user_id=user_id)
        if order is None:
            return None
        result = await db.execute(
            select(OrderStatusEvent)
            .where(OrderStatusEvent.order_id == order_id)
            .order_by(OrderStatusEvent.created_at.asc(), OrderStatusEvent.id.asc())
        )
        return list(result.scalars().all())
