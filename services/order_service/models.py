import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

from shared.config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventSource(str, enum.Enum):
    SYSTEM = "system"
    ADMIN = "admin"
    WEBHOOK = "webhook"


def _utcnow():
    return datetime.now(timezone.utc)


def _in_list(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(_in_list("status", OrderStatus), name="ck_orders_status"),
        CheckConstraint("subtotal_cents >= 0", name="ck_orders_subtotal_cents"),
        {"schema": "order_schema"},
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("auth_schema.users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    currency = Column(String(3), nullable=False)
    subtotal_cents = Column(Integer, nullable=False) # frozen at creation

    # One intent belongs to at most one order; NULLs do not collide
    payment_intent_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("unit_price_cents >= 0", name="ck_order_items_unit_price_cents"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        CheckConstraint("line_total_cents >= 0", name="ck_order_items_line_total_cents"),
        {"schema": "order_schema"},
    )

    order_id = Column(
        Integer,
        ForeignKey("order_schema.orders.id", ondelete="CASCADE"),
        primary_key=True,
    )
    product_id = Column(
        Integer,
        ForeignKey("product_schema.products.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    # Snapshot of the catalog row at checkout time
    sku = Column(String(64), nullable=False)
    name = Column(String, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total_cents = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class OrderStatusEvent(Base):
    """Append-only audit row, one per status change."""

    __tablename__ = "order_status_events"
    __table_args__ = (
        CheckConstraint(_in_list("source", EventSource), name="ck_order_status_events_source"),
        CheckConstraint(_in_list("to_status", OrderStatus), name="ck_order_status_events_to_status"),
        Index("ix_order_status_events_order_timeline", "order_id", "created_at", "id"),
        {"schema": "order_schema"},
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer,
        ForeignKey("order_schema.orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status = Column(String(20), nullable=True) # NULL for the initial system event
    to_status = Column(String(20), nullable=False)
    reason = Column(String(500), nullable=True)
    source = Column(String(20), nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
