"""
Order status transition table.

    pending -> paid | cancelled
    paid    -> shipped | cancelled
    shipped -> completed

``completed`` and ``cancelled`` are terminal. Re-applying the current status
is always accepted as a no-op so that retried requests stay harmless.
"""
from typing import Union

from shared.errors import InvalidStatusTransition, ValidationError

from .models import OrderStatus

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Column touched the first time an order enters the status
FIRST_TOUCHED_TIMESTAMP: dict[OrderStatus, str] = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.COMPLETED: "completed_at",
}

StatusLike = Union[OrderStatus, str]


def parse_status(value: StatusLike) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown order status: {value!r}",
            details={"allowed": [s.value for s in OrderStatus]},
        )


def is_terminal(status: StatusLike) -> bool:
    return not ALLOWED_TRANSITIONS[parse_status(status)]


def allowed_next_statuses(status: StatusLike) -> list[OrderStatus]:
    """Statuses an order can move to from here, in lifecycle order."""
    allowed = ALLOWED_TRANSITIONS[parse_status(status)]
    return [s for s in OrderStatus if s in allowed]


def check_transition(current: StatusLike, requested: StatusLike) -> bool:
    """
    Returns True when the transition changes the status, False for a same-status
    no-op. Raises InvalidStatusTransition for anything outside the table.
    """
    current, requested = parse_status(current), parse_status(requested)
    if current == requested:
        return False
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(current.value, requested.value)
    return True
