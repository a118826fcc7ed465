import itertools

import pytest

from services.order_service.models import OrderStatus
from services.order_service.status import (
    ALLOWED_TRANSITIONS,
    allowed_next_statuses,
    check_transition,
    is_terminal,
    parse_status,
)
from shared.errors import InvalidStatusTransition, ValidationError

EDGES = {
    ("pending", "paid"),
    ("pending", "cancelled"),
    ("paid", "shipped"),
    ("paid", "cancelled"),
    ("shipped", "completed"),
}

STATUSES = [s.value for s in OrderStatus]


@pytest.mark.parametrize("current,requested", sorted(EDGES))
def test_allowed_edges_change_status(current, requested):
    assert check_transition(current, requested) is True


@pytest.mark.parametrize("status", STATUSES)
def test_same_status_is_a_noop(status):
    assert check_transition(status, status) is False


@pytest.mark.parametrize(
    "current,requested",
    [(a, b) for a, b in itertools.permutations(STATUSES, 2) if (a, b) not in EDGES],
)
def test_everything_else_is_rejected(current, requested):
    with pytest.raises(InvalidStatusTransition) as exc_info:
        check_transition(current, requested)

    assert exc_info.value.details == {"from": current, "to": requested}
    assert exc_info.value.status_code == 400


def test_table_covers_every_status():
    assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)


def test_allowed_next_statuses_follow_lifecycle_order():
    assert allowed_next_statuses("pending") == [OrderStatus.PAID, OrderStatus.CANCELLED]
    assert allowed_next_statuses("paid") == [OrderStatus.SHIPPED, OrderStatus.CANCELLED]
    assert allowed_next_statuses("shipped") == [OrderStatus.COMPLETED]
    assert allowed_next_statuses("completed") == []


def test_terminal_statuses():
    assert is_terminal("completed")
    assert is_terminal(OrderStatus.CANCELLED)
    assert not is_terminal("pending")
    assert not is_terminal("shipped")


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        parse_status("refunded")

    with pytest.raises(ValidationError):
        check_transition("pending", "PAID")
