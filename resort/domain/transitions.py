"""Legal status edges for bookings and kitchen orders."""

from __future__ import annotations

from typing import Optional

from resort.domain.errors import InvalidTransitionError
from resort.domain.models import BookingStatus, OrderStatus


BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}

# Forward chain; cancellation is allowed from every non-terminal state.
ORDER_NEXT_STEP: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.DELIVERED,
}

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    status: (
        frozenset({ORDER_NEXT_STEP[status], OrderStatus.CANCELLED})
        if status in ORDER_NEXT_STEP
        else frozenset()
    )
    for status in OrderStatus
}


def is_booking_terminal(status: BookingStatus) -> bool:
    return not BOOKING_TRANSITIONS[status]


def is_order_terminal(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS[status]


def validate_booking_transition(current: BookingStatus, requested: BookingStatus) -> None:
    if requested not in BOOKING_TRANSITIONS[current]:
        raise InvalidTransitionError("Booking", current.value, requested.value)


def validate_order_transition(current: OrderStatus, requested: OrderStatus) -> None:
    if requested not in ORDER_TRANSITIONS[current]:
        raise InvalidTransitionError("Order", current.value, requested.value)


def next_order_step(status: OrderStatus) -> Optional[OrderStatus]:
    return ORDER_NEXT_STEP.get(status)
