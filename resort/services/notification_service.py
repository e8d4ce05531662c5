"""Fire-and-forget operator notifications and the chat renderings they share."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Protocol

from resort.domain.actions import CallbackAction, Entity, Verb
from resort.domain.models import Booking, BookingStatus, DeliveryType, Order, OrderStatus
from resort.domain.transitions import is_order_terminal, next_order_step
from resort.repository.data_repository import DataRepository
from resort.services.messaging_gateway import GatewayFactory, InlineButton, Keyboard
from resort.utils.logger import get_logger


logger = get_logger(__name__)


class NotificationKind(str, Enum):
    BOOKING_CREATED = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_CANCELLED = "booking.cancelled"
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"


class NotificationSink(Protocol):
    def notify(self, kind: NotificationKind, payload: Mapping[str, Any]) -> None:
        ...


ORDER_STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "waiting for confirmation",
    OrderStatus.CONFIRMED: "confirmed",
    OrderStatus.PREPARING: "being prepared",
    OrderStatus.READY: "ready",
    OrderStatus.DELIVERED: "delivered",
    OrderStatus.CANCELLED: "cancelled",
}

# Button that advances an order *into* the keyed status.
ORDER_STEP_BUTTONS: dict[OrderStatus, tuple[Verb, str]] = {
    OrderStatus.CONFIRMED: (Verb.CONFIRM, "✅ Confirm"),
    OrderStatus.PREPARING: (Verb.PREPARE, "👨‍🍳 Start preparing"),
    OrderStatus.READY: (Verb.READY, "🍽 Mark ready"),
    OrderStatus.DELIVERED: (Verb.DELIVER, "🚚 Mark delivered"),
}


def short_id(value: str) -> str:
    return value[-6:]


def format_money(amount: Decimal) -> str:
    return f"{amount:,}₮"


def format_booking(booking: Booking) -> str:
    nights = (booking.end_date - booking.start_date).days
    lines = [
        f"Booking #{short_id(booking.booking_id)}",
        f"House: {booking.house_name}",
        f"Dates: {booking.start_date.isoformat()} → {booking.end_date.isoformat()} ({nights} nights)",
        f"Guests: {booking.guest_count}",
        f"Name: {booking.guest_contact.name}",
    ]
    if booking.guest_contact.phone:
        lines.append(f"Phone: {booking.guest_contact.phone}")
    if booking.guest_contact.email:
        lines.append(f"Email: {booking.guest_contact.email}")
    lines.append(f"Total: {format_money(booking.total_price)}")
    if booking.barter_description:
        lines.append(f"Barter: {booking.barter_description}")
    lines.append(f"Status: {booking.status.value}")
    return "\n".join(lines)


def delivery_instructions(order: Order) -> str:
    if order.delivery_type is DeliveryType.HOUSE_DELIVERY:
        return f"Deliver to house {order.house_name or order.house_ref}"
    return "Guest picks up at the restaurant"


def format_order(order: Order) -> str:
    lines = [f"Order #{order.short_id}"]
    for item in order.items:
        lines.append(f"• {item.name} × {item.quantity} = {format_money(item.line_total)}")
    lines.append(f"Total: {format_money(order.total_amount)}")
    lines.append(delivery_instructions(order))
    if order.guest_name:
        lines.append(f"Name: {order.guest_name}")
    if order.guest_phone:
        lines.append(f"Phone: {order.guest_phone}")
    if order.note:
        lines.append(f"Note: {order.note}")
    lines.append(f"Status: {ORDER_STATUS_LABELS[order.status]}")
    return "\n".join(lines)


def booking_decision_keyboard(booking_id: str) -> Keyboard:
    return [
        [
            InlineButton("✅ Approve", CallbackAction(Verb.APPROVE, Entity.BOOKING, booking_id).token),
            InlineButton("❌ Reject", CallbackAction(Verb.REJECT, Entity.BOOKING, booking_id).token),
        ]
    ]


def booking_info_keyboard(booking_id: str) -> Keyboard:
    return [
        [
            InlineButton("📍 Location", CallbackAction(Verb.SEND, Entity.LOCATION, booking_id).token),
            InlineButton(
                "💳 Payment info",
                CallbackAction(Verb.SEND, Entity.PAYMENT_INFO, booking_id).token,
            ),
        ]
    ]


def order_step_keyboard(order: Order) -> Keyboard:
    """Single next-step button; empty once the order has no step left."""
    target = None if is_order_terminal(order.status) else next_order_step(order.status)
    if target is None:
        return []
    verb, label = ORDER_STEP_BUTTONS[target]
    return [[InlineButton(label, CallbackAction(verb, Entity.ORDER, order.order_id).token)]]


def new_order_keyboard(order: Order) -> Keyboard:
    """Next-step button plus cancel, shown on the new-order notification."""
    rows = [list(row) for row in order_step_keyboard(order)]
    if is_order_terminal(order.status):
        return rows
    rows.append(
        [InlineButton("❌ Cancel", CallbackAction(Verb.CANCEL, Entity.ORDER, order.order_id).token)]
    )
    return rows


def render_notification(
    kind: NotificationKind,
    payload: Mapping[str, Any],
) -> tuple[str, Optional[Keyboard]]:
    if kind is NotificationKind.BOOKING_CREATED:
        booking: Booking = payload["booking"]
        keyboard = (
            booking_decision_keyboard(booking.booking_id)
            if booking.status is BookingStatus.PENDING
            else None
        )
        return f"🏠 New booking ({booking.origin.value})\n{format_booking(booking)}", keyboard
    if kind is NotificationKind.BOOKING_CONFIRMED:
        booking = payload["booking"]
        return f"✅ Booking confirmed\n{format_booking(booking)}", None
    if kind is NotificationKind.BOOKING_CANCELLED:
        booking = payload["booking"]
        return f"❌ Booking cancelled\n{format_booking(booking)}", None
    if kind is NotificationKind.ORDER_CREATED:
        order: Order = payload["order"]
        return f"🍽 New order\n{format_order(order)}", new_order_keyboard(order)
    if kind is NotificationKind.ORDER_STATUS_CHANGED:
        order = payload["order"]
        text = f"Order #{order.short_id} is now {ORDER_STATUS_LABELS[order.status]}"
        if order.status is OrderStatus.READY:
            text += f"\n{delivery_instructions(order)}"
        return text, None
    raise ValueError(f"Unsupported notification kind: {kind}")


class NotificationService:
    """Pushes lifecycle events to the operator chat; never raises to the caller."""

    def __init__(
        self,
        repository: DataRepository,
        gateway_factory: GatewayFactory,
    ) -> None:
        self._repository = repository
        self._gateway_factory = gateway_factory

    def notify(self, kind: NotificationKind, payload: Mapping[str, Any]) -> None:
        try:
            self._deliver(kind, payload)
        except Exception:
            # State is already persisted; a lost notification is only logged.
            logger.exception("Notification %s could not be delivered", kind.value)

    def _deliver(self, kind: NotificationKind, payload: Mapping[str, Any]) -> None:
        resort = self._repository.get_resort_settings()
        telegram = resort.telegram if resort is not None else None
        if (
            telegram is None
            or not telegram.is_active
            or not telegram.bot_token
            or not telegram.operator_chat_id
        ):
            logger.debug("Operator chat not configured; dropping %s", kind.value)
            return
        text, keyboard = render_notification(kind, payload)
        gateway = self._gateway_factory(telegram.bot_token)
        gateway.send_message(telegram.operator_chat_id, text, keyboard)
        logger.info("Notification %s sent to operator chat", kind.value)
