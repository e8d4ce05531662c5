"""Chat-protocol front end.

One `EventRouter.handle` call per webhook update. The router keeps no memory
between calls: entity state comes from the lifecycle services and the
settings record, and every callback is checked against the entity's current
status before anything is changed, so replaying a button press only produces
an informational reply.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from resort.domain.actions import (
    CallbackAction,
    Entity,
    InboundCallback,
    InboundMessage,
    Verb,
    parse_action_token,
    parse_update,
)
from resort.domain.errors import (
    GatewayError,
    InvalidTransitionError,
    MalformedEventError,
    NotFoundError,
    UnauthorizedError,
)
from resort.domain.models import Booking, BookingStatus, OrderStatus, ResortSettings
from resort.domain.transitions import is_order_terminal, next_order_step
from resort.repository.data_repository import DataRepository
from resort.services.booking_service import BookingService
from resort.services.messaging_gateway import InlineButton, Keyboard, MessagingGateway, grid
from resort.services.notification_service import (
    ORDER_STATUS_LABELS,
    booking_decision_keyboard,
    booking_info_keyboard,
    delivery_instructions,
    format_booking,
    format_money,
    order_step_keyboard,
    short_id,
)
from resort.services.order_service import OrderService
from resort.utils.config import Settings, get_settings
from resort.utils.logger import get_logger


logger = get_logger(__name__)

OPERATOR_ONLY_MESSAGE = "⛔ This command is only available to the resort operator."
UNKNOWN_COMMAND_MESSAGE = "Unknown command. Send /start to see what I can do."

ORDER_VERB_TARGETS: dict[Verb, OrderStatus] = {
    Verb.CONFIRM: OrderStatus.CONFIRMED,
    Verb.PREPARE: OrderStatus.PREPARING,
    Verb.READY: OrderStatus.READY,
    Verb.DELIVER: OrderStatus.DELIVERED,
    Verb.CANCEL: OrderStatus.CANCELLED,
}

OPERATOR_HELP = (
    "👋 Operator console\n\n"
    "/today - today's check-ins and check-outs\n"
    "/pending - bookings waiting for approval\n"
    "/report - daily report\n"
    "/menu - browse the menu"
)

GUEST_HELP = (
    "👋 Welcome!\n\n"
    "/menu - browse the menu\n"
    "/contact - how to reach us"
)

CallbackHandler = Callable[[InboundCallback, CallbackAction], None]
CommandHandler = Callable[[InboundMessage], None]


class EventRouter:
    def __init__(
        self,
        booking_service: BookingService,
        order_service: OrderService,
        repository: DataRepository,
        gateway: MessagingGateway,
        operator_chat_id: Optional[str],
        settings: Optional[Settings] = None,
    ) -> None:
        self._bookings = booking_service
        self._orders = order_service
        self._repository = repository
        self._gateway = gateway
        self._operator_chat_id = str(operator_chat_id) if operator_chat_id else None
        self._settings = settings or get_settings()

        self._callback_handlers: dict[tuple[Verb, Entity], CallbackHandler] = {
            (Verb.APPROVE, Entity.BOOKING): self._on_booking_decision,
            (Verb.REJECT, Entity.BOOKING): self._on_booking_decision,
            (Verb.CONFIRM, Entity.ORDER): self._on_order_step,
            (Verb.PREPARE, Entity.ORDER): self._on_order_step,
            (Verb.READY, Entity.ORDER): self._on_order_step,
            (Verb.DELIVER, Entity.ORDER): self._on_order_step,
            (Verb.CANCEL, Entity.ORDER): self._on_order_step,
            (Verb.SEND, Entity.LOCATION): self._on_send_location,
            (Verb.SEND, Entity.PAYMENT_INFO): self._on_send_payment_info,
            (Verb.MENU, Entity.CATEGORY): self._on_menu_category,
            (Verb.MENU, Entity.BACK): self._on_menu_page,
            (Verb.MENU, Entity.PAGE): self._on_menu_page,
        }
        self._public_callbacks = frozenset(
            {
                (Verb.SEND, Entity.LOCATION),
                (Verb.MENU, Entity.CATEGORY),
                (Verb.MENU, Entity.BACK),
                (Verb.MENU, Entity.PAGE),
            }
        )
        self._command_handlers: dict[str, CommandHandler] = {
            "/start": self._cmd_start,
            "/menu": self._cmd_menu,
            "/contact": self._cmd_contact,
            "/today": self._cmd_today,
            "/pending": self._cmd_pending,
            "/report": self._cmd_report,
        }
        self._operator_commands = frozenset({"/today", "/pending", "/report"})

    # --- entry point --------------------------------------------------------

    def handle(self, payload: Any) -> None:
        try:
            inbound = parse_update(payload)
        except MalformedEventError as exc:
            logger.warning("Dropping malformed update: %s", exc)
            return
        if inbound is None:
            logger.debug("Update carries nothing to act on")
            return
        if isinstance(inbound, InboundCallback):
            self._handle_callback(inbound)
        else:
            self._handle_message(inbound)

    def is_operator(self, chat_id: Optional[str]) -> bool:
        return self._operator_chat_id is not None and chat_id == self._operator_chat_id

    def _require_operator(self, chat_id: Optional[str]) -> None:
        if not self.is_operator(chat_id):
            raise UnauthorizedError(OPERATOR_ONLY_MESSAGE)

    # --- gateway wrappers ---------------------------------------------------

    def _reply(self, chat_id: str, text: str, keyboard: Optional[Keyboard] = None) -> None:
        try:
            self._gateway.send_message(chat_id, text, keyboard)
        except GatewayError:
            logger.warning("Reply to chat %s failed", chat_id, exc_info=True)

    def _replace_keyboard(self, callback: InboundCallback, keyboard: Optional[Keyboard]) -> None:
        if callback.chat_id is None or callback.message_id is None:
            return
        try:
            self._gateway.edit_message_keyboard(callback.chat_id, callback.message_id, keyboard)
        except GatewayError:
            logger.warning("Keyboard update on message %s failed", callback.message_id, exc_info=True)

    def _resort(self) -> ResortSettings:
        return self._repository.get_resort_settings() or ResortSettings()

    # --- callbacks ----------------------------------------------------------

    def _handle_callback(self, callback: InboundCallback) -> None:
        # Acknowledge first so the client never stays in a loading state.
        try:
            self._gateway.answer_callback(callback.callback_id)
        except GatewayError:
            logger.warning("answerCallback %s failed", callback.callback_id, exc_info=True)

        try:
            action = parse_action_token(callback.data)
        except MalformedEventError as exc:
            logger.info("Dropping callback %s: %s", callback.callback_id, exc)
            return
        if callback.chat_id is None:
            logger.info("Dropping callback %s without a chat", callback.callback_id)
            return

        if action.key not in self._public_callbacks:
            try:
                self._require_operator(callback.chat_id)
            except UnauthorizedError as exc:
                logger.warning("Chat %s tried %s", callback.chat_id, action.token)
                self._reply(callback.chat_id, str(exc))
                return

        logger.info("Dispatching callback %s", action.token)
        self._callback_handlers[action.key](callback, action)

    def _on_booking_decision(self, callback: InboundCallback, action: CallbackAction) -> None:
        chat_id = str(callback.chat_id)
        target = (
            BookingStatus.CONFIRMED if action.verb is Verb.APPROVE else BookingStatus.CANCELLED
        )
        try:
            booking = self._bookings.get(action.target_id)
        except NotFoundError:
            self._reply(chat_id, "❌ Booking not found.")
            return

        label = f"Booking #{short_id(booking.booking_id)}"
        if booking.status is not BookingStatus.PENDING:
            self._reply(chat_id, f"⚠️ {label} is already {booking.status.value}.")
            return

        try:
            updated = self._bookings.transition(booking.booking_id, target)
        except InvalidTransitionError as exc:
            self._reply(chat_id, f"⚠️ {label}: {exc}.")
            return

        self._replace_keyboard(callback, None)
        summary = f"🏠 {updated.house_name}\n👤 {updated.guest_contact.name or 'Guest'}"
        if target is BookingStatus.CONFIRMED:
            self._reply(
                chat_id,
                f"✅ {label} confirmed!\n\n{summary}",
                booking_info_keyboard(updated.booking_id),
            )
        else:
            self._reply(chat_id, f"❌ {label} rejected.\n\n{summary}")

    def _on_order_step(self, callback: InboundCallback, action: CallbackAction) -> None:
        chat_id = str(callback.chat_id)
        target = ORDER_VERB_TARGETS[action.verb]
        try:
            order = self._orders.get(action.target_id)
        except NotFoundError:
            self._reply(chat_id, "❌ Order not found.")
            return

        label = f"Order #{order.short_id}"
        if target is OrderStatus.CANCELLED:
            allowed = not is_order_terminal(order.status)
        else:
            allowed = next_order_step(order.status) is target
        if not allowed:
            refusal = InvalidTransitionError(label, order.status.value, target.value)
            self._reply(chat_id, f"⚠️ {refusal}.")
            return

        try:
            updated = self._orders.transition(order.order_id, target)
        except InvalidTransitionError as exc:
            self._reply(chat_id, f"⚠️ {label}: {exc}.")
            return

        self._replace_keyboard(callback, order_step_keyboard(updated))
        text = f"{label} is now {ORDER_STATUS_LABELS[updated.status]}."
        if updated.status is OrderStatus.READY:
            text += f"\n{delivery_instructions(updated)}"
        self._reply(chat_id, text)

    def _on_send_location(self, callback: InboundCallback, action: CallbackAction) -> None:
        chat_id = str(callback.chat_id)
        resort = self._resort()
        if resort.location is None:
            self._reply(chat_id, "⚠️ The resort location is not configured.")
            return
        try:
            self._gateway.send_location(chat_id, resort.location.lat, resort.location.lng)
        except GatewayError:
            logger.warning("sendLocation to %s failed", chat_id, exc_info=True)
        self._reply(chat_id, f"📍 Address: {resort.contact.address or 'not set'}")

    def _on_send_payment_info(self, callback: InboundCallback, action: CallbackAction) -> None:
        chat_id = str(callback.chat_id)
        payment = self._resort().payment
        if payment is None:
            self._reply(chat_id, "⚠️ Payment details are not configured.")
            return

        lines = [
            "💳 Payment details",
            f"🏦 Bank: {payment.bank_name}",
            f"📝 Account: {payment.account_number}",
            f"👤 Holder: {payment.account_name}",
        ]
        booking: Optional[Booking] = self._repository.get_booking(action.target_id)
        if booking is not None:
            lines.append(f"💰 Amount due: {format_money(booking.total_price)}")
        self._reply(chat_id, "\n".join(lines))

        if payment.qr_image_url:
            try:
                self._gateway.send_photo(chat_id, payment.qr_image_url, "Scan the QR code to pay")
            except GatewayError:
                logger.warning("sendPhoto to %s failed", chat_id, exc_info=True)

    def _on_menu_category(self, callback: InboundCallback, action: CallbackAction) -> None:
        self._show_category_items(str(callback.chat_id), action.target_id)

    def _on_menu_page(self, callback: InboundCallback, action: CallbackAction) -> None:
        try:
            page = int(action.target_id)
        except ValueError:
            logger.info("Dropping menu callback with page %r", action.target_id)
            return
        self._show_menu_categories(str(callback.chat_id), max(page, 0))

    # --- menu browsing ------------------------------------------------------

    def _show_menu_categories(self, chat_id: str, page: int = 0) -> None:
        categories = self._repository.list_menu_categories(active_only=True)
        if not categories:
            self._reply(chat_id, "📋 The menu is empty.")
            return

        page_size = max(self._settings.menu_page_size, 1)
        last_page = (len(categories) - 1) // page_size
        page = min(page, last_page)
        visible = categories[page * page_size : (page + 1) * page_size]

        buttons = [
            InlineButton(
                category.name,
                CallbackAction(Verb.MENU, Entity.CATEGORY, category.category_id).token,
            )
            for category in visible
        ]
        keyboard = grid(buttons, self._settings.menu_grid_columns)
        navigation: list[InlineButton] = []
        if page > 0:
            navigation.append(
                InlineButton("⬅️ Prev", CallbackAction(Verb.MENU, Entity.PAGE, str(page - 1)).token)
            )
        if page < last_page:
            navigation.append(
                InlineButton("Next ➡️", CallbackAction(Verb.MENU, Entity.PAGE, str(page + 1)).token)
            )
        if navigation:
            keyboard.append(navigation)
        self._reply(chat_id, "🍽 Menu\n\nPick a category:", keyboard)

    def _show_category_items(self, chat_id: str, category_id: str) -> None:
        back = [[InlineButton("⬅️ Back", CallbackAction(Verb.MENU, Entity.BACK, "0").token)]]
        category = self._repository.get_menu_category(category_id)
        items = self._repository.list_menu_items(category_id, available_only=True)
        if category is None or not items:
            self._reply(chat_id, "📋 Nothing is available in this category.", back)
            return

        lines = [f"🍽 {category.name}", ""]
        for index, item in enumerate(items, start=1):
            lines.append(f"{index}. {item.name}")
            lines.append(f"   💰 {format_money(item.price)}")
            if item.description:
                lines.append(f"   📝 {item.description}")
        phone = self._resort().contact.phone
        lines.append("")
        lines.append(f"📞 To order, call {phone}." if phone else "📞 To order, contact the front desk.")
        self._reply(chat_id, "\n".join(lines), back)

    # --- commands -----------------------------------------------------------

    def _handle_message(self, message: InboundMessage) -> None:
        if not message.is_command:
            logger.debug("Ignoring plain text from chat %s", message.chat_id)
            return
        command = message.command.split("@", 1)[0]
        handler = self._command_handlers.get(command)
        if handler is None:
            self._reply(message.chat_id, UNKNOWN_COMMAND_MESSAGE)
            return
        if command in self._operator_commands:
            try:
                self._require_operator(message.chat_id)
            except UnauthorizedError as exc:
                logger.warning("Chat %s tried operator command %s", message.chat_id, command)
                self._reply(message.chat_id, str(exc))
                return
        logger.info("Dispatching command %s", command)
        handler(message)

    def _cmd_start(self, message: InboundMessage) -> None:
        help_text = OPERATOR_HELP if self.is_operator(message.chat_id) else GUEST_HELP
        self._reply(message.chat_id, help_text)

    def _cmd_menu(self, message: InboundMessage) -> None:
        self._show_menu_categories(message.chat_id, 0)

    def _cmd_contact(self, message: InboundMessage) -> None:
        contact = self._resort().contact
        lines = ["📞 Contact"]
        if contact.phone:
            lines.append(f"Phone: {contact.phone}")
        if contact.email:
            lines.append(f"Email: {contact.email}")
        if contact.address:
            lines.append(f"Address: {contact.address}")
        if len(lines) == 1:
            lines.append("Contact details are not configured yet.")
        self._reply(message.chat_id, "\n".join(lines))

    def _cmd_today(self, message: InboundMessage) -> None:
        day = self._bookings.today()
        arrivals, departures = self._bookings.today_movements(day)
        lines = [f"📅 {day.isoformat()}", "", f"🟢 Check-ins ({len(arrivals)})"]
        lines.extend(_movement_line(booking) for booking in arrivals)
        lines.append("")
        lines.append(f"🔴 Check-outs ({len(departures)})")
        lines.extend(_movement_line(booking) for booking in departures)
        self._reply(message.chat_id, "\n".join(lines))

    def _cmd_pending(self, message: InboundMessage) -> None:
        pending = self._bookings.list_pending()
        if not pending:
            self._reply(message.chat_id, "✅ No bookings are waiting for approval.")
            return
        self._reply(message.chat_id, f"⏳ {len(pending)} booking(s) waiting for approval:")
        for booking in pending:
            self._reply(
                message.chat_id,
                format_booking(booking),
                booking_decision_keyboard(booking.booking_id),
            )

    def _cmd_report(self, message: InboundMessage) -> None:
        report = self._bookings.daily_report()
        houses = {house.house_id: house.name for house in self._repository.list_houses()}
        occupied = ", ".join(houses.get(house_id, house_id) for house_id in report.occupied_house_ids)
        lines = [
            f"📊 Daily report {report.day.isoformat()}",
            f"Check-ins: {len(report.arrivals)}",
            f"Check-outs: {len(report.departures)}",
            f"Occupied houses: {len(report.occupied_house_ids)}/{len(houses)}",
        ]
        if occupied:
            lines.append(f"  {occupied}")
        lines.append(f"Revenue: {format_money(report.revenue)}")
        self._reply(message.chat_id, "\n".join(lines))


def _movement_line(booking: Booking) -> str:
    contact = booking.guest_contact
    phone = f" ({contact.phone})" if contact.phone else ""
    return f"• {booking.house_name}: {contact.name or 'Guest'}{phone}"
