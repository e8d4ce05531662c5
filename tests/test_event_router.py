from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

from resort.domain.models import (
    BookingStatus,
    ContactInfo,
    DeliveryType,
    MapLocation,
    OrderItem,
    OrderStatus,
    PaymentInfo,
)
from resort.services.event_router import (
    GUEST_HELP,
    OPERATOR_HELP,
    OPERATOR_ONLY_MESSAGE,
    UNKNOWN_COMMAND_MESSAGE,
    EventRouter,
)

from conftest import GUEST_CHAT_ID, OPERATOR_CHAT_ID, TODAY


def callback_update(data: str, chat_id: str = OPERATOR_CHAT_ID, message_id: int = 42) -> dict:
    return {
        "update_id": 1,
        "callback_query": {
            "id": "cb-1",
            "data": data,
            "message": {"message_id": message_id, "chat": {"id": int(chat_id)}},
        },
    }


def message_update(text: str, chat_id: str = OPERATOR_CHAT_ID) -> dict:
    return {"update_id": 2, "message": {"chat": {"id": int(chat_id)}, "text": text}}


def _order(order_service, **kwargs):
    items = [OrderItem(name="Buuz", unit_price=Decimal("14"), quantity=2)]
    kwargs.setdefault("delivery_type", DeliveryType.HOUSE_DELIVERY)
    kwargs.setdefault("house_ref", "house-1")
    return order_service.create(items, **kwargs)


def test_callback_is_acknowledged_before_anything_else(router, gateway, order_service):
    order = _order(order_service)

    router.handle(callback_update(f"confirm:order:{order.order_id}"))

    assert gateway.methods()[0] == "answer_callback"
    assert gateway.calls[0][1]["callback_id"] == "cb-1"


def test_order_confirm_then_replay_is_informational(router, gateway, order_service, repository):
    order = _order(order_service)
    token = f"confirm:order:{order.order_id}"

    router.handle(callback_update(token))

    assert repository.get_order(order.order_id).status is OrderStatus.CONFIRMED
    assert gateway.methods() == ["answer_callback", "edit_message_keyboard", "send_message"]
    edited = gateway.calls[1][1]
    assert edited["message_id"] == 42
    assert gateway.tokens(edited["keyboard"]) == [[f"prepare:order:{order.order_id}"]]
    assert gateway.messages()[-1]["text"] == f"Order #{order.short_id} is now confirmed."

    gateway.calls.clear()
    router.handle(callback_update(token))

    assert repository.get_order(order.order_id).status is OrderStatus.CONFIRMED
    assert repository.get_order(order.order_id).version == 1
    assert gateway.methods() == ["answer_callback", "send_message"]
    assert gateway.messages()[0]["text"] == f"⚠️ Order #{order.short_id} is already confirmed."


def test_ready_step_reply_includes_delivery_instructions(router, gateway, order_service):
    order = _order(order_service, house_ref="house-2")
    order_service.transition(order.order_id, OrderStatus.CONFIRMED)
    order_service.transition(order.order_id, OrderStatus.PREPARING)

    router.handle(callback_update(f"ready:order:{order.order_id}"))

    edited = [kwargs for method, kwargs in gateway.calls if method == "edit_message_keyboard"]
    assert gateway.tokens(edited[0]["keyboard"]) == [[f"deliver:order:{order.order_id}"]]
    text = gateway.messages()[-1]["text"]
    assert text.startswith(f"Order #{order.short_id} is now ready.")
    assert "Deliver to house Lake House" in text


def test_cancel_from_chat_removes_the_keyboard(router, gateway, order_service, repository):
    order = _order(order_service)
    order_service.transition(order.order_id, OrderStatus.CONFIRMED)

    router.handle(callback_update(f"cancel:order:{order.order_id}"))

    assert repository.get_order(order.order_id).status is OrderStatus.CANCELLED
    edited = [kwargs for method, kwargs in gateway.calls if method == "edit_message_keyboard"]
    assert edited[0]["keyboard"] == []
    assert gateway.messages()[-1]["text"] == f"Order #{order.short_id} is now cancelled."


def test_skipping_an_order_step_is_refused(router, gateway, order_service, repository):
    order = _order(order_service, delivery_type=DeliveryType.PICKUP, house_ref=None)

    router.handle(callback_update(f"deliver:order:{order.order_id}"))

    assert repository.get_order(order.order_id).status is OrderStatus.PENDING
    assert "cannot change it to delivered" in gateway.messages()[-1]["text"]


def test_delivered_order_keyboard_is_removed(router, gateway, order_service):
    order = _order(order_service)
    for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY):
        order_service.transition(order.order_id, status)

    router.handle(callback_update(f"deliver:order:{order.order_id}"))

    edited = [kwargs for method, kwargs in gateway.calls if method == "edit_message_keyboard"]
    assert edited[0]["keyboard"] == []


def test_malformed_token_only_acknowledges(router, gateway, repository):
    router.handle(callback_update("approve"))

    assert gateway.methods() == ["answer_callback"]
    assert repository.list_bookings_by_status(list(BookingStatus)) == []


def test_answer_failure_does_not_stop_dispatch(router, gateway, order_service, repository):
    gateway.failing.add("answer_callback")
    order = _order(order_service)

    router.handle(callback_update(f"confirm:order:{order.order_id}"))

    assert repository.get_order(order.order_id).status is OrderStatus.CONFIRMED


def test_approve_booking(router, gateway, insert_booking, repository):
    booking = insert_booking("house-1", TODAY, TODAY + timedelta(days=2), BookingStatus.PENDING)

    router.handle(callback_update(f"approve:booking:{booking.booking_id}"))

    assert repository.get_booking(booking.booking_id).status is BookingStatus.CONFIRMED
    assert gateway.methods() == ["answer_callback", "edit_message_keyboard", "send_message"]
    assert gateway.calls[1][1]["keyboard"] is None
    reply = gateway.messages()[-1]
    assert reply["text"].startswith(f"✅ Booking #{booking.booking_id[-6:]} confirmed!")
    assert gateway.tokens(reply["keyboard"]) == [
        [f"send:location:{booking.booking_id}", f"send:payment-info:{booking.booking_id}"]
    ]


def test_reject_booking_then_replay(router, gateway, insert_booking, repository):
    booking = insert_booking("house-1", TODAY, TODAY + timedelta(days=2), BookingStatus.PENDING)

    router.handle(callback_update(f"reject:booking:{booking.booking_id}"))
    router.handle(callback_update(f"approve:booking:{booking.booking_id}"))

    assert repository.get_booking(booking.booking_id).status is BookingStatus.CANCELLED
    texts = [message["text"] for message in gateway.messages()]
    assert texts[0].startswith(f"❌ Booking #{booking.booking_id[-6:]} rejected.")
    assert texts[1] == f"⚠️ Booking #{booking.booking_id[-6:]} is already cancelled."


def test_unknown_booking(router, gateway):
    router.handle(callback_update("approve:booking:missing"))

    assert gateway.messages()[-1]["text"] == "❌ Booking not found."


def test_guest_cannot_press_operator_buttons(router, gateway, insert_booking, repository):
    booking = insert_booking("house-1", TODAY, TODAY + timedelta(days=2), BookingStatus.PENDING)

    router.handle(callback_update(f"approve:booking:{booking.booking_id}", chat_id=GUEST_CHAT_ID))

    assert repository.get_booking(booking.booking_id).status is BookingStatus.PENDING
    assert gateway.messages(GUEST_CHAT_ID)[-1]["text"] == OPERATOR_ONLY_MESSAGE


def test_send_location_is_public(router, gateway, repository):
    resort = repository.get_resort_settings()
    repository.save_resort_settings(
        replace(
            resort,
            location=MapLocation(lat=47.92, lng=106.91),
            contact=ContactInfo(address="Terelj valley"),
        )
    )

    router.handle(callback_update("send:location:abc", chat_id=GUEST_CHAT_ID))

    assert gateway.methods() == ["answer_callback", "send_location", "send_message"]
    assert gateway.calls[1][1] == {"chat_id": GUEST_CHAT_ID, "lat": 47.92, "lng": 106.91}
    assert gateway.messages()[-1]["text"] == "📍 Address: Terelj valley"


def test_send_location_unconfigured(router, gateway):
    router.handle(callback_update("send:location:abc"))

    assert gateway.messages()[-1]["text"] == "⚠️ The resort location is not configured."


def test_send_payment_info_with_qr(router, gateway, repository, insert_booking):
    booking = insert_booking("house-1", TODAY, TODAY + timedelta(days=1), total_price=Decimal("1500"))
    resort = repository.get_resort_settings()
    repository.save_resort_settings(
        replace(
            resort,
            payment=PaymentInfo(
                bank_name="Khan Bank",
                account_number="5000123456",
                account_name="Resort LLC",
                qr_image_url="https://example.com/qr.png",
            ),
        )
    )

    router.handle(callback_update(f"send:bank:{booking.booking_id}"))

    assert gateway.methods() == ["answer_callback", "send_message", "send_photo"]
    text = gateway.messages()[0]["text"]
    assert "🏦 Bank: Khan Bank" in text
    assert "💰 Amount due: 1,500₮" in text
    assert gateway.calls[2][1]["url"] == "https://example.com/qr.png"
    assert gateway.calls[2][1]["caption"] == "Scan the QR code to pay"


def test_send_payment_info_unconfigured(router, gateway):
    router.handle(callback_update("send:payment-info:abc"))

    assert gateway.messages()[-1]["text"] == "⚠️ Payment details are not configured."


def test_start_shows_role_specific_help(router, gateway):
    router.handle(message_update("/start"))
    router.handle(message_update("/start@ResortBot", chat_id=GUEST_CHAT_ID))

    assert gateway.messages(OPERATOR_CHAT_ID)[-1]["text"] == OPERATOR_HELP
    assert gateway.messages(GUEST_CHAT_ID)[-1]["text"] == GUEST_HELP


def test_pending_lists_each_booking_with_decision_buttons(router, gateway, insert_booking):
    first = insert_booking("house-1", TODAY, TODAY + timedelta(days=1), BookingStatus.PENDING)
    second = insert_booking("house-2", TODAY + timedelta(days=3), TODAY + timedelta(days=4), BookingStatus.PENDING)
    insert_booking("house-3", TODAY, TODAY + timedelta(days=1))

    router.handle(message_update("/pending"))

    messages = gateway.messages()
    assert messages[0]["text"] == "⏳ 2 booking(s) waiting for approval:"
    assert [gateway.tokens(message["keyboard"]) for message in messages[1:]] == [
        [[f"approve:booking:{first.booking_id}", f"reject:booking:{first.booking_id}"]],
        [[f"approve:booking:{second.booking_id}", f"reject:booking:{second.booking_id}"]],
    ]


def test_pending_when_nothing_waits(router, gateway):
    router.handle(message_update("/pending"))

    assert gateway.messages()[-1]["text"] == "✅ No bookings are waiting for approval."


def test_operator_commands_are_refused_for_guests(router, gateway):
    for command in ("/today", "/pending", "/report"):
        router.handle(message_update(command, chat_id=GUEST_CHAT_ID))

    assert [message["text"] for message in gateway.messages()] == [OPERATOR_ONLY_MESSAGE] * 3


def test_today_lists_check_ins_and_check_outs(router, gateway, insert_booking):
    insert_booking("house-1", TODAY, TODAY + timedelta(days=2), guest_name="Bold")
    insert_booking("house-2", TODAY - timedelta(days=2), TODAY, guest_name="Nomin")

    router.handle(message_update("/today"))

    text = gateway.messages()[-1]["text"]
    assert "🟢 Check-ins (1)" in text
    assert "• house-1: Bold (99112233)" in text
    assert "🔴 Check-outs (1)" in text
    assert "• house-2: Nomin (99112233)" in text


def test_report_summarises_the_day(router, gateway, insert_booking):
    insert_booking("house-3", TODAY, TODAY + timedelta(days=1), total_price=Decimal("60"))

    router.handle(message_update("/report"))

    text = gateway.messages()[-1]["text"]
    assert "Occupied houses: 1/3" in text
    assert "Ger Suite" in text
    assert "Revenue: 60₮" in text


def test_menu_grid_two_per_row(router, gateway):
    router.handle(message_update("/menu", chat_id=GUEST_CHAT_ID))

    reply = gateway.messages()[-1]
    assert reply["text"] == "🍽 Menu\n\nPick a category:"
    assert gateway.tokens(reply["keyboard"]) == [
        ["menu:category:cat-breakfast", "menu:category:cat-mains"],
        ["menu:category:cat-drinks"],
    ]


def test_menu_pagination(booking_service, order_service, repository, gateway, settings):
    router = EventRouter(
        booking_service=booking_service,
        order_service=order_service,
        repository=repository,
        gateway=gateway,
        operator_chat_id=OPERATOR_CHAT_ID,
        settings=replace(settings, menu_page_size=2),
    )

    router.handle(message_update("/menu", chat_id=GUEST_CHAT_ID))
    router.handle(callback_update("menu:page:1", chat_id=GUEST_CHAT_ID))
    router.handle(callback_update("menu:back:0", chat_id=GUEST_CHAT_ID))

    first, second, back = (message["keyboard"] for message in gateway.messages())
    assert gateway.tokens(first) == [
        ["menu:category:cat-breakfast", "menu:category:cat-mains"],
        ["menu:page:1"],
    ]
    assert gateway.tokens(second) == [["menu:category:cat-drinks"], ["menu:page:0"]]
    assert gateway.tokens(back) == gateway.tokens(first)


def test_menu_category_lists_available_items(router, gateway):
    router.handle(callback_update("menu:category:cat-mains", chat_id=GUEST_CHAT_ID))

    reply = gateway.messages()[-1]
    assert reply["text"].startswith("🍽 Mains")
    assert "Khuushuur" in reply["text"]
    assert "💰 14₮" in reply["text"]
    assert gateway.tokens(reply["keyboard"]) == [["menu:back:0"]]


def test_empty_category(router, gateway):
    router.handle(callback_update("menu:category:cat-nothing", chat_id=GUEST_CHAT_ID))

    assert gateway.messages()[-1]["text"] == "📋 Nothing is available in this category."


def test_unknown_command_and_plain_text(router, gateway):
    router.handle(message_update("/dance"))
    router.handle(message_update("hello there"))

    assert [message["text"] for message in gateway.messages()] == [UNKNOWN_COMMAND_MESSAGE]


def test_malformed_update_is_dropped(router, gateway):
    router.handle({"message": {"text": "/start"}})
    router.handle(["not", "a", "dict"])
    router.handle(
        {
            "callback_query": {
                "id": "cb-9",
                "data": "send:location:abc",
                "message": {"message_id": "not-a-number", "chat": {"id": int(GUEST_CHAT_ID)}},
            }
        }
    )

    assert gateway.calls == []
