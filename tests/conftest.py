from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import pytest

from resort.domain.errors import GatewayError
from resort.domain.models import (
    Booking,
    BookingOrigin,
    BookingStatus,
    GuestContact,
)
from resort.repository.data_repository import DataRepository, new_document_id
from resort.services.booking_service import BookingService
from resort.services.event_router import EventRouter
from resort.services.order_service import OrderService
from resort.utils.config import get_settings


TODAY = date(2026, 10, 16)
FIXED_NOW = datetime(2026, 10, 16, 9, 30, tzinfo=timezone.utc)
OPERATOR_CHAT_ID = "1001"
GUEST_CHAT_ID = "2002"


class FakeGateway:
    """Records every outbound call; methods listed in `failing` raise GatewayError."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failing: set[str] = set()
        self._message_ids = itertools.count(100)

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        if method in self.failing:
            raise GatewayError(f"{method} failed")

    def send_message(self, chat_id, text, keyboard=None):
        self._record("send_message", chat_id=chat_id, text=text, keyboard=keyboard)
        return next(self._message_ids)

    def answer_callback(self, callback_id, text=None):
        self._record("answer_callback", callback_id=callback_id, text=text)

    def edit_message_keyboard(self, chat_id, message_id, keyboard=None):
        self._record(
            "edit_message_keyboard",
            chat_id=chat_id,
            message_id=message_id,
            keyboard=keyboard,
        )

    def send_location(self, chat_id, lat, lng):
        self._record("send_location", chat_id=chat_id, lat=lat, lng=lng)

    def send_photo(self, chat_id, url, caption=None):
        self._record("send_photo", chat_id=chat_id, url=url, caption=caption)

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    def messages(self, chat_id: Optional[str] = None) -> list[dict[str, Any]]:
        return [
            kwargs
            for method, kwargs in self.calls
            if method == "send_message" and (chat_id is None or kwargs["chat_id"] == chat_id)
        ]

    def tokens(self, keyboard) -> list[list[Optional[str]]]:
        return [[button.action_token for button in row] for row in keyboard or []]


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[Any, dict[str, Any]]] = []

    def notify(self, kind, payload) -> None:
        self.events.append((kind, dict(payload)))

    def kinds(self) -> list[Any]:
        return [kind for kind, _ in self.events]


@pytest.fixture
def settings(tmp_path):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / "resort.db",
        admin_token=None,
        timezone="UTC",
        telegram_bot_token="test-bot-token",
        telegram_operator_chat_id=OPERATOR_CHAT_ID,
        telegram_webhook_secret=None,
        menu_page_size=8,
        seed_demo_data=True,
    )


@pytest.fixture
def repository(settings) -> DataRepository:
    repo = DataRepository(settings)
    repo.initialize_database()
    repo.seed_demo_data()
    repo.ensure_resort_settings()
    return repo


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def booking_service(repository, sink, settings) -> BookingService:
    return BookingService(
        repository=repository,
        notifier=sink,
        settings=settings,
        today=lambda: TODAY,
        now=lambda: FIXED_NOW,
    )


@pytest.fixture
def order_service(repository, sink) -> OrderService:
    return OrderService(repository=repository, notifier=sink, now=lambda: FIXED_NOW)


@pytest.fixture
def router(booking_service, order_service, repository, gateway, settings) -> EventRouter:
    return EventRouter(
        booking_service=booking_service,
        order_service=order_service,
        repository=repository,
        gateway=gateway,
        operator_chat_id=OPERATOR_CHAT_ID,
        settings=settings,
    )


@pytest.fixture
def insert_booking(repository):
    """Write a booking straight into the store, bypassing the lifecycle checks."""

    def _insert(
        house_id: str,
        start_date: date,
        end_date: date,
        status: BookingStatus = BookingStatus.CONFIRMED,
        guest_name: str = "Bold",
        total_price: Decimal = Decimal("100"),
    ) -> Booking:
        booking = Booking(
            booking_id=new_document_id(),
            house_id=house_id,
            house_name=house_id,
            start_date=start_date,
            end_date=end_date,
            guest_count=2,
            guest_contact=GuestContact(name=guest_name, phone="99112233"),
            total_price=total_price,
            status=status,
            created_at=FIXED_NOW,
            origin=BookingOrigin.SELF_SERVICE,
        )
        repository.insert_booking(booking)
        return booking

    return _insert
