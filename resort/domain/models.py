"""Domain models for house reservations, kitchen orders and resort settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class BookingOrigin(str, Enum):
    SELF_SERVICE = "self-service"
    STAFF_MANUAL = "staff-manual"
    STAFF_BARTER = "staff-barter"


class DeliveryType(str, Enum):
    HOUSE_DELIVERY = "house-delivery"
    PICKUP = "pickup"


def weekday_index(day: date) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class Discount:
    """Conditional nightly price, scoped by calendar bounds and weekdays.

    `start_date` and `end_date` are inclusive. An empty `valid_weekdays` set
    means every weekday qualifies.
    """

    discounted_price: Decimal
    is_active: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    valid_weekdays: frozenset[int] = field(default_factory=frozenset)
    label: str = ""

    def applies_to(self, night: date) -> bool:
        if not self.is_active:
            return False
        if self.start_date is not None and night < self.start_date:
            return False
        if self.end_date is not None and night > self.end_date:
            return False
        if self.valid_weekdays and weekday_index(night) not in self.valid_weekdays:
            return False
        return True


@dataclass(frozen=True)
class Occupancy:
    """Who is currently staying in a house."""

    guest_name: str
    guest_phone: str
    booking_id: str
    checkout_date: date


@dataclass(frozen=True)
class House:
    house_id: str
    name: str
    base_price: Decimal
    capacity: int
    house_number: Optional[int] = None
    discount: Optional[Discount] = None
    occupancy: Optional[Occupancy] = None


@dataclass(frozen=True)
class GuestContact:
    name: str
    phone: str = ""
    email: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Half-open stay range: nights `start <= night < end`."""

    start: date
    end: date


@dataclass(frozen=True)
class PriceBreakdown:
    nights: int
    base_total: Decimal
    discounted_nights: int
    discount_amount: Decimal
    total_price: Decimal

    def to_dict(self) -> dict[str, int | str]:
        return {
            "nights": self.nights,
            "base_total": str(self.base_total),
            "discounted_nights": self.discounted_nights,
            "discount_amount": str(self.discount_amount),
            "total_price": str(self.total_price),
        }


@dataclass(frozen=True)
class Booking:
    booking_id: str
    house_id: str
    house_name: str
    start_date: date
    end_date: date
    guest_count: int
    guest_contact: GuestContact
    total_price: Decimal
    status: BookingStatus
    created_at: datetime
    origin: BookingOrigin
    barter_description: Optional[str] = None
    version: int = 0

    def covers(self, day: date) -> bool:
        return self.start_date <= day < self.end_date


@dataclass(frozen=True)
class OrderItem:
    """Snapshot of a menu item at order time, not a live reference."""

    name: str
    unit_price: Decimal
    quantity: int
    menu_item_id: Optional[str] = None
    notes: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Order:
    order_id: str
    items: tuple[OrderItem, ...]
    total_amount: Decimal
    status: OrderStatus
    delivery_type: DeliveryType
    created_at: datetime
    updated_at: datetime
    house_ref: Optional[str] = None
    house_name: Optional[str] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    note: Optional[str] = None
    version: int = 0

    @property
    def short_id(self) -> str:
        return self.order_id[-6:]


@dataclass(frozen=True)
class MenuCategory:
    category_id: str
    name: str
    order: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class MenuItem:
    item_id: str
    category_id: str
    name: str
    price: Decimal
    description: str = ""
    is_available: bool = True


@dataclass(frozen=True)
class TelegramSettings:
    bot_token: Optional[str] = None
    operator_chat_id: Optional[str] = None
    is_active: bool = False
    webhook_secret: Optional[str] = None


@dataclass(frozen=True)
class ContactInfo:
    phone: str = ""
    email: str = ""
    address: str = ""


@dataclass(frozen=True)
class MapLocation:
    lat: float
    lng: float


@dataclass(frozen=True)
class PaymentInfo:
    bank_name: str
    account_number: str
    account_name: str
    qr_image_url: Optional[str] = None


@dataclass(frozen=True)
class BookingControl:
    """Window during which guests cannot self-book."""

    is_blocked: bool = False
    block_start_date: Optional[date] = None
    block_end_date: Optional[date] = None

    def blocks(self, stay: DateRange) -> bool:
        if not self.is_blocked:
            return False
        if self.block_start_date is None and self.block_end_date is None:
            return True
        window_start = self.block_start_date or date.min
        window_end = self.block_end_date or date.max
        return stay.start <= window_end and stay.end > window_start


@dataclass(frozen=True)
class RestaurantRules:
    is_active: bool = True
    delivery_enabled: bool = True
    min_order_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class ResortSettings:
    """The single settings document shared by the web console and the bot."""

    telegram: TelegramSettings = field(default_factory=TelegramSettings)
    contact: ContactInfo = field(default_factory=ContactInfo)
    location: Optional[MapLocation] = None
    payment: Optional[PaymentInfo] = None
    booking_control: BookingControl = field(default_factory=BookingControl)
    restaurant: RestaurantRules = field(default_factory=RestaurantRules)


@dataclass(frozen=True)
class DailyReport:
    day: date
    arrivals: tuple[Booking, ...]
    departures: tuple[Booking, ...]
    occupied_house_ids: tuple[str, ...]
    revenue: Decimal
