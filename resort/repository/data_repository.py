"""Repository layer: a small document store on top of SQLite.

Every collection keeps the full record as a JSON document next to the few
columns needed for lookups (`house_id`, `status`, `category_id`). Status and
version live only in their columns so that status changes can be applied as
a single compare-and-swap statement.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from resort.domain.errors import StoreUnavailableError
from resort.domain.models import (
    Booking,
    BookingControl,
    BookingOrigin,
    BookingStatus,
    ContactInfo,
    DeliveryType,
    Discount,
    GuestContact,
    House,
    MapLocation,
    MenuCategory,
    MenuItem,
    Occupancy,
    Order,
    OrderItem,
    OrderStatus,
    PaymentInfo,
    ResortSettings,
    RestaurantRules,
    TelegramSettings,
)
from resort.utils.config import Settings, get_settings
from resort.utils.logger import get_logger


logger = get_logger(__name__)

SETTINGS_DOCUMENT_ID = "general"


def new_document_id() -> str:
    return uuid.uuid4().hex


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return _decimal(value) if value is not None else None


# --- document codecs -------------------------------------------------------


def _discount_to_document(discount: Discount) -> dict[str, Any]:
    return {
        "discounted_price": str(discount.discounted_price),
        "is_active": discount.is_active,
        "start_date": _iso(discount.start_date),
        "end_date": _iso(discount.end_date),
        "valid_weekdays": sorted(discount.valid_weekdays),
        "label": discount.label,
    }


def _discount_from_document(document: dict[str, Any]) -> Discount:
    return Discount(
        discounted_price=_decimal(document["discounted_price"]),
        is_active=bool(document.get("is_active", True)),
        start_date=_parse_date(document.get("start_date")),
        end_date=_parse_date(document.get("end_date")),
        valid_weekdays=frozenset(int(day) for day in document.get("valid_weekdays") or ()),
        label=str(document.get("label") or ""),
    )


def _occupancy_to_document(occupancy: Occupancy) -> dict[str, Any]:
    return {
        "guest_name": occupancy.guest_name,
        "guest_phone": occupancy.guest_phone,
        "booking_id": occupancy.booking_id,
        "checkout_date": occupancy.checkout_date.isoformat(),
    }


def _occupancy_from_document(document: dict[str, Any]) -> Occupancy:
    return Occupancy(
        guest_name=str(document["guest_name"]),
        guest_phone=str(document.get("guest_phone") or ""),
        booking_id=str(document["booking_id"]),
        checkout_date=date.fromisoformat(document["checkout_date"]),
    )


def _house_to_document(house: House) -> dict[str, Any]:
    return {
        "name": house.name,
        "base_price": str(house.base_price),
        "capacity": house.capacity,
        "house_number": house.house_number,
        "discount": _discount_to_document(house.discount) if house.discount else None,
    }


def _house_from_row(row: sqlite3.Row) -> House:
    document = json.loads(row["document"])
    occupancy = json.loads(row["occupancy"]) if row["occupancy"] else None
    return House(
        house_id=str(row["id"]),
        name=str(document["name"]),
        base_price=_decimal(document["base_price"]),
        capacity=int(document["capacity"]),
        house_number=document.get("house_number"),
        discount=(
            _discount_from_document(document["discount"])
            if document.get("discount")
            else None
        ),
        occupancy=_occupancy_from_document(occupancy) if occupancy else None,
    )


def _booking_to_document(booking: Booking) -> dict[str, Any]:
    contact = booking.guest_contact
    return {
        "house_name": booking.house_name,
        "guest_count": booking.guest_count,
        "guest_contact": {
            "name": contact.name,
            "phone": contact.phone,
            "email": contact.email,
            "user_id": contact.user_id,
        },
        "total_price": str(booking.total_price),
        "created_at": booking.created_at.isoformat(),
        "origin": booking.origin.value,
        "barter_description": booking.barter_description,
    }


def _booking_from_row(row: sqlite3.Row) -> Booking:
    document = json.loads(row["document"])
    contact = document.get("guest_contact") or {}
    return Booking(
        booking_id=str(row["id"]),
        house_id=str(row["house_id"]),
        house_name=str(document["house_name"]),
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        guest_count=int(document["guest_count"]),
        guest_contact=GuestContact(
            name=str(contact.get("name") or ""),
            phone=str(contact.get("phone") or ""),
            email=contact.get("email"),
            user_id=contact.get("user_id"),
        ),
        total_price=_decimal(document["total_price"]),
        status=BookingStatus(row["status"]),
        created_at=_parse_datetime(document["created_at"]),
        origin=BookingOrigin(document["origin"]),
        barter_description=document.get("barter_description"),
        version=int(row["version"]),
    )


def _order_to_document(order: Order) -> dict[str, Any]:
    return {
        "items": [
            {
                "name": item.name,
                "unit_price": str(item.unit_price),
                "quantity": item.quantity,
                "menu_item_id": item.menu_item_id,
                "notes": item.notes,
            }
            for item in order.items
        ],
        "total_amount": str(order.total_amount),
        "delivery_type": order.delivery_type.value,
        "house_ref": order.house_ref,
        "house_name": order.house_name,
        "guest_name": order.guest_name,
        "guest_phone": order.guest_phone,
        "note": order.note,
        "created_at": order.created_at.isoformat(),
    }


def _order_from_row(row: sqlite3.Row) -> Order:
    document = json.loads(row["document"])
    return Order(
        order_id=str(row["id"]),
        items=tuple(
            OrderItem(
                name=str(item["name"]),
                unit_price=_decimal(item["unit_price"]),
                quantity=int(item["quantity"]),
                menu_item_id=item.get("menu_item_id"),
                notes=item.get("notes"),
            )
            for item in document["items"]
        ),
        total_amount=_decimal(document["total_amount"]),
        status=OrderStatus(row["status"]),
        delivery_type=DeliveryType(document["delivery_type"]),
        created_at=_parse_datetime(document["created_at"]),
        updated_at=_parse_datetime(row["updated_at"]),
        house_ref=document.get("house_ref"),
        house_name=document.get("house_name"),
        guest_name=document.get("guest_name"),
        guest_phone=document.get("guest_phone"),
        note=document.get("note"),
        version=int(row["version"]),
    )


def _settings_to_document(resort: ResortSettings) -> dict[str, Any]:
    return {
        "telegram": {
            "bot_token": resort.telegram.bot_token,
            "operator_chat_id": resort.telegram.operator_chat_id,
            "is_active": resort.telegram.is_active,
            "webhook_secret": resort.telegram.webhook_secret,
        },
        "contact": {
            "phone": resort.contact.phone,
            "email": resort.contact.email,
            "address": resort.contact.address,
        },
        "location": (
            {"lat": resort.location.lat, "lng": resort.location.lng}
            if resort.location
            else None
        ),
        "payment": (
            {
                "bank_name": resort.payment.bank_name,
                "account_number": resort.payment.account_number,
                "account_name": resort.payment.account_name,
                "qr_image_url": resort.payment.qr_image_url,
            }
            if resort.payment
            else None
        ),
        "booking_control": {
            "is_blocked": resort.booking_control.is_blocked,
            "block_start_date": _iso(resort.booking_control.block_start_date),
            "block_end_date": _iso(resort.booking_control.block_end_date),
        },
        "restaurant": {
            "is_active": resort.restaurant.is_active,
            "delivery_enabled": resort.restaurant.delivery_enabled,
            "min_order_amount": (
                str(resort.restaurant.min_order_amount)
                if resort.restaurant.min_order_amount is not None
                else None
            ),
        },
    }


def _settings_from_document(document: dict[str, Any]) -> ResortSettings:
    telegram = document.get("telegram") or {}
    contact = document.get("contact") or {}
    location = document.get("location")
    payment = document.get("payment")
    control = document.get("booking_control") or {}
    restaurant = document.get("restaurant") or {}
    return ResortSettings(
        telegram=TelegramSettings(
            bot_token=telegram.get("bot_token"),
            operator_chat_id=(
                str(telegram["operator_chat_id"])
                if telegram.get("operator_chat_id") is not None
                else None
            ),
            is_active=bool(telegram.get("is_active", False)),
            webhook_secret=telegram.get("webhook_secret"),
        ),
        contact=ContactInfo(
            phone=str(contact.get("phone") or ""),
            email=str(contact.get("email") or ""),
            address=str(contact.get("address") or ""),
        ),
        location=(
            MapLocation(lat=float(location["lat"]), lng=float(location["lng"]))
            if location
            else None
        ),
        payment=(
            PaymentInfo(
                bank_name=str(payment["bank_name"]),
                account_number=str(payment["account_number"]),
                account_name=str(payment["account_name"]),
                qr_image_url=payment.get("qr_image_url"),
            )
            if payment
            else None
        ),
        booking_control=BookingControl(
            is_blocked=bool(control.get("is_blocked", False)),
            block_start_date=_parse_date(control.get("block_start_date")),
            block_end_date=_parse_date(control.get("block_end_date")),
        ),
        restaurant=RestaurantRules(
            is_active=bool(restaurant.get("is_active", True)),
            delivery_enabled=bool(restaurant.get("delivery_enabled", True)),
            min_order_amount=_optional_decimal(restaurant.get("min_order_amount")),
        ),
    )


def _placeholders(values: Iterable[Any]) -> str:
    return ",".join("?" for _ in values)


class DataRepository:
    """Document-store access so lifecycle services stay storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        return connection

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction; store faults fail closed."""
        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Document store unavailable: {exc}") from exc
        try:
            with connection:
                yield connection
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Document store unavailable: {exc}") from exc
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create collections and lookup indexes."""
        with self._session() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS houses (
                    id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    occupancy TEXT
                );

                CREATE TABLE IF NOT EXISTS bookings (
                    id TEXT PRIMARY KEY,
                    house_id TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT NOT NULL,
                    status TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    document TEXT NOT NULL,
                    CHECK (start_date < end_date)
                );

                CREATE TABLE IF NOT EXISTS orders (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    document TEXT NOT NULL,
                    CHECK (updated_at >= created_at)
                );

                CREATE TABLE IF NOT EXISTS menu_categories (
                    id TEXT PRIMARY KEY,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    document TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS menu_items (
                    id TEXT PRIMARY KEY,
                    category_id TEXT NOT NULL,
                    is_available INTEGER NOT NULL DEFAULT 1,
                    document TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS settings (
                    id TEXT PRIMARY KEY,
                    document TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_bookings_house_status
                ON bookings(house_id, status);

                CREATE INDEX IF NOT EXISTS idx_bookings_status_dates
                ON bookings(status, start_date, end_date);

                CREATE INDEX IF NOT EXISTS idx_orders_status
                ON orders(status);

                CREATE INDEX IF NOT EXISTS idx_menu_items_category
                ON menu_items(category_id, is_available);
                """
            )
        logger.info("Document store initialized at %s", self._db_path)

    def seed_demo_data(self) -> None:
        """Seed houses and a small menu only when the store is empty."""
        if self.list_houses():
            logger.info("Demo data already present; skipping seed")
            return

        houses = [
            House(
                house_id="house-1",
                name="Pine Cabin",
                house_number=1,
                base_price=Decimal("100"),
                capacity=4,
                discount=Discount(
                    discounted_price=Decimal("70"),
                    valid_weekdays=frozenset({6}),
                    label="Saturday deal",
                ),
            ),
            House(
                house_id="house-2",
                name="Lake House",
                house_number=2,
                base_price=Decimal("180"),
                capacity=6,
            ),
            House(
                house_id="house-3",
                name="Ger Suite",
                house_number=3,
                base_price=Decimal("60"),
                capacity=2,
            ),
        ]
        for house in houses:
            self.save_house(house)

        categories = [
            MenuCategory(category_id="cat-breakfast", name="Breakfast", order=1),
            MenuCategory(category_id="cat-mains", name="Mains", order=2),
            MenuCategory(category_id="cat-drinks", name="Drinks", order=3),
        ]
        for category in categories:
            self.save_menu_category(category)

        items = [
            MenuItem("item-omelette", "cat-breakfast", "Omelette", Decimal("12"), "Three eggs"),
            MenuItem("item-khuushuur", "cat-mains", "Khuushuur", Decimal("15"), "Fried meat pastry"),
            MenuItem("item-buuz", "cat-mains", "Buuz", Decimal("14"), "Steamed dumplings"),
            MenuItem("item-suutei-tsai", "cat-drinks", "Suutei tsai", Decimal("4"), "Milk tea"),
        ]
        for item in items:
            self.save_menu_item(item)
        logger.info("Demo seed completed with %s houses and %s menu items", len(houses), len(items))

    # --- houses -------------------------------------------------------------

    def save_house(self, house: House) -> None:
        occupancy = (
            json.dumps(_occupancy_to_document(house.occupancy)) if house.occupancy else None
        )
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO houses (id, document, occupancy)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    document = excluded.document,
                    occupancy = excluded.occupancy;
                """,
                (house.house_id, json.dumps(_house_to_document(house)), occupancy),
            )

    def get_house(self, house_id: str) -> Optional[House]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT id, document, occupancy FROM houses WHERE id = ?;",
                (house_id,),
            ).fetchone()
        return _house_from_row(row) if row is not None else None

    def list_houses(self) -> list[House]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT id, document, occupancy FROM houses ORDER BY id ASC;"
            ).fetchall()
        return [_house_from_row(row) for row in rows]

    def set_house_occupancy(self, house_id: str, occupancy: Optional[Occupancy]) -> bool:
        """Overwrite the occupancy side-channel; last writer wins."""
        payload = json.dumps(_occupancy_to_document(occupancy)) if occupancy else None
        with self._session() as conn:
            cursor = conn.execute(
                "UPDATE houses SET occupancy = ? WHERE id = ?;",
                (payload, house_id),
            )
            return cursor.rowcount == 1

    # --- bookings -----------------------------------------------------------

    def _insert_booking_row(self, conn: sqlite3.Connection, booking: Booking) -> None:
        conn.execute(
            """
            INSERT INTO bookings (id, house_id, start_date, end_date, status, version, document)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                booking.booking_id,
                booking.house_id,
                booking.start_date.isoformat(),
                booking.end_date.isoformat(),
                booking.status.value,
                booking.version,
                json.dumps(_booking_to_document(booking)),
            ),
        )

    def insert_booking(self, booking: Booking) -> None:
        with self._session() as conn:
            self._insert_booking_row(conn, booking)

    def insert_booking_if_free(
        self,
        booking: Booking,
        blocking_statuses: Iterable[BookingStatus],
    ) -> Optional[Booking]:
        """
        Insert `booking` unless a blocking booking overlaps its nights.

        The overlap read and the insert share one IMMEDIATE transaction, so
        concurrent writers for the same house serialize on the database lock.
        Returns the conflicting booking instead of inserting when one exists.
        """
        status_values = [status.value for status in blocking_statuses]
        with self._session() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            row = conn.execute(
                f"""
                SELECT * FROM bookings
                WHERE house_id = ?
                  AND status IN ({_placeholders(status_values)})
                  AND start_date < ?
                  AND end_date > ?
                ORDER BY start_date ASC, id ASC
                LIMIT 1;
                """,
                (
                    booking.house_id,
                    *status_values,
                    booking.end_date.isoformat(),
                    booking.start_date.isoformat(),
                ),
            ).fetchone()
            if row is not None:
                return _booking_from_row(row)
            self._insert_booking_row(conn, booking)
        return None

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM bookings WHERE id = ?;",
                (booking_id,),
            ).fetchone()
        return _booking_from_row(row) if row is not None else None

    def list_bookings_for_house(
        self,
        house_id: str,
        statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        status_values = [status.value for status in statuses]
        if not status_values:
            return []
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM bookings
                WHERE house_id = ? AND status IN ({_placeholders(status_values)})
                ORDER BY start_date ASC, id ASC;
                """,
                (house_id, *status_values),
            ).fetchall()
        return [_booking_from_row(row) for row in rows]

    def list_bookings_by_status(self, statuses: Iterable[BookingStatus]) -> list[Booking]:
        status_values = [status.value for status in statuses]
        if not status_values:
            return []
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM bookings
                WHERE status IN ({_placeholders(status_values)})
                ORDER BY start_date ASC, id ASC;
                """,
                tuple(status_values),
            ).fetchall()
        return [_booking_from_row(row) for row in rows]

    def update_booking_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
    ) -> bool:
        """Compare-and-swap on status; False when the expected status no longer holds."""
        with self._session() as conn:
            cursor = conn.execute(
                """
                UPDATE bookings
                SET status = ?, version = version + 1
                WHERE id = ? AND status = ?;
                """,
                (new_status.value, booking_id, expected_status.value),
            )
            return cursor.rowcount == 1

    # --- orders -------------------------------------------------------------

    def insert_order(self, order: Order) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO orders (id, status, version, created_at, updated_at, document)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    order.order_id,
                    order.status.value,
                    order.version,
                    order.created_at.isoformat(),
                    order.updated_at.isoformat(),
                    json.dumps(_order_to_document(order)),
                ),
            )

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?;", (order_id,)).fetchone()
        return _order_from_row(row) if row is not None else None

    def list_orders(self, statuses: Optional[Iterable[OrderStatus]] = None) -> list[Order]:
        with self._session() as conn:
            if statuses is None:
                rows = conn.execute(
                    "SELECT * FROM orders ORDER BY created_at DESC, id ASC;"
                ).fetchall()
            else:
                status_values = [status.value for status in statuses]
                if not status_values:
                    return []
                rows = conn.execute(
                    f"""
                    SELECT * FROM orders
                    WHERE status IN ({_placeholders(status_values)})
                    ORDER BY created_at DESC, id ASC;
                    """,
                    tuple(status_values),
                ).fetchall()
        return [_order_from_row(row) for row in rows]

    def update_order_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        updated_at: datetime,
    ) -> bool:
        """Compare-and-swap on status, stamping `updated_at` on success."""
        with self._session() as conn:
            cursor = conn.execute(
                """
                UPDATE orders
                SET status = ?, version = version + 1, updated_at = MAX(created_at, ?)
                WHERE id = ? AND status = ?;
                """,
                (new_status.value, updated_at.isoformat(), order_id, expected_status.value),
            )
            return cursor.rowcount == 1

    # --- menu ---------------------------------------------------------------

    def save_menu_category(self, category: MenuCategory) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO menu_categories (id, sort_order, is_active, document)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    sort_order = excluded.sort_order,
                    is_active = excluded.is_active,
                    document = excluded.document;
                """,
                (
                    category.category_id,
                    category.order,
                    int(category.is_active),
                    json.dumps({"name": category.name}),
                ),
            )

    def _category_from_row(self, row: sqlite3.Row) -> MenuCategory:
        document = json.loads(row["document"])
        return MenuCategory(
            category_id=str(row["id"]),
            name=str(document["name"]),
            order=int(row["sort_order"]),
            is_active=bool(row["is_active"]),
        )

    def get_menu_category(self, category_id: str) -> Optional[MenuCategory]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM menu_categories WHERE id = ?;",
                (category_id,),
            ).fetchone()
        return self._category_from_row(row) if row is not None else None

    def list_menu_categories(self, active_only: bool = True) -> list[MenuCategory]:
        query = "SELECT * FROM menu_categories"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY sort_order ASC, id ASC;"
        with self._session() as conn:
            rows = conn.execute(query).fetchall()
        return [self._category_from_row(row) for row in rows]

    def save_menu_item(self, item: MenuItem) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO menu_items (id, category_id, is_available, document)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    category_id = excluded.category_id,
                    is_available = excluded.is_available,
                    document = excluded.document;
                """,
                (
                    item.item_id,
                    item.category_id,
                    int(item.is_available),
                    json.dumps(
                        {
                            "name": item.name,
                            "price": str(item.price),
                            "description": item.description,
                        }
                    ),
                ),
            )

    def list_menu_items(self, category_id: str, available_only: bool = True) -> list[MenuItem]:
        query = "SELECT * FROM menu_items WHERE category_id = ?"
        if available_only:
            query += " AND is_available = 1"
        query += " ORDER BY id ASC;"
        with self._session() as conn:
            rows = conn.execute(query, (category_id,)).fetchall()
        items = []
        for row in rows:
            document = json.loads(row["document"])
            items.append(
                MenuItem(
                    item_id=str(row["id"]),
                    category_id=str(row["category_id"]),
                    name=str(document["name"]),
                    price=_decimal(document["price"]),
                    description=str(document.get("description") or ""),
                    is_available=bool(row["is_available"]),
                )
            )
        return items

    # --- settings record ----------------------------------------------------

    def get_resort_settings(self) -> Optional[ResortSettings]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT document FROM settings WHERE id = ?;",
                (SETTINGS_DOCUMENT_ID,),
            ).fetchone()
        if row is None:
            return None
        return _settings_from_document(json.loads(row["document"]))

    def save_resort_settings(self, resort: ResortSettings) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO settings (id, document) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET document = excluded.document;
                """,
                (SETTINGS_DOCUMENT_ID, json.dumps(_settings_to_document(resort))),
            )

    def ensure_resort_settings(self) -> ResortSettings:
        """Return the settings record, seeding bot credentials from the environment."""
        existing = self.get_resort_settings()
        if existing is not None:
            return existing
        token = self._settings.telegram_bot_token
        seeded = ResortSettings(
            telegram=TelegramSettings(
                bot_token=token,
                operator_chat_id=self._settings.telegram_operator_chat_id,
                is_active=token is not None,
                webhook_secret=self._settings.telegram_webhook_secret,
            )
        )
        self.save_resort_settings(seeded)
        logger.info("Settings record seeded (telegram active=%s)", seeded.telegram.is_active)
        return seeded
