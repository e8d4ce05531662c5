"""Booking lifecycle: creation, status transitions, occupancy and daily views."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from resort.domain.errors import (
    BookingBlockedError,
    CapacityExceededError,
    InvalidPriceError,
    InvalidTransitionError,
    NotFoundError,
    UnavailableError,
)
from resort.domain.models import (
    Booking,
    BookingControl,
    BookingOrigin,
    BookingStatus,
    DailyReport,
    DateRange,
    GuestContact,
    House,
    Occupancy,
)
from resort.domain.transitions import validate_booking_transition
from resort.repository.data_repository import DataRepository, new_document_id
from resort.services.availability_service import BLOCKING_STATUSES, AvailabilityService
from resort.services.notification_service import NotificationKind, NotificationSink
from resort.services.pricing_service import price
from resort.utils.config import Settings, get_settings
from resort.utils.logger import get_logger


logger = get_logger(__name__)

Clock = Callable[[], date]


def local_today(settings: Settings) -> Clock:
    """Clock returning the calendar date at the resort."""
    zone = ZoneInfo(settings.timezone)

    def today() -> date:
        return datetime.now(zone).date()

    return today


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    """Creates bookings and moves them through pending → confirmed → cancelled."""

    def __init__(
        self,
        repository: DataRepository,
        notifier: NotificationSink,
        settings: Optional[Settings] = None,
        availability: Optional[AvailabilityService] = None,
        today: Optional[Clock] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._settings = settings or get_settings()
        self._availability = availability or AvailabilityService(repository)
        self._today = today or local_today(self._settings)
        self._now = now or utc_now

    def today(self) -> date:
        return self._today()

    def _require_house(self, house_id: str) -> House:
        house = self._repository.get_house(house_id)
        if house is None:
            raise NotFoundError(f"House {house_id} was not found")
        return house

    def get(self, booking_id: str) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} was not found")
        return booking

    def create(
        self,
        house_id: str,
        date_range: DateRange,
        guest_count: int,
        contact: GuestContact,
        origin: BookingOrigin = BookingOrigin.SELF_SERVICE,
        custom_price: Optional[Decimal] = None,
        barter_description: Optional[str] = None,
    ) -> Booking:
        """
        Validate, price and persist a booking.

        Self-service bookings wait for operator approval. Staff bookings are
        confirmed immediately and mark the house occupied when the stay covers
        today. Nothing is written when any check fails.
        """
        house = self._require_house(house_id)
        if guest_count < 1:
            raise CapacityExceededError("At least one guest is required")
        if guest_count > house.capacity:
            raise CapacityExceededError(
                f"{house.name} sleeps at most {house.capacity} guests; {guest_count} requested"
            )

        if origin is BookingOrigin.SELF_SERVICE:
            resort = self._repository.get_resort_settings()
            if resort is not None and resort.booking_control.blocks(date_range):
                raise BookingBlockedError(
                    f"Online booking is closed{_describe_window(resort.booking_control)}"
                )

        breakdown = price(house, date_range.start, date_range.end)
        total_price = breakdown.total_price
        if origin is BookingOrigin.STAFF_BARTER:
            total_price = Decimal("0")
        elif origin is BookingOrigin.STAFF_MANUAL and custom_price is not None:
            if custom_price < 0:
                raise InvalidPriceError(f"Custom price must not be negative, got {custom_price}")
            total_price = custom_price

        conflict = self._availability.find_conflict(house.house_id, date_range.start, date_range.end)
        if conflict is not None:
            raise _already_booked(house, conflict)

        status = (
            BookingStatus.PENDING
            if origin is BookingOrigin.SELF_SERVICE
            else BookingStatus.CONFIRMED
        )
        booking = Booking(
            booking_id=new_document_id(),
            house_id=house.house_id,
            house_name=house.name,
            start_date=date_range.start,
            end_date=date_range.end,
            guest_count=guest_count,
            guest_contact=contact,
            total_price=total_price,
            status=status,
            created_at=self._now(),
            origin=origin,
            barter_description=(
                barter_description if origin is BookingOrigin.STAFF_BARTER else None
            ),
        )
        # Re-checked atomically with the insert; the read above only fails fast.
        conflict = self._repository.insert_booking_if_free(booking, BLOCKING_STATUSES)
        if conflict is not None:
            raise _already_booked(house, conflict)
        logger.info(
            "Booking %s created house=%s origin=%s status=%s total=%s",
            booking.booking_id,
            house.house_id,
            origin.value,
            status.value,
            total_price,
        )

        if status is BookingStatus.CONFIRMED:
            self._occupy_if_current(booking)
        self._notifier.notify(NotificationKind.BOOKING_CREATED, {"booking": booking})
        return booking

    def transition(self, booking_id: str, new_status: BookingStatus) -> Booking:
        """Apply one legal status edge; a repeated or stale request raises InvalidTransitionError."""
        booking = self.get(booking_id)
        validate_booking_transition(booking.status, new_status)

        if not self._repository.update_booking_status(booking_id, booking.status, new_status):
            current = self.get(booking_id)
            logger.info(
                "Booking %s changed concurrently to %s; %s not applied",
                booking_id,
                current.status.value,
                new_status.value,
            )
            raise InvalidTransitionError("Booking", current.status.value, new_status.value)

        updated = replace(booking, status=new_status, version=booking.version + 1)
        logger.info(
            "Booking %s moved %s -> %s",
            booking_id,
            booking.status.value,
            new_status.value,
        )

        if new_status is BookingStatus.CONFIRMED:
            self._occupy_if_current(updated)
            self._notifier.notify(NotificationKind.BOOKING_CONFIRMED, {"booking": updated})
        elif new_status is BookingStatus.CANCELLED:
            self._release_occupancy(updated)
            self._notifier.notify(NotificationKind.BOOKING_CANCELLED, {"booking": updated})
        return updated

    def checkout(self, house_id: str) -> House:
        """Clear the occupancy side-channel; booking history is left untouched."""
        house = self._require_house(house_id)
        self._repository.set_house_occupancy(house_id, None)
        logger.info("House %s checked out", house_id)
        return replace(house, occupancy=None)

    def list_pending(self) -> list[Booking]:
        return self._repository.list_bookings_by_status([BookingStatus.PENDING])

    def today_movements(self, day: Optional[date] = None) -> tuple[list[Booking], list[Booking]]:
        """Confirmed check-ins and check-outs for `day` (default: today at the resort)."""
        day = day or self.today()
        confirmed = self._repository.list_bookings_by_status([BookingStatus.CONFIRMED])
        arrivals = [booking for booking in confirmed if booking.start_date == day]
        departures = [booking for booking in confirmed if booking.end_date == day]
        return arrivals, departures

    def daily_report(self, day: Optional[date] = None) -> DailyReport:
        day = day or self.today()
        confirmed = self._repository.list_bookings_by_status([BookingStatus.CONFIRMED])
        arrivals = tuple(booking for booking in confirmed if booking.start_date == day)
        departures = tuple(booking for booking in confirmed if booking.end_date == day)
        staying = [booking for booking in confirmed if booking.covers(day)]
        return DailyReport(
            day=day,
            arrivals=arrivals,
            departures=departures,
            occupied_house_ids=tuple(sorted({booking.house_id for booking in staying})),
            revenue=sum((booking.total_price for booking in staying), Decimal("0")),
        )

    def _occupy_if_current(self, booking: Booking) -> None:
        if not booking.covers(self.today()):
            return
        self._repository.set_house_occupancy(
            booking.house_id,
            Occupancy(
                guest_name=booking.guest_contact.name,
                guest_phone=booking.guest_contact.phone,
                booking_id=booking.booking_id,
                checkout_date=booking.end_date,
            ),
        )
        logger.info("House %s occupied by booking %s", booking.house_id, booking.booking_id)

    def _release_occupancy(self, booking: Booking) -> None:
        house = self._repository.get_house(booking.house_id)
        if house is None or house.occupancy is None:
            return
        if house.occupancy.booking_id == booking.booking_id:
            self._repository.set_house_occupancy(booking.house_id, None)
            logger.info("House %s released by cancelled booking %s", house.house_id, booking.booking_id)


def _describe_window(control: BookingControl) -> str:
    start, end = control.block_start_date, control.block_end_date
    if start and end:
        return f" from {start.isoformat()} to {end.isoformat()}"
    if start:
        return f" from {start.isoformat()}"
    if end:
        return f" until {end.isoformat()}"
    return ""


def _already_booked(house: House, conflict: Booking) -> UnavailableError:
    return UnavailableError(
        f"{house.name} is already booked from {conflict.start_date.isoformat()}"
        f" to {conflict.end_date.isoformat()}"
    )
