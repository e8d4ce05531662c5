"""Double-booking guard over half-open stay ranges."""

from __future__ import annotations

from datetime import date
from typing import Optional

from resort.domain.models import Booking, BookingStatus
from resort.repository.data_repository import DataRepository
from resort.utils.logger import get_logger


logger = get_logger(__name__)

BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open intersection; touching boundaries do not overlap."""
    return a_start < b_end and a_end > b_start


class AvailabilityService:
    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def find_conflict(
        self,
        house_id: str,
        start_date: date,
        end_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[Booking]:
        """Return the first pending or confirmed booking that overlaps the stay."""
        # Store failures propagate: a false "free" answer would double-book.
        bookings = self._repository.list_bookings_for_house(house_id, BLOCKING_STATUSES)
        for booking in bookings:
            if exclude_booking_id is not None and booking.booking_id == exclude_booking_id:
                continue
            if intervals_overlap(booking.start_date, booking.end_date, start_date, end_date):
                logger.info(
                    "House %s already held by booking %s for %s..%s",
                    house_id,
                    booking.booking_id,
                    booking.start_date.isoformat(),
                    booking.end_date.isoformat(),
                )
                return booking
        return None

    def has_overlap(
        self,
        house_id: str,
        start_date: date,
        end_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return self.find_conflict(house_id, start_date, end_date, exclude_booking_id) is not None
