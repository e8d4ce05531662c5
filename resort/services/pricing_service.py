"""Nightly pricing under a calendar- and weekday-scoped discount."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator, Optional

from resort.domain.errors import InvalidRangeError, NotFoundError
from resort.domain.models import House, PriceBreakdown
from resort.repository.data_repository import DataRepository
from resort.utils.config import Settings, get_settings
from resort.utils.logger import get_logger


logger = get_logger(__name__)


def iter_nights(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every night in the half-open range [start_date, end_date)."""
    night = start_date
    while night < end_date:
        yield night
        night += timedelta(days=1)


def price(house: House, start_date: date, end_date: date) -> PriceBreakdown:
    """
    Price a stay night by night.

    Deterministic for any range: discount activity depends only on the nights
    passed in, never on the wall clock.
    """
    if end_date <= start_date:
        raise InvalidRangeError(
            f"Check-out {end_date.isoformat()} must be after check-in {start_date.isoformat()}"
        )

    nights = 0
    discounted_nights = 0
    discount_amount = Decimal("0")
    for night in iter_nights(start_date, end_date):
        nights += 1
        if house.discount is not None and house.discount.applies_to(night):
            discounted_nights += 1
            discount_amount += house.base_price - house.discount.discounted_price

    base_total = house.base_price * nights
    # A discount priced above base must not turn into a surcharge.
    discount_amount = max(Decimal("0"), min(discount_amount, base_total))
    return PriceBreakdown(
        nights=nights,
        base_total=base_total,
        discounted_nights=discounted_nights,
        discount_amount=discount_amount,
        total_price=base_total - discount_amount,
    )


class PricingService:
    """Resolves houses from the store and prices a requested stay."""

    def __init__(
        self,
        repository: DataRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self._repository = repository
        self._settings = settings or get_settings()

    def quote(self, house_id: str, start_date: date, end_date: date) -> PriceBreakdown:
        house = self._repository.get_house(house_id)
        if house is None:
            raise NotFoundError(f"House {house_id} was not found")
        breakdown = price(house, start_date, end_date)
        logger.info(
            "Quoted house=%s nights=%s total=%s",
            house_id,
            breakdown.nights,
            breakdown.total_price,
        )
        return breakdown
