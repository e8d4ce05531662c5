"""HTTP controller layer for house bookings."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from resort.controllers.dependencies import (
    get_booking_service,
    get_pricing_service,
    require_admin,
)
from resort.domain.errors import (
    BookingBlockedError,
    CapacityExceededError,
    InvalidPriceError,
    InvalidRangeError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
    UnavailableError,
)
from resort.domain.models import Booking, BookingOrigin, BookingStatus, DateRange, GuestContact
from resort.services.booking_service import BookingService
from resort.services.pricing_service import PricingService
from resort.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


class GuestContactRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(default="", max_length=40)
    email: Optional[str] = Field(default=None, max_length=254)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value.strip()


class StayRequest(BaseModel):
    house_id: str = Field(min_length=1)
    start_date: date
    end_date: date


class QuoteResponse(BaseModel):
    nights: int = Field(ge=1)
    base_total: Decimal
    discounted_nights: int = Field(ge=0)
    discount_amount: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)


class CreateBookingRequest(StayRequest):
    guest_count: int = Field(gt=0)
    guest: GuestContactRequest


class StaffBookingRequest(CreateBookingRequest):
    origin: Literal["staff-manual", "staff-barter"] = "staff-manual"
    custom_price: Optional[Decimal] = Field(default=None, ge=0)
    barter_description: Optional[str] = Field(default=None, max_length=500)


class BookingStatusRequest(BaseModel):
    status: Literal["confirmed", "cancelled"]


class BookingResponse(BaseModel):
    booking_id: str
    house_id: str
    house_name: str
    start_date: date
    end_date: date
    guest_count: int
    guest_name: str
    guest_phone: str
    guest_email: Optional[str] = None
    total_price: Decimal
    status: str
    origin: str
    created_at: datetime
    barter_description: Optional[str] = None

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.booking_id,
            house_id=booking.house_id,
            house_name=booking.house_name,
            start_date=booking.start_date,
            end_date=booking.end_date,
            guest_count=booking.guest_count,
            guest_name=booking.guest_contact.name,
            guest_phone=booking.guest_contact.phone,
            guest_email=booking.guest_contact.email,
            total_price=booking.total_price,
            status=booking.status.value,
            origin=booking.origin.value,
            created_at=booking.created_at,
            barter_description=booking.barter_description,
        )


def _contact(payload: GuestContactRequest) -> GuestContact:
    return GuestContact(name=payload.name, phone=payload.phone, email=payload.email)


@router.post("/quote", response_model=QuoteResponse, status_code=status.HTTP_200_OK)
def quote(
    payload: StayRequest,
    service: PricingService = Depends(get_pricing_service),
) -> QuoteResponse:
    try:
        breakdown = service.quote(payload.house_id, payload.start_date, payload.end_date)
        return QuoteResponse(
            nights=breakdown.nights,
            base_total=breakdown.base_total,
            discounted_nights=breakdown.discounted_nights,
            discount_amount=breakdown.discount_amount,
            total_price=breakdown.total_price,
        )
    except InvalidRangeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected quote failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to price the stay",
        ) from exc


def _create(
    service: BookingService,
    payload: CreateBookingRequest,
    origin: BookingOrigin,
    custom_price: Optional[Decimal] = None,
    barter_description: Optional[str] = None,
) -> BookingResponse:
    try:
        booking = service.create(
            house_id=payload.house_id,
            date_range=DateRange(payload.start_date, payload.end_date),
            guest_count=payload.guest_count,
            contact=_contact(payload.guest),
            origin=origin,
            custom_price=custom_price,
            barter_description=barter_description,
        )
        return BookingResponse.from_domain(booking)
    except (InvalidRangeError, CapacityExceededError, InvalidPriceError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (UnavailableError, BookingBlockedError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Guest self-service booking; stays pending until an operator approves it."""
    return _create(service, payload, BookingOrigin.SELF_SERVICE)


@router.post(
    "/staff",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_staff_booking(
    payload: StaffBookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _create(
        service,
        payload,
        BookingOrigin(payload.origin),
        custom_price=payload.custom_price,
        barter_description=payload.barter_description,
    )


@router.get(
    "/pending",
    response_model=list[BookingResponse],
    dependencies=[Depends(require_admin)],
)
def list_pending_bookings(
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    try:
        return [BookingResponse.from_domain(booking) for booking in service.list_pending()]
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    dependencies=[Depends(require_admin)],
)
def get_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        return BookingResponse.from_domain(service.get(booking_id))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.post(
    "/{booking_id}/status",
    response_model=BookingResponse,
    dependencies=[Depends(require_admin)],
)
def change_booking_status(
    booking_id: str,
    payload: BookingStatusRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.transition(booking_id, BookingStatus(payload.status))
        return BookingResponse.from_domain(booking)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking status failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update booking status",
        ) from exc
