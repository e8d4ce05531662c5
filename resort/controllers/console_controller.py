"""Staff console endpoints: login, house occupancy and the daily report."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from resort.controllers.dependencies import (
    bearer_scheme,
    get_auth_service,
    get_booking_service,
    get_repository,
    require_admin,
)
from resort.domain.errors import NotFoundError, StoreUnavailableError
from resort.domain.models import House
from resort.repository.data_repository import DataRepository
from resort.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from resort.services.booking_service import BookingService
from resort.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["console"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class OccupancyResponse(BaseModel):
    guest_name: str
    guest_phone: str
    booking_id: str
    checkout_date: date


class HouseResponse(BaseModel):
    house_id: str
    name: str
    house_number: Optional[int] = None
    base_price: Decimal
    capacity: int
    discount_label: Optional[str] = None
    occupancy: Optional[OccupancyResponse] = None

    @classmethod
    def from_domain(cls, house: House, include_occupancy: bool = False) -> "HouseResponse":
        occupancy = None
        if include_occupancy and house.occupancy is not None:
            occupancy = OccupancyResponse(
                guest_name=house.occupancy.guest_name,
                guest_phone=house.occupancy.guest_phone,
                booking_id=house.occupancy.booking_id,
                checkout_date=house.occupancy.checkout_date,
            )
        discount = house.discount
        return cls(
            house_id=house.house_id,
            name=house.name,
            house_number=house.house_number,
            base_price=house.base_price,
            capacity=house.capacity,
            discount_label=discount.label if discount and discount.is_active else None,
            occupancy=occupancy,
        )


class DailyReportResponse(BaseModel):
    day: date
    arrivals: list[str]
    departures: list[str]
    occupied_house_ids: list[str]
    revenue: Decimal


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.admin_token)
        return LoginResponse(access_token=bearer)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected login failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to login",
        ) from exc


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if credentials is not None:
        auth_service.logout(credentials.credentials)


@router.get("/houses", response_model=list[HouseResponse])
def list_houses(
    repository: DataRepository = Depends(get_repository),
) -> list[HouseResponse]:
    """Public catalogue; guest details stay behind the staff endpoints."""
    try:
        return [HouseResponse.from_domain(house) for house in repository.list_houses()]
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/houses/occupancy",
    response_model=list[HouseResponse],
    dependencies=[Depends(require_admin)],
)
def list_house_occupancy(
    repository: DataRepository = Depends(get_repository),
) -> list[HouseResponse]:
    try:
        return [
            HouseResponse.from_domain(house, include_occupancy=True)
            for house in repository.list_houses()
        ]
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.post(
    "/houses/{house_id}/checkout",
    response_model=HouseResponse,
    dependencies=[Depends(require_admin)],
)
def checkout_house(
    house_id: str,
    service: BookingService = Depends(get_booking_service),
) -> HouseResponse:
    try:
        return HouseResponse.from_domain(service.checkout(house_id), include_occupancy=True)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/reports/daily",
    response_model=DailyReportResponse,
    dependencies=[Depends(require_admin)],
)
def daily_report(
    day: Optional[date] = None,
    service: BookingService = Depends(get_booking_service),
) -> DailyReportResponse:
    try:
        report = service.daily_report(day)
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return DailyReportResponse(
        day=report.day,
        arrivals=[booking.booking_id for booking in report.arrivals],
        departures=[booking.booking_id for booking in report.departures],
        occupied_house_ids=list(report.occupied_house_ids),
        revenue=report.revenue,
    )
