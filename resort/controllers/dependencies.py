"""Shared FastAPI dependency providers for the controller layer."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from resort.repository.data_repository import DataRepository
from resort.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from resort.services.booking_service import BookingService
from resort.services.event_router import EventRouter
from resort.services.order_service import OrderService
from resort.services.pricing_service import PricingService
from resort.utils.config import Settings, get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def _state_service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_repository(request: Request) -> DataRepository:
    return _state_service(request, "repository", "Repository")


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_app_settings(request))
        request.app.state.auth_service = service
    return service


def get_pricing_service(request: Request) -> PricingService:
    return _state_service(request, "pricing_service", "Pricing service")


def get_booking_service(request: Request) -> BookingService:
    return _state_service(request, "booking_service", "Booking service")


def get_order_service(request: Request) -> OrderService:
    return _state_service(request, "order_service", "Order service")


def get_event_router(request: Request) -> Optional[EventRouter]:
    """
    Build a router for this update from the current settings record.

    Returns None while the bot is switched off or has no token, so the
    webhook can acknowledge updates without acting on them.
    """
    repository = get_repository(request)
    resort = repository.get_resort_settings()
    telegram = resort.telegram if resort is not None else None
    if telegram is None or not telegram.is_active or not telegram.bot_token:
        return None
    gateway_factory = _state_service(request, "gateway_factory", "Messaging gateway")
    return EventRouter(
        booking_service=get_booking_service(request),
        order_service=get_order_service(request),
        repository=repository,
        gateway=gateway_factory(telegram.bot_token),
        operator_chat_id=telegram.operator_chat_id,
        settings=get_app_settings(request),
    )


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
