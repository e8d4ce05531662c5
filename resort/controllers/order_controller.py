"""HTTP controller layer for restaurant orders."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from resort.controllers.dependencies import get_order_service, require_admin
from resort.domain.errors import (
    BelowMinimumOrderError,
    EmptyOrderError,
    InvalidPriceError,
    InvalidTransitionError,
    MissingDestinationError,
    NotFoundError,
    RestaurantClosedError,
    StoreUnavailableError,
)
from resort.domain.models import DeliveryType, Order, OrderItem, OrderStatus
from resort.services.order_service import OrderService
from resort.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


class OrderItemPayload(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0, le=99)
    menu_item_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=200)


class CreateOrderRequest(BaseModel):
    items: list[OrderItemPayload]
    delivery_type: Literal["house-delivery", "pickup"]
    house_ref: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    guest_name: Optional[str] = Field(default=None, max_length=120)
    guest_phone: Optional[str] = Field(default=None, max_length=40)
    # Accepted for compatibility with older clients; never trusted.
    total_amount: Optional[Decimal] = None

    @field_validator("house_ref")
    @classmethod
    def normalize_house_ref(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class OrderStatusRequest(BaseModel):
    status: Literal["confirmed", "preparing", "ready", "delivered", "cancelled"]


class OrderResponse(BaseModel):
    order_id: str
    items: list[OrderItemPayload]
    total_amount: Decimal
    status: str
    delivery_type: str
    house_ref: Optional[str] = None
    house_name: Optional[str] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.order_id,
            items=[
                OrderItemPayload(
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    menu_item_id=item.menu_item_id,
                    notes=item.notes,
                )
                for item in order.items
            ],
            total_amount=order.total_amount,
            status=order.status.value,
            delivery_type=order.delivery_type.value,
            house_ref=order.house_ref,
            house_name=order.house_name,
            guest_name=order.guest_name,
            guest_phone=order.guest_phone,
            note=order.note,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    try:
        order = service.create(
            items=[
                OrderItem(
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    menu_item_id=item.menu_item_id,
                    notes=item.notes,
                )
                for item in payload.items
            ],
            delivery_type=DeliveryType(payload.delivery_type),
            house_ref=payload.house_ref,
            note=payload.note,
            guest_name=payload.guest_name,
            guest_phone=payload.guest_phone,
            claimed_total=payload.total_amount,
        )
        return OrderResponse.from_domain(order)
    except (
        EmptyOrderError,
        MissingDestinationError,
        BelowMinimumOrderError,
        InvalidPriceError,
    ) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RestaurantClosedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected order creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order",
        ) from exc


@router.get(
    "",
    response_model=list[OrderResponse],
    dependencies=[Depends(require_admin)],
)
def list_orders(
    status_filter: Optional[list[str]] = Query(default=None, alias="status"),
    service: OrderService = Depends(get_order_service),
) -> list[OrderResponse]:
    try:
        statuses = [OrderStatus(value) for value in status_filter] if status_filter else None
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    try:
        return [OrderResponse.from_domain(order) for order in service.list_orders(statuses)]
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.post(
    "/{order_id}/status",
    response_model=OrderResponse,
    dependencies=[Depends(require_admin)],
)
def change_order_status(
    order_id: str,
    payload: OrderStatusRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    try:
        return OrderResponse.from_domain(service.transition(order_id, OrderStatus(payload.status)))
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
        logger.exception("Unexpected order status failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status",
        ) from exc
