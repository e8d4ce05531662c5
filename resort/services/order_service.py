"""Kitchen order lifecycle."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence

from resort.domain.errors import (
    BelowMinimumOrderError,
    EmptyOrderError,
    InvalidPriceError,
    InvalidTransitionError,
    MissingDestinationError,
    NotFoundError,
    RestaurantClosedError,
)
from resort.domain.models import DeliveryType, Order, OrderItem, OrderStatus, RestaurantRules
from resort.domain.transitions import validate_order_transition
from resort.repository.data_repository import DataRepository, new_document_id
from resort.services.booking_service import utc_now
from resort.services.notification_service import NotificationKind, NotificationSink
from resort.utils.logger import get_logger


logger = get_logger(__name__)


def order_total(items: Iterable[OrderItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))


class OrderService:
    def __init__(
        self,
        repository: DataRepository,
        notifier: NotificationSink,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._now = now or utc_now

    def get(self, order_id: str) -> Order:
        order = self._repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} was not found")
        return order

    def list_orders(self, statuses: Optional[Iterable[OrderStatus]] = None) -> list[Order]:
        return self._repository.list_orders(statuses)

    def _rules(self) -> RestaurantRules:
        resort = self._repository.get_resort_settings()
        return resort.restaurant if resort is not None else RestaurantRules()

    def create(
        self,
        items: Sequence[OrderItem],
        delivery_type: DeliveryType,
        house_ref: Optional[str] = None,
        note: Optional[str] = None,
        guest_name: Optional[str] = None,
        guest_phone: Optional[str] = None,
        claimed_total: Optional[Decimal] = None,
    ) -> Order:
        """
        Persist a pending order.

        The total is always recomputed from the item snapshots; `claimed_total`
        is only compared against it for logging.
        """
        rules = self._rules()
        if not rules.is_active:
            raise RestaurantClosedError("The restaurant is not accepting orders right now")
        if not items:
            raise EmptyOrderError("An order needs at least one item")
        for item in items:
            if item.quantity < 1:
                raise EmptyOrderError(f"{item.name} needs a quantity of at least 1")
            if item.unit_price < 0:
                raise InvalidPriceError(f"{item.name} has a negative price")

        house_name = None
        if delivery_type is DeliveryType.HOUSE_DELIVERY:
            if not rules.delivery_enabled:
                raise MissingDestinationError(
                    "House delivery is currently unavailable; choose pickup instead"
                )
            if not house_ref:
                raise MissingDestinationError("House delivery needs the house to deliver to")
            house = self._repository.get_house(house_ref)
            if house is None:
                raise NotFoundError(f"House {house_ref} was not found")
            house_name = house.name
        elif house_ref:
            logger.info("Ignoring house %s on a pickup order", house_ref)
            house_ref = None

        total = order_total(items)
        if claimed_total is not None and claimed_total != total:
            logger.warning("Client total %s replaced by computed total %s", claimed_total, total)
        if rules.min_order_amount is not None and total < rules.min_order_amount:
            raise BelowMinimumOrderError(
                f"Minimum order is {rules.min_order_amount}; this order totals {total}"
            )

        now = self._now()
        order = Order(
            order_id=new_document_id(),
            items=tuple(items),
            total_amount=total,
            status=OrderStatus.PENDING,
            delivery_type=delivery_type,
            created_at=now,
            updated_at=now,
            house_ref=house_ref,
            house_name=house_name,
            guest_name=guest_name,
            guest_phone=guest_phone,
            note=note,
        )
        self._repository.insert_order(order)
        logger.info(
            "Order %s created items=%s total=%s delivery=%s",
            order.order_id,
            len(order.items),
            total,
            delivery_type.value,
        )
        self._notifier.notify(NotificationKind.ORDER_CREATED, {"order": order})
        return order

    def transition(self, order_id: str, new_status: OrderStatus) -> Order:
        order = self.get(order_id)
        validate_order_transition(order.status, new_status)

        updated_at = max(self._now(), order.created_at)
        if not self._repository.update_order_status(order_id, order.status, new_status, updated_at):
            current = self.get(order_id)
            logger.info(
                "Order %s changed concurrently to %s; %s not applied",
                order_id,
                current.status.value,
                new_status.value,
            )
            raise InvalidTransitionError("Order", current.status.value, new_status.value)

        updated = replace(
            order,
            status=new_status,
            updated_at=updated_at,
            version=order.version + 1,
        )
        logger.info("Order %s moved %s -> %s", order_id, order.status.value, new_status.value)
        self._notifier.notify(NotificationKind.ORDER_STATUS_CHANGED, {"order": updated})
        return updated
