"""Failure taxonomy shared by the lifecycle services and the event router."""

from __future__ import annotations


class ReservationError(Exception):
    """Base failure; the message is shown to the operator or guest as-is."""


class NotFoundError(ReservationError):
    """Raised when a house, booking or order id is unknown."""


class InvalidRangeError(ReservationError):
    """Raised when a stay does not end strictly after it starts."""


class CapacityExceededError(ReservationError):
    """Raised when the guest count is larger than the house capacity."""


class UnavailableError(ReservationError):
    """Raised when the requested stay overlaps an active booking."""


class BookingBlockedError(ReservationError):
    """Raised when self-service booking is closed for the requested dates."""


class StoreUnavailableError(ReservationError):
    """Raised when the document store cannot be read or written."""


class InvalidTransitionError(ReservationError):
    """Raised when a status change is not an edge of the state graph."""

    def __init__(self, entity: str, current: str, requested: str) -> None:
        self.entity = entity
        self.current = current
        self.requested = requested
        if current == requested:
            message = f"{entity} is already {current}"
        else:
            message = f"{entity} is {current}; cannot change it to {requested}"
        super().__init__(message)


class EmptyOrderError(ReservationError):
    """Raised when an order has no items."""


class MissingDestinationError(ReservationError):
    """Raised when a house delivery does not name the house."""


class BelowMinimumOrderError(ReservationError):
    """Raised when the order total is below the restaurant minimum."""


class RestaurantClosedError(ReservationError):
    """Raised when the restaurant is not accepting orders."""


class MalformedEventError(ReservationError):
    """Raised when an inbound chat event cannot be decoded."""


class UnauthorizedError(ReservationError):
    """Raised when a role-gated command comes from a non-operator chat."""


class GatewayError(ReservationError):
    """Raised when the messaging transport rejects or fails a call."""


class InvalidPriceError(ReservationError):
    """Raised when a staff price override is negative."""
