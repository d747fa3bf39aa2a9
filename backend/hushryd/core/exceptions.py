"""
Domain errors raised by the booking, ride, offer and user services.

These carry no HTTP types; the API layer maps each `error_code` to a status
code in `hushryd.api.errors`.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    INVALID_STATE = "INVALID_STATE"
    NO_FIELDS = "NO_FIELDS"
    OFFER_NOT_VALID = "OFFER_NOT_VALID"
    CONFLICT = "CONFLICT"


class BookingError(Exception):
    """Base class for every error the inventory manager surfaces."""

    error_code: ErrorCode = ErrorCode.INVALID_STATE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = {"error_code": self.error_code.value, "detail": self.message}
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(BookingError):
    """A referenced ride, booking or user does not exist."""

    error_code = ErrorCode.NOT_FOUND

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type.capitalize()} {resource_id} not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class InsufficientCapacityError(BookingError):
    error_code = ErrorCode.INSUFFICIENT_CAPACITY

    def __init__(self, ride_id: str, requested: int, available: int):
        super().__init__(
            f"Not enough seats. Requested: {requested}, Available: {available}",
            details={"ride_id": ride_id, "requested": requested, "available": available},
        )
        self.ride_id = ride_id
        self.requested = requested
        self.available = available


class InvalidStateError(BookingError):
    """Operation is illegal for the booking's current status."""

    error_code = ErrorCode.INVALID_STATE

    def __init__(self, booking_id: str, current_status: str, operation: str):
        super().__init__(
            f"Cannot {operation} booking {booking_id}: status is {current_status}",
            details={"booking_id": booking_id, "status": current_status},
        )
        self.booking_id = booking_id
        self.current_status = current_status


class NoFieldsError(BookingError):
    error_code = ErrorCode.NO_FIELDS

    def __init__(self, allowed: Iterable[str]):
        allowed = sorted(allowed)
        super().__init__(
            "No valid fields to update",
            details={"allowed_fields": allowed},
        )


class OfferNotValidError(BookingError):
    """Offer code exists but cannot be applied (inactive, expired, used up, below minimum)."""

    error_code = ErrorCode.OFFER_NOT_VALID

    def __init__(self, code: str, reason: str):
        super().__init__(
            f"Offer {code} cannot be applied: {reason}",
            details={"code": code, "reason": reason},
        )
        self.code = code
        self.reason = reason


class ConflictError(BookingError):
    error_code = ErrorCode.CONFLICT

    def __init__(self, resource_type: str, field: str, value: str):
        super().__init__(
            f"{resource_type.capitalize()} with {field} {value} already exists",
            details={"resource_type": resource_type, "field": field, "value": value},
        )
        self.resource_type = resource_type
        self.field = field
