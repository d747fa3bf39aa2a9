"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from hushryd.models.booking import BookingStatus, PaymentStatus, CREATE_STATUSES


class BookingCreate(BaseModel):
    ride_id: str = Field(..., min_length=1, max_length=36)
    passenger_count: int = Field(default=1, gt=0, le=10)
    total_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, max_length=10)
    payment_method: Optional[str] = Field(None, max_length=50)
    special_requests: Optional[str] = None
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    offer_code: Optional[str] = Field(None, min_length=1, max_length=50)

    @field_validator("status")
    @classmethod
    def status_holds_seats(cls, value: Optional[BookingStatus]) -> Optional[BookingStatus]:
        if value is not None and value not in CREATE_STATUSES:
            raise ValueError(f"a new booking must be one of {[s.value for s in CREATE_STATUSES]}")
        return value


class BookingUpdate(BaseModel):
    """Every field optional; only the ones sent are written."""

    passenger_count: Optional[int] = Field(None, gt=0, le=10)
    total_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, max_length=10)
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    special_requests: Optional[str] = None


class BookingResponse(BaseModel):
    id: str
    user_id: str
    ride_id: str
    passenger_count: int
    reserved_seats: int
    total_price: Decimal
    currency: str
    status: str
    payment_status: str
    payment_method: Optional[str]
    special_requests: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    page: int
    limit: int
    total: int


class BookingDeleteResponse(BaseModel):
    message: str
    booking_id: str


class BookingStats(BaseModel):
    total_bookings: int
    pending_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    completed_bookings: int
    paid_bookings: int
    total_revenue: Decimal
    average_booking_value: Decimal
