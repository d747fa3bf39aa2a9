"""
Pydantic schemas for ride publishing and listing.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from hushryd.models.ride import RideStatus


class RideCreate(BaseModel):
    from_location: str = Field(..., min_length=1, max_length=255)
    to_location: str = Field(..., min_length=1, max_length=255)
    pickup_date: date
    pickup_time: time
    timeslot: Optional[str] = Field(None, max_length=50)
    fare: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, max_length=10)
    distance: Optional[Decimal] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    max_passengers: int = Field(4, gt=0, le=50)
    notes: Optional[str] = None


class RideUpdate(BaseModel):
    from_location: Optional[str] = Field(None, min_length=1, max_length=255)
    to_location: Optional[str] = Field(None, min_length=1, max_length=255)
    pickup_date: Optional[date] = None
    pickup_time: Optional[time] = None
    timeslot: Optional[str] = Field(None, max_length=50)
    fare: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, max_length=10)
    distance: Optional[Decimal] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    status: Optional[RideStatus] = None
    notes: Optional[str] = None


class RideResponse(BaseModel):
    id: str
    driver_id: str
    from_location: str
    to_location: str
    pickup_date: date
    pickup_time: time
    timeslot: Optional[str]
    fare: Decimal
    currency: str
    distance: Optional[Decimal]
    duration: Optional[int]
    max_passengers: int
    available_seats: int
    status: str
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class RideListResponse(BaseModel):
    rides: list[RideResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class RideStats(BaseModel):
    total_rides: int
    scheduled_rides: int
    active_rides: int
    completed_rides: int
    cancelled_rides: int
    total_seats: int
    available_seats: int
