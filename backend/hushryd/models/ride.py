"""
Ride model with seat inventory tracking.

- `available_seats` is denormalized: it is kept in step with bookings by the
  booking service instead of being counted from the bookings table.
- CHECK constraints pin `0 <= available_seats <= max_passengers` at the DB level.
- Index on `pickup_date` for the common "rides on this day" listing.
"""

from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    Time,
    Numeric,
    Text,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from hushryd.db.base import Base, TimestampMixin, new_id


class RideStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Ride(Base, TimestampMixin):
    __tablename__ = "rides"

    id = Column(String(36), primary_key=True, default=new_id)
    driver_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    pickup_date = Column(Date, nullable=False)
    pickup_time = Column(Time, nullable=False)
    timeslot = Column(String(50), nullable=True)
    fare = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    distance = Column(Numeric(8, 2), nullable=True)
    duration = Column(Integer, nullable=True)  # minutes
    max_passengers = Column(Integer, nullable=False, default=4)
    available_seats = Column(Integer, nullable=False, default=4)
    status = Column(String(20), nullable=False, default=RideStatus.SCHEDULED.value)
    notes = Column(Text, nullable=True)

    # Relationships
    driver = relationship("User", back_populates="rides")
    bookings = relationship("Booking", back_populates="ride")

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("max_passengers > 0", name="check_max_passengers_positive"),
        CheckConstraint("available_seats <= max_passengers", name="check_available_lte_max"),
        CheckConstraint(
            "status IN ('scheduled', 'active', 'completed', 'cancelled')",
            name="check_ride_status",
        ),
        Index("ix_rides_pickup_date", "pickup_date"),
        Index("ix_rides_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Ride(id={self.id}, {self.from_location}->{self.to_location}, "
            f"available={self.available_seats}/{self.max_passengers})>"
        )
