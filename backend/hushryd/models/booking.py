"""
Booking model: a passenger's reservation against a ride.

Key design decisions:
- `reserved_seats` is what the booking holds against the ride's
  `available_seats`. It starts at `passenger_count`, drops to 0 on cancel and
  is handed back on delete, so seats never depend on a status someone edited
- Status field allows cancellation without deleting records
- No uniqueness on (user, ride): a passenger may hold several bookings
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, Numeric, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from hushryd.db.base import Base, TimestampMixin, new_id


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


# Lifecycle: pending -> confirmed -> active -> completed, with cancelled or
# no_show as side exits. Updates may write any status; seats follow
# `reserved_seats`, never `status`.

# Statuses a booking may be created with.
CREATE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def _in_clause(values) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    ride_id = Column(String(36), ForeignKey("rides.id"), nullable=False, index=True)
    passenger_count = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)
    special_requests = Column(Text, nullable=True)
    # Seats this booking currently holds on the ride. Set by create, zeroed by
    # cancel; update never touches it.
    reserved_seats = Column(Integer, nullable=False, default=0)

    # Relationships
    user = relationship("User", back_populates="bookings")
    ride = relationship("Ride", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("passenger_count > 0", name="check_booking_passenger_count_positive"),
        CheckConstraint("total_price >= 0", name="check_booking_total_price_non_negative"),
        CheckConstraint("reserved_seats >= 0", name="check_booking_reserved_seats_non_negative"),
        CheckConstraint(f"status IN ({_in_clause(BookingStatus)})", name="check_booking_status"),
        CheckConstraint(
            f"payment_status IN ({_in_clause(PaymentStatus)})",
            name="check_booking_payment_status",
        ),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, ride={self.ride_id}, status={self.status})>"
