"""
Booking service: the seat inventory manager for rides.

CONCURRENCY STRATEGY: Row Lock + Guarded Decrement
===================================================

Problem:
  Two passengers try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every seat-changing operation runs in one transaction.

  1. SELECT ... FOR UPDATE on the ride row. A second booking for the same
     ride waits here until the first commits, then reads the new count.
  2. Validate capacity against the locked row.
  3. INSERT the booking.
  4. UPDATE rides SET available_seats = available_seats - :n
     WHERE id = :ride_id AND available_seats >= :n
     A zero row count means capacity vanished under us; treat it exactly
     like a failed capacity check.
  5. Commit. Any error rolls back the booking and the decrement together.

  DB CHECK constraints (0 <= available_seats <= max_passengers) are the
  final safety net.

Each booking records the seats it took in `reserved_seats`. Cancel and delete
hand back exactly that many and zero it, so a seat is released once no matter
what `update` later wrote into status or passenger_count. `update` never
touches the ride.

No retry and no idempotency key: a client that retries a timed-out create
can end up with two bookings.
"""

import re
import time
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.models.ride import Ride
from hushryd.models.booking import Booking, BookingStatus, PaymentStatus, CREATE_STATUSES
from hushryd.core.config import get_settings
from hushryd.core.exceptions import (
    NotFoundError,
    InsufficientCapacityError,
    InvalidStateError,
    NoFieldsError,
    OfferNotValidError,
)
from hushryd.core.logging import get_logger
from hushryd.core.metrics import booking_latency, record_booking_attempt, record_seats_released
from hushryd.db.session import transaction
from hushryd.services.offer_service import redeem_offer

logger = get_logger(__name__)
settings = get_settings()

BOOKING_UPDATABLE_FIELDS = frozenset({
    "passenger_count",
    "total_price",
    "currency",
    "status",
    "payment_status",
    "payment_method",
    "special_requests",
})
_NULLABLE_FIELDS = frozenset({"payment_method", "special_requests"})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _enum_value(enum_cls, value: Union[str, BookingStatus, PaymentStatus]) -> str:
    return enum_cls(value).value


async def _lock_ride(db: AsyncSession, ride_id: str) -> Ride:
    result = await db.execute(
        select(Ride)
        .where(Ride.id == ride_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    ride = result.scalar_one_or_none()
    if ride is None:
        raise NotFoundError("ride", ride_id)
    return ride


async def _lock_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_id)
    return booking


async def _release_seats(db: AsyncSession, ride_id: str, seats: int) -> None:
    await db.execute(
        update(Ride)
        .where(Ride.id == ride_id)
        .values(available_seats=Ride.available_seats + seats)
        .execution_options(synchronize_session=False)
    )


async def create_booking(
    db: AsyncSession,
    user_id: str,
    ride_id: str,
    passenger_count: int,
    total_price: Union[Decimal, int, float, str],
    currency: Optional[str] = None,
    payment_method: Optional[str] = None,
    special_requests: Optional[str] = None,
    status: Optional[Union[str, BookingStatus]] = None,
    payment_status: Optional[Union[str, PaymentStatus]] = None,
    offer_code: Optional[str] = None,
) -> Booking:
    """
    Reserve `passenger_count` seats on a ride and record the booking.

    Raises NotFoundError if the ride (or offer code) does not exist,
    InsufficientCapacityError if the ride has fewer free seats than
    requested, and OfferNotValidError if the offer cannot be applied.
    Any of these leaves nothing written.
    """
    if passenger_count <= 0:
        raise ValueError("passenger_count must be positive")
    total_price = Decimal(str(total_price))
    if total_price < 0:
        raise ValueError("total_price must not be negative")
    initial_status = BookingStatus(status or BookingStatus.PENDING)
    if initial_status not in CREATE_STATUSES:
        raise ValueError(
            f"status must be one of {[s.value for s in CREATE_STATUSES]} when booking"
        )

    booking = Booking(
        user_id=user_id,
        ride_id=ride_id,
        passenger_count=passenger_count,
        reserved_seats=passenger_count,
        total_price=total_price,
        currency=currency or settings.DEFAULT_CURRENCY,
        status=initial_status.value,
        payment_status=_enum_value(PaymentStatus, payment_status or PaymentStatus.PENDING),
        payment_method=payment_method,
        special_requests=special_requests,
    )

    start = time.perf_counter()
    try:
        async with transaction(db):
            ride = await _lock_ride(db, ride_id)

            if ride.available_seats < passenger_count:
                logger.warning(
                    "booking_failed_no_seats",
                    ride_id=ride_id,
                    requested=passenger_count,
                    available=ride.available_seats,
                )
                raise InsufficientCapacityError(ride_id, passenger_count, ride.available_seats)

            db.add(booking)
            await db.flush()

            result = await db.execute(
                update(Ride)
                .where(Ride.id == ride_id, Ride.available_seats >= passenger_count)
                .values(available_seats=Ride.available_seats - passenger_count)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.warning("booking_failed_guarded_update", ride_id=ride_id, requested=passenger_count)
                raise InsufficientCapacityError(ride_id, passenger_count, ride.available_seats)

            if offer_code:
                await redeem_offer(db, offer_code, user_id, booking)

            await db.refresh(booking)
    except InsufficientCapacityError:
        record_booking_attempt("no_capacity")
        raise
    except OfferNotValidError:
        record_booking_attempt("offer_rejected")
        raise
    except NotFoundError:
        record_booking_attempt("not_found")
        raise
    except Exception:
        record_booking_attempt("error")
        raise
    finally:
        booking_latency.observe(time.perf_counter() - start)

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        ride_id=ride_id,
        seats=passenger_count,
    )
    return booking


async def cancel_booking(db: AsyncSession, booking_id: str) -> Booking:
    """
    Cancel a booking and give its reserved seats back to the ride.

    A booking whose status is already cancelled raises InvalidStateError.
    Only `reserved_seats` is released, so a booking moved back out of
    cancelled through `update` cannot hand the same seats back twice.
    """
    async with transaction(db):
        booking = await _lock_booking(db, booking_id)

        if booking.status == BookingStatus.CANCELLED.value:
            raise InvalidStateError(booking_id, booking.status, "cancel")

        released = booking.reserved_seats
        booking.status = BookingStatus.CANCELLED.value
        booking.reserved_seats = 0
        await db.flush()
        if released:
            await _release_seats(db, booking.ride_id, released)
        await db.refresh(booking)

    record_seats_released("cancel", released)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        ride_id=booking.ride_id,
        seats_restored=released,
    )
    return booking


async def delete_booking(db: AsyncSession, booking_id: str) -> None:
    """
    Remove a booking, returning whatever seats it still reserves first.

    That covers every status: a booking set to cancelled through `update`
    still holds its seats and gets them back here, while one cancelled
    through `cancel_booking` already returned them and releases nothing.
    """
    async with transaction(db):
        booking = await _lock_booking(db, booking_id)
        ride_id, released = booking.ride_id, booking.reserved_seats

        if released:
            await _release_seats(db, ride_id, released)
        await db.delete(booking)
        await db.flush()

    if released:
        record_seats_released("delete", released)
    logger.info(
        "booking_deleted",
        booking_id=booking_id,
        ride_id=ride_id,
        seats_restored=released,
    )


async def update_booking(db: AsyncSession, booking_id: str, fields: Mapping[str, Any]) -> Booking:
    """
    Write allow-listed booking fields. Keys may be snake_case or camelCase;
    anything outside BOOKING_UPDATABLE_FIELDS is ignored.

    Seat counts on the ride are left alone, including when passenger_count
    or status change.
    """
    updates = {}
    for key, value in fields.items():
        column = _snake(key)
        if column not in BOOKING_UPDATABLE_FIELDS:
            continue
        # NOT NULL columns cannot be cleared
        if value is None and column not in _NULLABLE_FIELDS:
            continue
        updates[column] = value
    if not updates:
        raise NoFieldsError(BOOKING_UPDATABLE_FIELDS)

    if "status" in updates:
        updates["status"] = _enum_value(BookingStatus, updates["status"])
    if "payment_status" in updates:
        updates["payment_status"] = _enum_value(PaymentStatus, updates["payment_status"])
    if "passenger_count" in updates and int(updates["passenger_count"]) <= 0:
        raise ValueError("passenger_count must be positive")

    async with transaction(db):
        booking = await _lock_booking(db, booking_id)
        for key, value in updates.items():
            setattr(booking, key, value)
        await db.flush()
        await db.refresh(booking)

    logger.info("booking_updated", booking_id=booking_id, fields=sorted(updates))
    return booking


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_id)
    return booking


async def list_bookings(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    user_id: Optional[str] = None,
    ride_id: Optional[str] = None,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> tuple[list[Booking], int]:
    """Filtered, newest-first page of bookings plus the total match count."""
    query = select(Booking)
    if user_id:
        query = query.where(Booking.user_id == user_id)
    if ride_id:
        query = query.where(Booking.ride_id == ride_id)
    if status:
        query = query.where(Booking.status == status)
    if payment_status:
        query = query.where(Booking.payment_status == payment_status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    result = await db.execute(
        query
        .order_by(Booking.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def get_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    """Get all bookings for a user."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_booking_stats(db: AsyncSession) -> dict:
    def _count(column, value: str):
        return func.count(case((column == value, 1)))

    row = (await db.execute(
        select(
            func.count(Booking.id),
            _count(Booking.status, BookingStatus.PENDING.value),
            _count(Booking.status, BookingStatus.CONFIRMED.value),
            _count(Booking.status, BookingStatus.CANCELLED.value),
            _count(Booking.status, BookingStatus.COMPLETED.value),
            _count(Booking.payment_status, PaymentStatus.PAID.value),
            func.coalesce(func.sum(Booking.total_price), 0),
            func.coalesce(func.avg(Booking.total_price), 0),
        )
    )).one()

    return {
        "total_bookings": row[0],
        "pending_bookings": row[1],
        "confirmed_bookings": row[2],
        "cancelled_bookings": row[3],
        "completed_bookings": row[4],
        "paid_bookings": row[5],
        "total_revenue": Decimal(str(row[6])).quantize(Decimal("0.01")),
        "average_booking_value": Decimal(str(row[7])).quantize(Decimal("0.01")),
    }
