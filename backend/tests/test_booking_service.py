"""
Service-level tests for the seat inventory: invariant, conservation,
atomicity and concurrent bookings for the last seat.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from hushryd.core.exceptions import (
    InsufficientCapacityError,
    InvalidStateError,
    NoFieldsError,
    NotFoundError,
)
from hushryd.models.booking import Booking, BookingStatus, PaymentStatus
from hushryd.models.ride import Ride
from hushryd.services import booking_service

from conftest import make_ride, make_user, seats_left


async def booking_count(session, ride_id: str) -> int:
    value = (await session.execute(
        select(func.count(Booking.id)).where(Booking.ride_id == ride_id)
    )).scalar_one()
    await session.commit()
    return value


async def assert_conserved(session, ride_id: str) -> None:
    """available_seats + seats reserved by existing bookings == max_passengers."""
    ride_row = (await session.execute(
        select(Ride.available_seats, Ride.max_passengers).where(Ride.id == ride_id)
    )).one()
    held = (await session.execute(
        select(func.coalesce(func.sum(Booking.reserved_seats), 0)).where(Booking.ride_id == ride_id)
    )).scalar_one()
    await session.commit()

    available, maximum = ride_row
    assert 0 <= available <= maximum
    assert available + held == maximum


@pytest.mark.asyncio
async def test_create_decrements_seats(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(
        db_session, test_user.id, test_ride.id, passenger_count=2, total_price=500
    )

    assert booking.id
    assert booking.status == BookingStatus.PENDING.value
    assert booking.payment_status == PaymentStatus.PENDING.value
    assert booking.currency == "INR"
    assert booking.total_price == Decimal("500")
    assert booking.created_at is not None
    assert booking.reserved_seats == 2
    assert await seats_left(db_session, test_ride.id) == 2
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_create_honours_status_overrides(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(
        db_session,
        test_user.id,
        test_ride.id,
        passenger_count=1,
        total_price="250.00",
        currency="USD",
        payment_method="upi",
        special_requests="Window seat",
        status=BookingStatus.CONFIRMED,
        payment_status="paid",
    )

    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"
    assert booking.currency == "USD"
    assert booking.payment_method == "upi"
    assert booking.special_requests == "Window seat"
    assert booking.reserved_seats == 1
    assert await seats_left(db_session, test_ride.id) == 3
    await assert_conserved(db_session, test_ride.id)

    await booking_service.cancel_booking(db_session, booking.id)
    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_create_over_capacity_writes_nothing(db_session, test_user, other_user, test_ride):
    await booking_service.create_booking(db_session, test_user.id, test_ride.id, 2, 500)

    with pytest.raises(InsufficientCapacityError) as exc_info:
        await booking_service.create_booking(db_session, other_user.id, test_ride.id, 3, 750)

    assert exc_info.value.requested == 3
    assert exc_info.value.available == 2
    assert await seats_left(db_session, test_ride.id) == 2
    assert await booking_count(db_session, test_ride.id) == 1
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_create_for_missing_ride(db_session, test_user):
    with pytest.raises(NotFoundError) as exc_info:
        await booking_service.create_booking(db_session, test_user.id, "r_missing", 1, 100)

    assert exc_info.value.resource_type == "ride"
    assert (await db_session.execute(select(func.count(Booking.id)))).scalar_one() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("count, price", [(0, 100), (-1, 100), (1, -5)])
async def test_create_rejects_bad_arguments(db_session, test_user, test_ride, count, price):
    with pytest.raises(ValueError):
        await booking_service.create_booking(db_session, test_user.id, test_ride.id, count, price)
    assert await seats_left(db_session, test_ride.id) == 4


@pytest.mark.asyncio
async def test_cancel_restores_seats_once(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 2, 500)

    cancelled = await booking_service.cancel_booking(db_session, booking.id)
    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.reserved_seats == 0
    assert await seats_left(db_session, test_ride.id) == 4

    with pytest.raises(InvalidStateError):
        await booking_service.cancel_booking(db_session, booking.id)
    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_cancel_missing_booking(db_session):
    with pytest.raises(NotFoundError):
        await booking_service.cancel_booking(db_session, "nope")


@pytest.mark.asyncio
async def test_delete_restores_seats_and_removes_row(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 3, 750)
    assert await seats_left(db_session, test_ride.id) == 1

    await booking_service.delete_booking(db_session, booking.id)

    assert await seats_left(db_session, test_ride.id) == 4
    assert await booking_count(db_session, test_ride.id) == 0
    with pytest.raises(NotFoundError):
        await booking_service.get_booking(db_session, booking.id)


@pytest.mark.asyncio
async def test_delete_cancelled_booking_does_not_restore_twice(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 2, 500)
    await booking_service.cancel_booking(db_session, booking.id)

    await booking_service.delete_booking(db_session, booking.id)

    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_update_writes_allowed_fields_only(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 1, 250)

    updated = await booking_service.update_booking(
        db_session,
        booking.id,
        {"paymentStatus": "paid", "payment_method": "card", "ride_id": "elsewhere", "bogus": 1},
    )

    assert updated.payment_status == "paid"
    assert updated.payment_method == "card"
    assert updated.ride_id == test_ride.id


@pytest.mark.asyncio
async def test_update_passenger_count_does_not_move_seats(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 1, 250)

    updated = await booking_service.update_booking(db_session, booking.id, {"passenger_count": 3})

    assert updated.passenger_count == 3
    assert await seats_left(db_session, test_ride.id) == 3

    # only the seat actually taken comes back
    await booking_service.delete_booking(db_session, booking.id)
    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_update_accepts_any_status(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 1, 250)

    updated = await booking_service.update_booking(db_session, booking.id, {"status": "completed"})
    assert updated.status == "completed"
    updated = await booking_service.update_booking(db_session, booking.id, {"status": "pending"})
    assert updated.status == "pending"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["cancelled", "completed", "no_show", "active"])
async def test_create_accepts_only_pending_or_confirmed(db_session, test_user, test_ride, status):
    with pytest.raises(ValueError):
        await booking_service.create_booking(
            db_session, test_user.id, test_ride.id, 3, 750, status=status
        )

    assert await seats_left(db_session, test_ride.id) == 4
    assert await booking_count(db_session, test_ride.id) == 0
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_update_to_cancelled_then_delete_restores_seats(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 2, 500)

    updated = await booking_service.update_booking(db_session, booking.id, {"status": "cancelled"})
    assert updated.status == "cancelled"
    assert updated.reserved_seats == 2
    assert await seats_left(db_session, test_ride.id) == 2
    await assert_conserved(db_session, test_ride.id)

    await booking_service.delete_booking(db_session, booking.id)

    assert await seats_left(db_session, test_ride.id) == 4
    assert await booking_count(db_session, test_ride.id) == 0
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_update_to_cancelled_then_cancel_keeps_seats_held(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 2, 500)
    booking_id = booking.id
    await booking_service.update_booking(db_session, booking_id, {"status": "cancelled"})

    with pytest.raises(InvalidStateError):
        await booking_service.cancel_booking(db_session, booking_id)

    assert await seats_left(db_session, test_ride.id) == 2
    await assert_conserved(db_session, test_ride.id)

    await booking_service.delete_booking(db_session, booking_id)
    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_reopened_booking_cannot_release_seats_twice(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 2, 500)
    await booking_service.cancel_booking(db_session, booking.id)
    assert await seats_left(db_session, test_ride.id) == 4

    await booking_service.update_booking(db_session, booking.id, {"status": "confirmed"})
    again = await booking_service.cancel_booking(db_session, booking.id)

    assert again.status == "cancelled"
    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)

    await booking_service.delete_booking(db_session, booking.id)
    assert await seats_left(db_session, test_ride.id) == 4
    await assert_conserved(db_session, test_ride.id)


@pytest.mark.asyncio
async def test_update_without_known_fields(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 1, 250)

    with pytest.raises(NoFieldsError):
        await booking_service.update_booking(db_session, booking.id, {"ride_id": "x", "id": "y"})
    with pytest.raises(NoFieldsError):
        await booking_service.update_booking(db_session, booking.id, {})


@pytest.mark.asyncio
async def test_update_rejects_unknown_status(db_session, test_user, test_ride):
    booking = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 1, 250)

    with pytest.raises(ValueError):
        await booking_service.update_booking(db_session, booking.id, {"status": "teleported"})


@pytest.mark.asyncio
async def test_concurrent_creates_for_last_seat(session_factory, db_session, last_seat_ride):
    first = await make_user(db_session, "racer1@example.com", "racer1")
    second = await make_user(db_session, "racer2@example.com", "racer2")

    async def attempt(user_id: str):
        async with session_factory() as session:
            return await booking_service.create_booking(session, user_id, last_seat_ride.id, 1, 100)

    results = await asyncio.gather(attempt(first.id), attempt(second.id), return_exceptions=True)

    succeeded = [r for r in results if isinstance(r, Booking)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], InsufficientCapacityError)
    assert await seats_left(db_session, last_seat_ride.id) == 0
    await assert_conserved(db_session, last_seat_ride.id)


@pytest.mark.asyncio
async def test_conservation_through_mixed_operations(db_session, test_user, other_user, driver):
    ride = await make_ride(db_session, driver, seats=6)
    a = await booking_service.create_booking(db_session, test_user.id, ride.id, 2, 500)
    b = await booking_service.create_booking(db_session, other_user.id, ride.id, 3, 750)
    await assert_conserved(db_session, ride.id)

    await booking_service.cancel_booking(db_session, a.id)
    await assert_conserved(db_session, ride.id)

    c = await booking_service.create_booking(db_session, test_user.id, ride.id, 3, 750)
    await assert_conserved(db_session, ride.id)
    assert await seats_left(db_session, ride.id) == 0

    await booking_service.delete_booking(db_session, b.id)
    await booking_service.delete_booking(db_session, a.id)
    await assert_conserved(db_session, ride.id)
    assert await seats_left(db_session, ride.id) == 3

    await booking_service.cancel_booking(db_session, c.id)
    assert await seats_left(db_session, ride.id) == 6


@pytest.mark.asyncio
async def test_list_and_stats(db_session, test_user, other_user, test_ride):
    a = await booking_service.create_booking(db_session, test_user.id, test_ride.id, 1, 100)
    await booking_service.create_booking(db_session, other_user.id, test_ride.id, 2, 300, payment_status="paid")
    await booking_service.cancel_booking(db_session, a.id)

    mine, total = await booking_service.list_bookings(db_session, user_id=test_user.id)
    assert total == 1
    assert mine[0].id == a.id

    cancelled, total = await booking_service.list_bookings(db_session, status="cancelled")
    assert total == 1

    page, total = await booking_service.list_bookings(db_session, page=2, limit=1)
    assert total == 2
    assert len(page) == 1

    assert len(await booking_service.get_user_bookings(db_session, other_user.id)) == 1

    stats = await booking_service.get_booking_stats(db_session)
    assert stats["total_bookings"] == 2
    assert stats["cancelled_bookings"] == 1
    assert stats["pending_bookings"] == 1
    assert stats["paid_bookings"] == 1
    assert stats["total_revenue"] == Decimal("400.00")
    assert stats["average_booking_value"] == Decimal("200.00")
