"""
Booking endpoints with concurrency-safe seat reservation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.db.session import get_db
from hushryd.models.booking import Booking, BookingStatus, PaymentStatus
from hushryd.models.user import User
from hushryd.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingListResponse,
    BookingDeleteResponse,
    BookingStats,
)
from hushryd.services.booking_service import (
    create_booking,
    cancel_booking,
    delete_booking,
    update_booking,
    get_booking,
    list_bookings,
    get_user_bookings,
    get_booking_stats,
)
from hushryd.services.cache_service import invalidate_ride_cache
from hushryd.core.security import get_current_user, require_admin
from hushryd.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _ensure_access(user: User, booking: Booking) -> None:
    """Passengers may only touch their own bookings; admins may touch any."""
    if booking.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Book seats on a ride.

    The ride row is locked for the duration of the transaction, so two
    passengers racing for the last seat cannot both get it: the loser
    receives a 409. An `offer_code` is redeemed in the same transaction and
    rewrites total_price to the discounted amount.
    """
    booking = await create_booking(
        db,
        user_id=user.id,
        ride_id=booking_data.ride_id,
        passenger_count=booking_data.passenger_count,
        total_price=booking_data.total_price,
        currency=booking_data.currency,
        payment_method=booking_data.payment_method,
        special_requests=booking_data.special_requests,
        status=booking_data.status,
        payment_status=booking_data.payment_status,
        offer_code=booking_data.offer_code,
    )
    await invalidate_ride_cache()
    return booking


@router.get("/", response_model=BookingListResponse)
async def list_bookings_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[str] = Query(None),
    ride_id: Optional[str] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All bookings, filtered and paginated. Admin only."""
    bookings, total = await list_bookings(
        db,
        page=page,
        limit=limit,
        user_id=user_id,
        ride_id=ride_id,
        status=status_filter.value if status_filter else None,
        payment_status=payment_status.value if payment_status else None,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/me", response_model=list[BookingResponse])
async def list_my_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await get_user_bookings(db, user.id)


@router.get("/stats/overview", response_model=BookingStats)
async def booking_stats(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking_stats(db)


@router.get("/user/{user_id}", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return await get_user_bookings(db, user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking(db, booking_id)
    _ensure_access(user, booking)
    return booking


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking_endpoint(
    booking_id: str,
    booking_data: BookingUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update allow-listed booking fields. Does not move seats: changing
    passenger_count or status here leaves the ride's availability as is.
    """
    booking = await get_booking(db, booking_id)
    _ensure_access(user, booking)
    return await update_booking(db, booking_id, booking_data.model_dump(exclude_unset=True))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seats back to the ride."""
    booking = await get_booking(db, booking_id)
    _ensure_access(user, booking)
    booking = await cancel_booking(db, booking_id)
    await invalidate_ride_cache()
    return booking


@router.delete("/{booking_id}", response_model=BookingDeleteResponse)
async def delete_booking_endpoint(
    booking_id: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a booking, restoring its seats first. Admin only."""
    await delete_booking(db, booking_id)
    await invalidate_ride_cache()
    return BookingDeleteResponse(message="Booking deleted successfully", booking_id=booking_id)
