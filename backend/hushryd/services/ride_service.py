"""
Ride catalogue: publishing, lookup, listing and descriptive updates.

Seat fields are owned by the booking service. Nothing here writes
`available_seats` after a ride is created.
"""

from datetime import date
from typing import Any, Mapping, Optional

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.models.ride import Ride, RideStatus
from hushryd.schemas.ride import RideCreate
from hushryd.core.config import get_settings
from hushryd.core.exceptions import NotFoundError, NoFieldsError
from hushryd.core.logging import get_logger
from hushryd.db.session import transaction

logger = get_logger(__name__)
settings = get_settings()

RIDE_UPDATABLE_FIELDS = frozenset({
    "from_location",
    "to_location",
    "pickup_date",
    "pickup_time",
    "timeslot",
    "fare",
    "currency",
    "distance",
    "duration",
    "status",
    "notes",
})
_RIDE_NULLABLE_FIELDS = frozenset({"timeslot", "distance", "duration", "notes"})


async def create_ride(db: AsyncSession, ride_data: RideCreate, driver_id: str) -> Ride:
    """Publish a ride with every seat available."""
    ride = Ride(
        driver_id=driver_id,
        from_location=ride_data.from_location,
        to_location=ride_data.to_location,
        pickup_date=ride_data.pickup_date,
        pickup_time=ride_data.pickup_time,
        timeslot=ride_data.timeslot,
        fare=ride_data.fare,
        currency=ride_data.currency or settings.DEFAULT_CURRENCY,
        distance=ride_data.distance,
        duration=ride_data.duration,
        max_passengers=ride_data.max_passengers,
        available_seats=ride_data.max_passengers,
        status=RideStatus.SCHEDULED.value,
        notes=ride_data.notes,
    )
    async with transaction(db):
        db.add(ride)
        await db.flush()
        await db.refresh(ride)

    logger.info("ride_created", ride_id=ride.id, driver_id=driver_id, seats=ride.max_passengers)
    return ride


async def get_ride(db: AsyncSession, ride_id: str) -> Ride:
    """Get a single ride by ID, always reading current seat counts."""
    result = await db.execute(
        select(Ride).where(Ride.id == ride_id).execution_options(populate_existing=True)
    )
    ride = result.scalar_one_or_none()
    if ride is None:
        raise NotFoundError("ride", ride_id)
    return ride


async def list_rides(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: Optional[str] = None,
    driver_id: Optional[str] = None,
    pickup_date: Optional[date] = None,
) -> tuple[list[Ride], int]:
    """List rides with optional filters, soonest pickup first."""
    query = select(Ride)
    if status:
        query = query.where(Ride.status == status)
    if driver_id:
        query = query.where(Ride.driver_id == driver_id)
    if pickup_date:
        query = query.where(Ride.pickup_date == pickup_date)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    result = await db.execute(
        query
        .order_by(Ride.pickup_date.asc(), Ride.pickup_time.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def update_ride(db: AsyncSession, ride_id: str, fields: Mapping[str, Any]) -> Ride:
    """Write descriptive ride fields. Seat counts are not accepted here."""
    updates = {
        k: v for k, v in fields.items()
        if k in RIDE_UPDATABLE_FIELDS and (v is not None or k in _RIDE_NULLABLE_FIELDS)
    }
    if not updates:
        raise NoFieldsError(RIDE_UPDATABLE_FIELDS)
    if isinstance(updates.get("status"), RideStatus):
        updates["status"] = updates["status"].value

    async with transaction(db):
        ride = await get_ride(db, ride_id)
        for key, value in updates.items():
            setattr(ride, key, value)
        await db.flush()
        await db.refresh(ride)

    logger.info("ride_updated", ride_id=ride_id, fields=sorted(updates))
    return ride


async def get_ride_stats(db: AsyncSession) -> dict:
    def _count(status: RideStatus):
        return func.count(case((Ride.status == status.value, 1)))

    row = (await db.execute(
        select(
            func.count(Ride.id),
            _count(RideStatus.SCHEDULED),
            _count(RideStatus.ACTIVE),
            _count(RideStatus.COMPLETED),
            _count(RideStatus.CANCELLED),
            func.coalesce(func.sum(Ride.max_passengers), 0),
            func.coalesce(func.sum(Ride.available_seats), 0),
        )
    )).one()

    return {
        "total_rides": row[0],
        "scheduled_rides": row[1],
        "active_rides": row[2],
        "completed_rides": row[3],
        "cancelled_rides": row[4],
        "total_seats": row[5],
        "available_seats": row[6],
    }
