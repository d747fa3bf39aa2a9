"""
Ride endpoints: publishing, search listing (Redis-cached) and updates.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.db.session import get_db
from hushryd.models.ride import RideStatus
from hushryd.models.user import User
from hushryd.schemas.ride import RideCreate, RideUpdate, RideResponse, RideListResponse, RideStats
from hushryd.services.ride_service import create_ride, get_ride, list_rides, update_ride, get_ride_stats
from hushryd.services.cache_service import (
    make_ride_list_key,
    get_cached_rides,
    set_cached_rides,
    invalidate_ride_cache,
)
from hushryd.core.security import get_current_user, require_admin
from hushryd.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/rides", tags=["Rides"])


@router.post("/", response_model=RideResponse, status_code=status.HTTP_201_CREATED)
async def publish_ride(
    ride_data: RideCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Publish a ride. The caller becomes its driver."""
    ride = await create_ride(db, ride_data, driver_id=user.id)
    await invalidate_ride_cache()
    return ride


@router.get("/", response_model=RideListResponse)
async def list_rides_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[RideStatus] = Query(None, alias="status"),
    driver_id: Optional[str] = Query(None),
    pickup_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Search rides with pagination. Results are cached in Redis and dropped
    whenever a booking moves seats or a ride changes.
    """
    status_value = status_filter.value if status_filter else None
    key = make_ride_list_key(
        page, page_size, status_value, driver_id, pickup_date.isoformat() if pickup_date else None
    )

    cached = await get_cached_rides(key)
    if cached:
        logger.info("rides_list_cache_hit", page=page)
        cached["cached"] = True
        return RideListResponse(**cached)

    rides, total = await list_rides(db, page, page_size, status_value, driver_id, pickup_date)
    response_data = {
        "rides": [RideResponse.model_validate(r).model_dump(mode="json") for r in rides],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_rides(key, response_data)
    return RideListResponse(**response_data)


@router.get("/stats/overview", response_model=RideStats)
async def ride_stats(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_ride_stats(db)


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride_endpoint(ride_id: str, db: AsyncSession = Depends(get_db)):
    """Get a single ride. Never cached: seat counts must be live."""
    return await get_ride(db, ride_id)


@router.put("/{ride_id}", response_model=RideResponse)
async def update_ride_endpoint(
    ride_id: str,
    ride_data: RideUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update descriptive ride fields. Driver or admin only."""
    ride = await get_ride(db, ride_id)
    if ride.driver_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    ride = await update_ride(db, ride_id, ride_data.model_dump(exclude_unset=True))
    await invalidate_ride_cache()
    return ride
