"""
User administration: listing, profile updates, removal and stats.

Account creation goes through `auth_service.register_user` so admins and
self-registration share one duplicate check and one hashing path.
"""

from typing import Any, Mapping, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func, case, or_
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.models.booking import Booking
from hushryd.models.ride import Ride
from hushryd.models.user import User, ADMIN_ROLES
from hushryd.core.exceptions import NotFoundError, NoFieldsError
from hushryd.core.logging import get_logger
from hushryd.core.security import hash_password
from hushryd.db.session import transaction

logger = get_logger(__name__)

USER_UPDATABLE_FIELDS = frozenset({"email", "username", "password", "role", "is_active"})
ADMIN_ONLY_FIELDS = frozenset({"role", "is_active"})


async def get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("user", user_id)
    return user


async def list_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[User], int]:
    query = select(User)
    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def update_user(
    db: AsyncSession,
    user_id: str,
    fields: Mapping[str, Any],
    by_admin: bool = False,
) -> User:
    """
    Update profile fields. Non-admin callers cannot touch role or is_active;
    those keys are dropped before anything else is checked.
    """
    updates = {
        key: value for key, value in fields.items()
        if key in USER_UPDATABLE_FIELDS and value is not None
        and (by_admin or key not in ADMIN_ONLY_FIELDS)
    }
    if not updates:
        raise NoFieldsError(USER_UPDATABLE_FIELDS if by_admin else USER_UPDATABLE_FIELDS - ADMIN_ONLY_FIELDS)

    async with transaction(db):
        user = await get_user(db, user_id)

        clashes = [User.email == updates["email"]] if "email" in updates else []
        if "username" in updates:
            clashes.append(User.username == updates["username"])
        if clashes:
            taken = (await db.execute(
                select(User).where(or_(*clashes), User.id != user_id)
            )).scalars().first()
            if taken is not None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Email already registered"
                    if taken.email == updates.get("email") else "Username already taken",
                )

        changed = sorted(updates)
        if "password" in updates:
            user.hashed_password = hash_password(updates.pop("password"))
        for key, value in updates.items():
            setattr(user, key, value)
        await db.flush()
        await db.refresh(user)

    logger.info("user_updated", user_id=user_id, fields=changed, by_admin=by_admin)
    return user


async def delete_user(db: AsyncSession, user_id: str) -> None:
    """
    Remove an account. Users that still own rides or bookings are refused
    with 409; deactivate them instead so the seat history stays intact.
    """
    async with transaction(db):
        user = await get_user(db, user_id)
        rides = (await db.execute(select(func.count(Ride.id)).where(Ride.driver_id == user_id))).scalar()
        bookings = (await db.execute(
            select(func.count(Booking.id)).where(Booking.user_id == user_id)
        )).scalar()
        if rides or bookings:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User has rides or bookings; deactivate the account instead",
            )
        await db.delete(user)
        await db.flush()

    logger.info("user_deleted", user_id=user_id)


async def get_user_stats(db: AsyncSession) -> dict:
    row = (await db.execute(
        select(
            func.count(User.id),
            func.count(case((User.is_active.is_(True), 1))),
            func.count(case((User.role.in_(ADMIN_ROLES), 1))),
        )
    )).one()
    return {
        "total_users": row[0],
        "active_users": row[1],
        "inactive_users": row[0] - row[1],
        "admin_users": row[2],
    }
