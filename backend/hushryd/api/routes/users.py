"""
User administration endpoints. Listing, creation, deletion and stats are
admin only; a user may read and edit their own record.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hushryd.db.session import get_db
from hushryd.models.user import User
from hushryd.schemas.user import UserAdminCreate, UserUpdate, UserResponse, UserListResponse, UserStats
from hushryd.services.auth_service import register_user
from hushryd.services.user_service import get_user, list_users, update_user, delete_user, get_user_stats
from hushryd.core.security import get_current_user, require_admin

router = APIRouter(prefix="/users", tags=["Users"])


def _ensure_self_or_admin(user: User, user_id: str) -> None:
    if user.id != user_id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.get("/", response_model=UserListResponse)
async def list_users_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[Literal["user", "admin", "superadmin"]] = Query(None),
    is_active: Optional[bool] = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users, total = await list_users(db, page, limit, role, is_active)
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        page=page,
        limit=limit,
        total=total,
    )


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_endpoint(
    user_data: UserAdminCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create an account with any role. Admin only."""
    user = await register_user(db, user_data, role=user_data.role)
    if not user_data.is_active:
        user = await update_user(db, user.id, {"is_active": False}, by_admin=True)
    return user


@router.get("/stats/overview", response_model=UserStats)
async def user_stats(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_stats(db)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_endpoint(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_self_or_admin(user, user_id)
    return await get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user_endpoint(
    user_id: str,
    user_data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Role and active flag are only written when an admin sends them."""
    _ensure_self_or_admin(user, user_id)
    return await update_user(db, user_id, user_data.model_dump(exclude_unset=True), by_admin=user.is_admin)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_endpoint(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    await delete_user(db, user_id)
