"""
Authentication service handling user registration and login.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from hushryd.models.user import User, ROLES
from hushryd.schemas.user import UserCreate, UserLogin
from hushryd.core.security import hash_password, verify_password, create_access_token
from hushryd.core.logging import get_logger
from hushryd.db.session import transaction

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate, role: str = "user") -> User:
    """
    Register a new user with hashed password.
    Raises 409 if email or username already exists.
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    async with transaction(db):
        result = await db.execute(
            select(User).where(
                or_(User.email == user_data.email, User.username == user_data.username)
            )
        )
        existing = result.scalars().first()
        if existing is not None:
            field = "email" if existing.email == user_data.email else "username"
            logger.warning("registration_failed", reason=f"{field}_exists")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already registered" if field == "email" else "Username already taken",
            )

        user = User(
            email=user_data.email,
            username=user_data.username,
            hashed_password=hash_password(user_data.password),
            role=role,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)

    logger.info("user_registered", user_id=user.id, role=role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    token = create_access_token(data={"sub": user.id, "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return token
