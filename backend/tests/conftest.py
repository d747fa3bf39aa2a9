"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh SQLite file (or TEST_DATABASE_URL when set). SQLite
transactions are opened with BEGIN IMMEDIATE so that concurrent sessions
queue behind each other's write lock, standing in for SELECT ... FOR UPDATE.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from hushryd.main import app
from hushryd.db.base import Base
from hushryd.db.session import get_db
from hushryd.core.security import create_access_token, hash_password
from hushryd.models.user import User
from hushryd.models.ride import Ride
from hushryd.models.offer import Offer

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


def _serialize_sqlite_transactions(engine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest_asyncio.fixture
async def engine(tmp_path):
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'hushryd_test.db'}"
    kwargs = {"connect_args": {"timeout": 30}} if url.startswith("sqlite") else {}
    test_engine = create_async_engine(url, echo=False, **kwargs)
    if test_engine.dialect.name == "sqlite":
        _serialize_sqlite_transactions(test_engine)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(session: AsyncSession, obj):
    # refresh before commit so the session holds no open transaction afterwards
    session.add(obj)
    await session.flush()
    await session.refresh(obj)
    await session.commit()
    # detached, so a rolled-back service call later in the test cannot expire it
    session.expunge(obj)
    return obj


async def make_user(session: AsyncSession, email: str, username: str, role: str = "user") -> User:
    return await _add(session, User(
        email=email,
        username=username,
        hashed_password=hash_password("testpassword123"),
        role=role,
    ))


async def make_ride(session: AsyncSession, driver: User, seats: int = 4, fare: str = "250.00") -> Ride:
    return await _add(session, Ride(
        driver_id=driver.id,
        from_location="Hyderabad",
        to_location="Vijayawada",
        pickup_date=date.today() + timedelta(days=3),
        pickup_time=time(9, 30),
        timeslot="morning",
        fare=Decimal(fare),
        currency="INR",
        max_passengers=seats,
        available_seats=seats,
    ))


async def seats_left(session: AsyncSession, ride_id: str) -> int:
    """Read available_seats straight from the table, then end the read transaction."""
    value = (await session.execute(select(Ride.available_seats).where(Ride.id == ride_id))).scalar_one()
    await session.commit()
    return value


async def make_offer(
    session: AsyncSession,
    code: str = "WELCOME10",
    discount_type: str = "percentage",
    discount_value: str = "10.00",
    max_uses: int = None,
    min_amount: str = "0",
    max_discount: str = None,
    is_active: bool = True,
    starts_in: timedelta = timedelta(days=-1),
    lasts: timedelta = timedelta(days=30),
) -> Offer:
    valid_from = datetime.now(timezone.utc) + starts_in
    return await _add(session, Offer(
        code=code,
        title=f"{code} offer",
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        min_amount=Decimal(min_amount),
        max_discount=Decimal(max_discount) if max_discount else None,
        max_uses=max_uses,
        valid_from=valid_from,
        valid_until=valid_from + lasts,
        is_active=is_active,
    ))


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user.id})}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "test@example.com", "testuser")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", "otheruser")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", "adminuser", role="admin")


@pytest_asyncio.fixture
async def driver(db_session: AsyncSession) -> User:
    return await make_user(db_session, "driver@example.com", "driveruser")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return bearer(test_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest_asyncio.fixture
async def test_ride(db_session: AsyncSession, driver: User) -> Ride:
    """A ride with 4 free seats out of 4."""
    return await make_ride(db_session, driver, seats=4)


@pytest_asyncio.fixture
async def last_seat_ride(db_session: AsyncSession, driver: User) -> Ride:
    """A ride with exactly one seat."""
    return await make_ride(db_session, driver, seats=1)
