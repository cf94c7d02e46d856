"""
Pytest fixtures for test database, client, and authentication.

Every test gets a fresh SQLite database file (aiosqlite) so that separate
sessions, and therefore concurrent bookings, hit one shared store. Redis is
disabled; event listings always come from the database.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.main import create_app
from booking_api.db.base import Base
from booking_api.db.session import Database
from booking_api.core.security import create_access_token, hash_password
from booking_api.models import User, UserRole, Event

TEST_PASSWORD = "Testpass123!"


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Create the schema in a throwaway SQLite file and dispose it afterwards."""
    db = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"timeout": 30},
    )
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield db

    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the test database."""
    app = create_app(database=database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _make_user(db_session: AsyncSession, name: str, email: str, role: UserRole) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        role=role.value,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "Test User", "test@example.com", UserRole.USER)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "Other User", "other@example.com", UserRole.USER)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "Admin User", "admin@example.com", UserRole.ADMIN)


def _headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return _headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return _headers_for(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return _headers_for(admin_user)


async def _make_event(db_session: AsyncSession, organizer: User, title: str, total: int, available: int) -> Event:
    event = Event(
        title=title,
        description="A test event",
        date=datetime.now(timezone.utc) + timedelta(days=30),
        location="Test Venue",
        price=25.0,
        total_seats=total,
        available_seats=available,
        organizer_id=organizer.id,
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, test_user: User) -> Event:
    """An event with 10 free seats out of 10."""
    return await _make_event(db_session, test_user, "Test Concert", 10, 10)


@pytest_asyncio.fixture
async def last_seat_event(db_session: AsyncSession, test_user: User) -> Event:
    """An event with a single seat left."""
    return await _make_event(db_session, test_user, "Almost Full", 20, 1)


@pytest_asyncio.fixture
async def sold_out_event(db_session: AsyncSession, test_user: User) -> Event:
    return await _make_event(db_session, test_user, "Sold Out Show", 50, 0)
