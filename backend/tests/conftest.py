"""
Pytest fixtures for test database, client, and acting users.

Each test gets a fresh in-memory SQLite database (aiosqlite) shared by the
test and the app through a StaticPool, plus a recording notification
dispatcher so tests can assert on what users were told.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("NOTIFICATION_DISPATCHER", "log")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.models.event import Event, EventStatus
from app.services.dispatcher_factory import get_dispatcher
from app.services.interfaces.dispatcher import BookingNotification, NotificationDispatcher

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ORGANIZER_ID = "organizer-1"


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every notification it is handed."""

    def __init__(self):
        self.sent: list[BookingNotification] = []

    async def dispatch(self, notification: BookingNotification) -> None:
        self.sent.append(notification)


class FailingDispatcher(NotificationDispatcher):
    async def dispatch(self, notification: BookingNotification) -> None:
        raise ConnectionError("notification backend unreachable")


def user_headers(user_id: str) -> dict:
    return {"X-User-ID": user_id}


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables on a fresh in-memory database, then dispose it."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """File-backed database so separate sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    dispatcher: RecordingDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and dispatcher dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def organizer_headers() -> dict:
    return user_headers(ORGANIZER_ID)


async def make_event(
    db_session: AsyncSession,
    capacity: int = 4,
    people_per_booking: int = 2,
    status: EventStatus = EventStatus.ACTIVE,
    **kwargs,
) -> Event:
    event = Event(
        title=kwargs.pop("title", "Sunday Padel Mixing"),
        organizer_id=kwargs.pop("organizer_id", ORGANIZER_ID),
        capacity=capacity,
        reserve_spots=kwargs.pop("reserve_spots", 2),
        people_per_booking=people_per_booking,
        rules=kwargs.pop("rules", {"fortyFortyResolution": "Golden point"}),
        status=status.value,
        event_date=datetime.now(timezone.utc) + timedelta(days=7),
        **kwargs,
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession) -> Event:
    """Active mixing: 4 spots, up to 2 people per booking."""
    return await make_event(db_session, capacity=4, people_per_booking=2)


@pytest_asyncio.fixture
async def draft_event(db_session: AsyncSession) -> Event:
    return await make_event(db_session, status=EventStatus.DRAFT, title="Draft Mixing")


@pytest.fixture
def event_factory(db_session: AsyncSession):
    async def _make(**kwargs) -> Event:
        return await make_event(db_session, **kwargs)
    return _make
