"""Shared fixtures: an isolated aiosqlite database per test and an API client bound to it."""
from __future__ import annotations

import os

os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date, datetime, timezone
from typing import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from subletto.db.session import get_session
from subletto.main import app
from subletto.models.base import Base
from subletto.schemas.listings import ListingCreate
from subletto.services import slots as slots_service
from subletto.services.events import ListingEventHub

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class RecordingHub(ListingEventHub):
    """Event hub that remembers everything published."""

    def __init__(self) -> None:
        super().__init__()
        self.published = []

    async def publish(self, event) -> None:
        self.published.append(event)
        await super().publish(event)

    def types(self) -> list[str]:
        return [event.type for event in self.published]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def events() -> RecordingHub:
    return RecordingHub()


@pytest.fixture
def make_listing(session_factory):
    """Create a listing owned by ``owner_id`` with ``total_slots`` spots.

    Runs in its own session so the returned rows stay loaded after a failed
    operation rolls back the test session.
    """

    async def _make(total_slots: int = 4, *, owner_id: str = "host-1", **overrides):
        values = {
            "title": "Shared 4BR near campus",
            "price_monthly": 4000,
            "price_per_spot": 1000,
            "bedrooms": total_slots,
            "lease_term_months": 12,
            "start_date": date(2026, 11, 1),
            "total_slots": total_slots,
        }
        values.update(overrides)
        async with session_factory() as session:
            listing, slots = await slots_service.create_listing(
                ListingCreate(**values), session, owner_id=owner_id, now=NOW
            )
        return listing, slots

    return _make


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncIterator[AsyncClient]:
    async def _override() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_session, None)


@pytest.fixture
def fetch(session):
    """Reload a row from the database inside its own transaction."""

    async def _fetch(model, ident):
        async with session.begin():
            return await session.get(model, ident, populate_existing=True)

    return _fetch


@pytest.fixture
def now() -> datetime:
    return NOW
