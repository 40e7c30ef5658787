"""Shared test fixtures.

Tests run against a throwaway SQLite database. The URL has to be in the
environment before app.core.config is imported, so it is set here at the
top of the module.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="courtslot-tests-")
os.environ["CS_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["CS_SECRET_KEY"] = "test-secret"

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.auth import create_admin_token  # noqa: E402
from app.core.database import async_session_factory, engine  # noqa: E402
from app.core.dependencies import get_now  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base, Member, Reservation, ReservationKind  # noqa: E402
from app.services.club_time import CLUB_TZ  # noqa: E402
from app.services.members import Identity  # noqa: E402

# Monday, 10:00 club time (summer time)
NOW = datetime(2026, 6, 15, 10, 0, tzinfo=CLUB_TZ)


@pytest.fixture(autouse=True)
async def _database():
    """Fresh schema for every test.

    The global engine is created at import time. When pytest-asyncio creates a new
    event loop for tests, any existing pooled connections are bound to the old loop
    and will fail with 'Future attached to a different loop'. Disposing before and
    after each test forces fresh connections in the current loop.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def now():
    return NOW


@pytest.fixture
async def members():
    """Three roster entries: anna, bernd and clara."""
    roster = {
        "anna": ("Anna", "Schmidt", 1985, "anna@example.com"),
        "bernd": ("Bernd", "Weber", 1972, None),
        "clara": ("Clara", "Fischer", 1990, "clara@example.com"),
    }
    async with async_session_factory() as session:
        for first_name, last_name, birth_year, email in roster.values():
            session.add(Member(first_name=first_name, last_name=last_name, birth_year=birth_year, email=email))
        await session.commit()
    return {key: Identity.of(f, l, y) for key, (f, l, y, _) in roster.items()}


@pytest.fixture
def add_reservation():
    """Insert a reservation directly, bypassing the rules engine."""

    async def _add(court, slot_date, hour, kind=ReservationKind.FULL, identity=None, **fields):
        first_name, last_name, birth_year = ("Anna", "Schmidt", 1985)
        if identity is not None:
            first_name, last_name, birth_year = identity.first_name, identity.last_name, identity.birth_year
        reservation = Reservation(
            court=court,
            date=slot_date,
            start_hour=hour,
            kind=kind,
            booker_first_name=first_name,
            booker_last_name=last_name,
            booker_birth_year=birth_year,
            is_joined=fields.pop("is_joined", False),
            created_by_admin=fields.pop("created_by_admin", kind == ReservationKind.SPECIAL),
            **fields,
        )
        async with async_session_factory() as session:
            session.add(reservation)
            await session.commit()
        return reservation

    return _add


@pytest.fixture
async def client(now):
    app.dependency_overrides[get_now] = lambda: now
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_admin_token()}"}
