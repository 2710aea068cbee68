"""Shared fixtures: a throwaway SQLite database per test and a few users."""

import asyncio
import uuid
from datetime import date, time
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from telecare.db.sql import configure_engine, dispose_engine, get_sessionmaker, init_db
from telecare.modules.availability.schemas import AvailabilityTemplateBase, TimeWindow
from telecare.modules.users.models import User


def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'telecare.db'}"


async def make_user(session, role: str, first_name: str = "Test") -> User:
    user = User(
        email=f"{role}-{uuid.uuid4().hex[:8]}@example.com",
        password_hash="not-a-real-hash",
        first_name=first_name,
        last_name=role.capitalize(),
        role=role,
        specialization="General Medicine" if role == "doctor" else None,
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def weekday_template() -> AvailabilityTemplateBase:
    """Mon-Sat 09:00-12:00 and 14:00-17:00, 30 minute slots, January 2025, UTC."""
    return AvailabilityTemplateBase(
        valid_from=date(2025, 1, 1),
        valid_until=date(2025, 1, 31),
        excluded_weekdays=[0],
        daily_windows=[
            TimeWindow(start=time(9, 0), end=time(12, 0)),
            TimeWindow(start=time(14, 0), end=time(17, 0)),
        ],
        slot_duration_minutes=30,
        timezone="UTC",
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    # NullPool: no connection outlives the event loop that opened it
    eng = configure_engine(sqlite_url(tmp_path), poolclass=NullPool)
    await init_db()
    yield eng
    await dispose_engine()


@pytest_asyncio.fixture
async def session(engine):
    async with get_sessionmaker()() as s:
        yield s


@pytest_asyncio.fixture
async def doctor(session) -> User:
    return await make_user(session, "doctor", "Gregory")


@pytest_asyncio.fixture
async def second_doctor(session) -> User:
    return await make_user(session, "doctor", "Meredith")


@pytest_asyncio.fixture
async def patient(session) -> User:
    return await make_user(session, "patient", "Alice")


@pytest_asyncio.fixture
async def other_patient(session) -> User:
    return await make_user(session, "patient", "Bob")


@pytest.fixture
def client(tmp_path):
    """TestClient on a fresh database; each request runs on its own loop."""
    from telecare.main import create_app

    configure_engine(sqlite_url(tmp_path), poolclass=NullPool)
    asyncio.run(init_db())
    app = create_app()
    yield TestClient(app)
    app.dependency_overrides.clear()
    asyncio.run(dispose_engine())
