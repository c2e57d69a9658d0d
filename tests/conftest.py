"""
Shared pytest fixtures for the registration core tests.

Sets required environment variables BEFORE any enrollment module is imported
so that pydantic-settings and SQLAlchemy engine initialisation use safe test
values.
"""
from __future__ import annotations

import os
from datetime import date
from typing import AsyncGenerator, Optional

# ── Set env vars before any enrollment import ─────────────────────────────────
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SQLITE_BUSY_TIMEOUT", "30")

# ── Third-party ───────────────────────────────────────────────────────────────
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# ── Enrollment imports (safe after env vars are set) ──────────────────────────
from enrollment.models.base import Base, build_engine, build_session_factory
from enrollment.models.models import (
    AgeGroup,
    Category,
    CategoryType,
    DoublesPair,
    Gender,
    PlayerProfile,
    Tournament,
    TournamentStatus,
)
from enrollment.services.tournament_service import (
    create_category,
    create_pair,
    create_player,
    create_tournament,
)


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a fresh AsyncSession backed by an isolated in-memory SQLite database.
    Schema is created fresh for every test function; engine is always disposed
    on teardown, even if the test raises an exception.
    """
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = build_session_factory(engine)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory over a file-backed SQLite database, for tests that run
    several sessions at once (each on its own connection).
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


# ── Data helpers ──────────────────────────────────────────────────────────────

class _Seed:
    """Creates committed directory rows with sensible defaults."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._players = 0

    async def category(
        self,
        name: str = "Open Singles",
        type: str = CategoryType.SINGLES,
        age_group: str = AgeGroup.ALL_AGES,
        gender: str = Gender.MIXED,
    ) -> Category:
        category = await create_category(self.session, name, type, age_group, gender)
        await self.session.commit()
        return category

    async def player(
        self,
        name: Optional[str] = None,
        birth_date: Optional[date] = date(1985, 6, 15),
        gender: Optional[str] = Gender.MEN,
    ) -> PlayerProfile:
        self._players += 1
        player = await create_player(
            self.session,
            name or f"Player {self._players}",
            birth_date=birth_date,
            gender=gender,
        )
        await self.session.commit()
        return player

    async def players(self, n: int, **kwargs) -> list[PlayerProfile]:
        return [await self.player(**kwargs) for _ in range(n)]

    async def tournament(
        self,
        category: Category,
        capacity: Optional[int] = None,
        name: str = "Club Championship",
        status: str = TournamentStatus.SCHEDULED,
        **kwargs,
    ) -> Tournament:
        t = await create_tournament(
            self.session, name, category.id, capacity=capacity, status=status, **kwargs
        )
        await self.session.commit()
        return t

    async def pair(self, category: Category, p1: PlayerProfile, p2: PlayerProfile) -> DoublesPair:
        pair = await create_pair(self.session, category.id, p1.id, p2.id)
        await self.session.commit()
        return pair


@pytest.fixture
def seed(async_session) -> _Seed:
    """Factory fixture bound to the per-test in-memory session."""
    return _Seed(async_session)


@pytest.fixture
def make_seed():
    """Returns the seed class, for sessions created inside the test."""
    return _Seed
