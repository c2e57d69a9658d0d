"""
SQLAlchemy declarative base, async engine/session factory and the unit-of-work helper.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from enrollment.config import settings


class Base(DeclarativeBase):
    pass


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine.

    SQLite does not honour SELECT ... FOR UPDATE, so every transaction on a
    SQLite engine is opened with BEGIN IMMEDIATE: the write lock is taken up
    front and concurrent writers queue on the busy timeout instead of
    interleaving their reads.
    """
    is_sqlite = url.startswith("sqlite")
    connect_args = {"timeout": settings.SQLITE_BUSY_TIMEOUT} if is_sqlite else {}
    new_engine = create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

    if is_sqlite:
        @event.listens_for(new_engine.sync_engine, "connect")
        def _disable_driver_begin(dbapi_connection, connection_record):
            # the driver must not emit its own deferred BEGIN
            dbapi_connection.isolation_level = None

        @event.listens_for(new_engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.async_database_url, echo=settings.SQL_ECHO)

AsyncSessionFactory: async_sessionmaker[AsyncSession] = build_session_factory(engine)


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one unit of work on ``session``.

    Commits the session's current transaction when the block exits normally,
    rolls it back and re-raises on any exception.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
