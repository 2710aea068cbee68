# telecare/db/sql.py
from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from telecare.core.config import settings
from telecare.db.base import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


def configure_engine(dsn: str | None = None, **engine_kwargs) -> AsyncEngine:
    """
    (Re)build the engine and session factory. Called lazily with the
    settings DSN; tests call it with their own DSN.
    """
    global _engine, _sessionmaker

    dsn = dsn or settings.SQL_DSN
    if not engine_kwargs and not dsn.startswith("sqlite"):
        engine_kwargs = dict(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
        )
    _engine = create_async_engine(dsn, echo=settings.DB_ECHO, **engine_kwargs)
    _sessionmaker = async_sessionmaker(
        bind=_engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )
    return _engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        configure_engine()
    return _engine  # type: ignore[return-value]


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        configure_engine()
    return _sessionmaker  # type: ignore[return-value]


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provide a DB session for each request.
    Commit on success, rollback on any error raised by the handler.
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db() -> bool:
    async with get_sessionmaker()() as session:
        await session.execute(text("SELECT 1"))
        return True


async def init_db(drop: bool = False) -> None:
    """
    Create all tables (optionally dropping them first).
    """
    # Import all models so Base.metadata knows them
    from telecare.modules.users import models as _users  # noqa: F401
    from telecare.modules.availability import models as _availability  # noqa: F401
    from telecare.modules.appointments import models as _appointments  # noqa: F401
    from telecare.modules import audit as _audit  # noqa: F401

    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (drop=%s)", drop)
