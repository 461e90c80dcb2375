"""Async SQLAlchemy engine, declarative base and session factory.

Provides:
- Base: Declarative base shared by every persisted model
- get_engine(): Lazily created async engine singleton
- get_session(): Async generator yielding an AsyncSession
- init_db() / close_db(): Table creation and engine disposal

Every repository in the hub takes a ``session_factory`` callable with the
same shape as get_session(), so tests can bind an engine of their own.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.hub.config import get_settings

SessionFactory = Callable[[], AsyncGenerator[AsyncSession, None]]

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,
        )
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all hub models."""

    metadata = MetaData(naming_convention=naming_convention)


# ── Session Factories ───────────────────────────────────────────────────────


def session_factory_for(engine: AsyncEngine) -> SessionFactory:
    """Build a session factory bound to a specific engine."""

    async def _factory() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    return _factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the application engine."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables if they don't exist."""
    # Import models so they register on Base.metadata
    import src.hub.models.overlay  # noqa: F401
    import src.hub.models.shared  # noqa: F401
    import src.hub.ticketing.models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
