"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory. The engine is
created on first use so the in-memory backend never opens a pool.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from storefront.infrastructure.config import settings

# Base class for models
Base = declarative_base()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_session_factory(database_url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to a new engine.

    Args:
        database_url: SQLAlchemy async URL.
        echo: Log SQL statements.

    Returns:
        Session factory for the engine.
    """
    engine = create_async_engine(database_url, echo=echo, pool_pre_ping=True)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory singleton."""
    global _engine, _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(settings.database_url, echo=settings.debug)
        _engine = _session_factory.kw["bind"]
    return _session_factory


async def dispose_engine() -> None:
    """Close the application engine's pool, if one was opened."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None

