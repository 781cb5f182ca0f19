"""Async database engine and session management.

Configures the SQLAlchemy async engine with connection pooling and provides
a transactional session scope. Engines are built from Settings on demand;
there is no module-level engine.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tokenguard.core.config import Settings

# SQLite write lock wait, in seconds
_SQLITE_BUSY_TIMEOUT = 30


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database."""
    url = settings.database_url
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT
    return create_async_engine(
        url,
        echo=settings.environment == "development",
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by all tokenguard services."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session that commits on success and rolls back on error."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
