"""
Database engine and session management.

Requests receive one AsyncSession each through get_db(); background jobs open
their own with get_async_session().
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gatekeeper.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    """Pool options for server databases; SQLite ignores pool sizing."""
    if url.startswith("sqlite"):
        return {"echo": settings.DB_ECHO}
    return {
        "echo": settings.DB_ECHO,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,  # Recycle connections every hour (MariaDB wait_timeout is 8 hours)
    }


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Commits when the request handler returns normally and rolls back when it
    raises, so a failed login never leaves half of its writes behind in the
    same transaction.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_async_session() -> AsyncSession:
    """
    Get a standalone async database session for background tasks.

    Use with 'async with':
        async with get_async_session() as db:
            await daily_sweep(db, now)
            await db.commit()

    Note: Caller is responsible for committing/rolling back.
    """
    return AsyncSessionLocal()


async def init_models() -> None:
    """Create missing tables (development convenience; production uses Alembic)."""
    from sqlmodel import SQLModel

    import gatekeeper.models  # noqa: F401  # registers tables on SQLModel.metadata

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
