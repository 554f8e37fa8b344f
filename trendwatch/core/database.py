"""
Database engine and session management.

Async SQLAlchemy engine shared by the API, Celery tasks and scripts.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from trendwatch.core.config import settings

Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local tooling) does not take pool sizing arguments
    if url.startswith("sqlite"):
        return {"echo": settings.DB_ECHO}
    return {
        "echo": settings.DB_ECHO,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def close_db() -> None:
    """Dispose of the engine connection pool."""
    await engine.dispose()
