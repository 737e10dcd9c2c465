from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from solvo.config import get_settings


def get_async_engine(db_url: str, echo: bool = False, pool_size: int = 10) -> AsyncEngine:
    """Creates an asynchronous SQLAlchemy engine instance."""
    if db_url.startswith("sqlite"):
        # SQLite has no server-side pool to size
        return create_async_engine(db_url, echo=echo)
    return create_async_engine(
        db_url,
        pool_size=pool_size,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=1800, # 30 minutes
        echo=echo,
    )

def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Creates an asynchronous session factory."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False, # Important for async usage, especially with FastAPI
    )


@lru_cache(maxsize=1)
def default_session_factory() -> async_sessionmaker[AsyncSession]:
    """Engine and factory for the configured database, built on first use."""
    db = get_settings().database
    return get_session_factory(get_async_engine(db.url, echo=db.echo, pool_size=db.pool_size))


async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency to provide a database session.

    One session per request; it is rolled back on error and closed when the
    request finishes. Writers commit explicitly.
    """
    async with default_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
