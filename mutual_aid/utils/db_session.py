from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from typing import AsyncGenerator, Optional
from functools import lru_cache
from contextlib import asynccontextmanager

from mutual_aid.config.settings import settings
from mutual_aid.models.base import Base


@lru_cache
def get_async_engine() -> AsyncEngine:
    """Returns a cached instance of the async engine with a bounded connection pool."""
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


@lru_cache
def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Returns a cached instance of the async session factory."""
    return async_sessionmaker(
        bind=get_async_engine(),
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields an SQLAlchemy async session.

    Commits on success, rolls back on error, and always returns the
    connection to the pool.
    """
    factory = get_async_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_session_context_manager(existing_session: Optional[AsyncSession] = None) -> AsyncGenerator[AsyncSession, None]:
    """
    Provides an SQLAlchemy async session within an asynchronous context manager.

    If an `existing_session` is provided, it yields that session and the caller
    is responsible for its lifecycle (commit, rollback, close).
    Otherwise, it creates a new session, and ensures it is committed on
    successful exit, rolled back on error, and closed regardless.
    """
    if existing_session is not None:
        yield existing_session
        return

    factory = get_async_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_all_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create every table registered on the ORM metadata if it does not exist."""
    import mutual_aid.models  # noqa: F401  registers all ORM models

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_connection(engine: Optional[AsyncEngine] = None) -> bool:
    from sqlalchemy import text

    engine = engine or get_async_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True
