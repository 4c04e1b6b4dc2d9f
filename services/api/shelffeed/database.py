"""
Async SQLAlchemy engine + session factory for TiDB (MySQL-protocol).

TiDB is wire-compatible with MySQL 5.7, so we use the aiomysql driver.
The engine is created once at startup and reused across all requests.
Every DataStore call borrows its own short-lived session from
AsyncSessionLocal, so concurrent reference fetches never share a session.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shelffeed.config import settings
from shelffeed.store import DataStore

logger = logging.getLogger(__name__)


def make_engine(url: str) -> AsyncEngine:
    # SQLite (local runs, tests) uses a pool that rejects sizing arguments
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=10,
        echo=False,
    )


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = make_engine(settings.tidb_url)
AsyncSessionLocal = make_sessionmaker(engine)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables if they don't exist (idempotent)."""
    # Import so every model is registered on Base.metadata
    from shelffeed import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_store() -> DataStore:
    """FastAPI dependency that hands out a DataStore over the shared session factory."""
    return DataStore(AsyncSessionLocal)
