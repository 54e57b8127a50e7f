"""
Database Session
================
Async engine and session factory shared by the services.
"""

from functools import lru_cache
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from logging_config import get_logger

from .models import Base

logger = get_logger(__name__)


@lru_cache
def get_engine(database_url: str) -> AsyncEngine:
    """Create (once per URL) the async engine."""
    return create_async_engine(database_url, echo=False)


def get_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        get_engine(database_url),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(database_url: str) -> None:
    """
    Create tables if they do not exist.

    For SQLite URLs the parent directory of the database file is created first.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = get_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized", backend=url.get_backend_name())


async def dispose_engine(database_url: str) -> None:
    await get_engine(database_url).dispose()
    get_engine.cache_clear()
