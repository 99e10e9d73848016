"""
Async SQLAlchemy engine / session factory for the credential store.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config.settings import config
from database.models import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an engine; pool sizing only applies to server databases."""
    url = database_url or config.database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=config.database_echo)
    return create_async_engine(
        url,
        echo=config.database_echo,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the connections tables if they don't exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Connection tables created or already present")