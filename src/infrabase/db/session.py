"""AsyncSession factory and table management."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

import infrabase.db.models  # noqa: F401 -- registers all tables with SQLModel.metadata

logger = logging.getLogger(__name__)


def async_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a new ``async_sessionmaker`` bound to *engine*.

    Sessions use ``expire_on_commit=False`` so rows stay readable after
    the transaction that loaded them commits.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def open_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield one session for the duration of a CLI command."""
    factory = async_session_factory(engine)
    async with factory() as session:
        yield session


async def create_tables(engine: AsyncEngine) -> None:
    """Create all SQLModel tables in the database.

    Intended for development, tests and ``infrabase init-db`` on a fresh
    SQLite file.  Existing deployments should use the Alembic migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("All SQLModel tables created")
