"""Alembic environment for the infrabase inventory database.

Migrations run on an async engine built from ``DATABASE_URL`` the same way
the CLI builds its own.
"""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlmodel import SQLModel

from infrabase.db.engine import create_async_engine_from_url, normalize_url
from infrabase.db.models import *  # noqa: F401, F403 -- registers the tables

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name, disable_existing_loggers=False)

MIGRATION_OPTIONS = {
    "target_metadata": SQLModel.metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("Set DATABASE_URL before running infrabase migrations")
    return normalize_url(url)


def _migrate(connection: Connection | None = None, **options) -> None:
    context.configure(connection=connection, **MIGRATION_OPTIONS, **options)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_async_engine_from_url(_database_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _migrate(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
else:
    asyncio.run(_migrate_online())
