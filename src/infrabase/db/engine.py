"""Async engine for the inventory database.

``DATABASE_URL`` may name PostgreSQL or SQLite with or without an async
driver; it is rewritten to ``postgresql+asyncpg`` or ``sqlite+aiosqlite``.
The CLI creates one engine per command with :func:`init_engine` and disposes
of it with :func:`dispose_engine` before ``asyncio.run`` returns.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

_DRIVER_PREFIXES = (
    ("postgres://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
    ("sqlite://", "sqlite+aiosqlite://"),
)

_engine: AsyncEngine | None = None


def normalize_url(url: str) -> str:
    """Rewrite a driver-less URL to use asyncpg or aiosqlite."""
    for plain, async_prefix in _DRIVER_PREFIXES:
        if url.startswith(plain):
            return async_prefix + url[len(plain):]
    return url


def create_async_engine_from_url(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an ``AsyncEngine`` with per-backend connection defaults.

    Keyword arguments are passed to ``create_async_engine`` and win over
    the defaults.

    Raises:
        ValueError: If the URL is neither PostgreSQL nor SQLite.
    """
    url = normalize_url(url)
    options: dict[str, Any] = {"echo": False}

    if url.startswith("postgresql+"):
        options["pool_size"] = int(os.environ.get("DB_POOL_SIZE", "5"))
        options["max_overflow"] = int(os.environ.get("DB_MAX_OVERFLOW", "10"))
    elif url.startswith("sqlite+"):
        # Another infrabase process may hold the file lock while writing
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        raise ValueError(f"Unsupported DATABASE_URL scheme: {url.split('://')[0]}")

    options.update(kwargs)
    logger.debug("Creating engine for %s", url.split("://")[0])
    return create_async_engine(url, **options)


def get_engine() -> AsyncEngine:
    """Return the engine created by :func:`init_engine`.

    Raises:
        RuntimeError: If no engine has been created.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine() first.")
    return _engine


def init_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create the engine, or return it if it already exists."""
    global _engine  # noqa: PLW0603

    if _engine is None:
        _engine = create_async_engine_from_url(url, **kwargs)
    return _engine


async def dispose_engine() -> None:
    global _engine  # noqa: PLW0603

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.debug("Engine disposed")
