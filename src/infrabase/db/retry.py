"""Retrying reads that lose a race with the database.

``load_snapshot`` reads every topology table in one transaction.  On
PostgreSQL that transaction can be aborted by a concurrent writer, and a
SQLite file can be briefly locked by another ``infrabase`` process.  Both are
worth one more attempt; constraint violations and SQL errors are not.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

ATTEMPTS: int = 4
FIRST_DELAY: float = 0.1
DELAY_CAP: float = 2.0

_RETRIABLE_MESSAGES = (
    "could not serialize access",
    "deadlock",
    "database is locked",
    "connection refused",
    "connection reset",
    "connection lost",
    "server closed",
    "broken pipe",
    "timeout",
)


def is_transient_error(exc: BaseException) -> bool:
    """True for failures a fresh transaction may not hit again."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, OperationalError):
        text = str(exc).lower()
        return any(m in text for m in _RETRIABLE_MESSAGES)
    return False


def _delay(attempt: int) -> float:
    return min(FIRST_DELAY * 2**attempt, DELAY_CAP)


async def _reset_session(args: tuple[Any, ...]) -> None:
    # A failed transaction must be rolled back before the session is reused
    if args and isinstance(args[0], AsyncSession) and args[0].in_transaction():
        await args[0].rollback()


def db_retry(attempts: int = ATTEMPTS) -> Callable:
    """Retry an async store function on transient errors.

    The wrapped function's first argument, if it is an ``AsyncSession``, is
    rolled back between attempts.  The last error is re-raised once
    *attempts* are used up.
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except DBAPIError as exc:
                    if not is_transient_error(exc) or attempt == attempts - 1:
                        raise
                    delay = _delay(attempt)
                    logger.warning(
                        "%s failed (attempt %d of %d), retrying in %.2fs: %s",
                        func.__name__, attempt + 1, attempts, delay, exc,
                    )
                    await _reset_session(args)
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper

    return decorator
