"""Transactional ledger writes with bounded conflict retries.

Every write that moves quantity runs as::

    result = await run_in_transaction(session_factory, work)

where ``work(session)`` does all reads, validation and mutation against a
fresh session.  A concurrent modification (stale version_id, a row lock
held elsewhere, SQLite's "database is locked") rolls the attempt back and
runs ``work`` again on a new session, up to ALLOCATION_MAX_RETRIES times.
After that the caller sees ConflictError (409, retryable).

Domain errors (NotFound, InvalidInput, InsufficientQuantity) roll back and
propagate immediately.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from coldstore.config import settings
from coldstore.middleware.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL lock_not_available / serialization_failure / deadlock_detected
_CONFLICT_SQLSTATES = {"55P03", "40001", "40P01"}


def is_conflict(exc: Exception) -> bool:
    """True when ``exc`` means another transaction touched the same rows."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if code in _CONFLICT_SQLSTATES:
            return True
        message = str(orig).lower()
        return "could not obtain lock" in message or "database is locked" in message
    return False


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    label: str = "ledger write",
) -> T:
    """Run ``work`` in its own transaction, retrying on conflicts."""
    attempts = max(1, settings.allocation_max_retries)
    backoff = settings.allocation_retry_backoff_ms / 1000

    for attempt in range(1, attempts + 1):
        async with session_factory() as session:
            try:
                result = await work(session)
                await session.commit()
                return result
            except (StaleDataError, DBAPIError) as exc:
                await session.rollback()
                if not is_conflict(exc):
                    raise
                logger.warning(
                    f"Conflict during {label} (attempt {attempt}/{attempts}): {exc}",
                    extra={"label": label, "attempt": attempt},
                )
                if attempt == attempts:
                    raise ConflictError() from exc
            except Exception:
                await session.rollback()
                raise

        await asyncio.sleep(backoff * attempt)

    # Unreachable: the last attempt either returns or raises
    raise ConflictError()
