"""Gate-pass number issuance.

Each cold storage owns one GatePassCounter row per pass type.  Numbers
are issued inside the transaction that creates the gate pass, so a rolled
back write never consumes a number and two concurrent writes can never
receive the same one (the counter is row-locked where the database
supports it and version-checked everywhere).

Pass types:
  incoming-gate-pass
  grading-gate-pass
  storage-gate-pass
  nikasi-gate-pass
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.config import settings
from coldstore.middleware.exceptions import GatePassNumberConflictError, InvalidInputError
from coldstore.models.cold_storage import GatePassCounter

logger = logging.getLogger(__name__)

INCOMING = "incoming-gate-pass"
GRADING = "grading-gate-pass"
STORAGE = "storage-gate-pass"
NIKASI = "nikasi-gate-pass"

PASS_TYPES = (INCOMING, GRADING, STORAGE, NIKASI)


def _check_type(pass_type: str) -> None:
    if pass_type not in PASS_TYPES:
        raise InvalidInputError(
            f"Unknown gate pass type: {pass_type}",
            details={"allowed": list(PASS_TYPES)},
        )


async def _get_counter(
    db: AsyncSession, cold_storage_id: str, pass_type: str, lock: bool = False
) -> GatePassCounter | None:
    stmt = select(GatePassCounter).where(
        GatePassCounter.cold_storage_id == cold_storage_id,
        GatePassCounter.pass_type == pass_type,
    )
    if lock:
        stmt = stmt.with_for_update(nowait=settings.allocation_lock_nowait)
    return (await db.execute(stmt)).scalar_one_or_none()


async def ensure_counters(db: AsyncSession, cold_storage_id: str) -> None:
    """Create the missing counters for a store (all start at 0)."""
    result = await db.execute(
        select(GatePassCounter.pass_type).where(
            GatePassCounter.cold_storage_id == cold_storage_id
        )
    )
    existing = set(result.scalars().all())
    for pass_type in PASS_TYPES:
        if pass_type not in existing:
            db.add(GatePassCounter(
                cold_storage_id=cold_storage_id, pass_type=pass_type, last_number=0,
            ))
    await db.flush()


async def issue_gate_pass_number(
    db: AsyncSession,
    cold_storage_id: str,
    pass_type: str,
    proposed: int | None = None,
) -> int:
    """Issue the next gate-pass number for a store and pass type.

    A client-proposed number is accepted when it is above the last issued
    one (the counter jumps to it); anything else is a duplicate.

    Raises:
        GatePassNumberConflictError: proposed number already issued.
    """
    _check_type(pass_type)
    counter = await _get_counter(db, cold_storage_id, pass_type, lock=True)
    if counter is None:
        counter = GatePassCounter(
            cold_storage_id=cold_storage_id, pass_type=pass_type, last_number=0,
        )
        db.add(counter)

    last = counter.last_number or 0
    if proposed is not None:
        if proposed <= last:
            raise GatePassNumberConflictError(pass_type, proposed, last)
        number = proposed
    else:
        number = last + 1

    counter.last_number = number
    await db.flush()
    logger.debug(f"Issued {pass_type} #{number} for store {cold_storage_id}")
    return number


async def peek_next_number(db: AsyncSession, cold_storage_id: str, pass_type: str) -> int:
    """Return the number the next gate pass would receive (read-only)."""
    _check_type(pass_type)
    counter = await _get_counter(db, cold_storage_id, pass_type)
    return (counter.last_number if counter else 0) + 1
