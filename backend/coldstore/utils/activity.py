"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        db, cold_storage_id, action="created", entity_type="storage_gate_pass",
        entity_id=storage.id, entity_code=f"#{storage.gate_pass_no}",
        summary="Placed 40 bags from 1 grading gate pass",
    )

The row is added to the current session and committed with the
enclosing transaction; no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.models.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    cold_storage_id: str | None,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
    actor_id: str | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    entry = ActivityLog(
        cold_storage_id=cold_storage_id,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary,
        details=details,
    )
    db.add(entry)


async def edit_history(
    db: AsyncSession, entity_ids: list[str]
) -> dict[str, list[ActivityLog]]:
    """Activity entries per entity id, oldest first."""
    history: dict[str, list[ActivityLog]] = {entity_id: [] for entity_id in entity_ids}
    if not entity_ids:
        return history
    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.entity_id.in_(entity_ids))
        .order_by(ActivityLog.created_at, ActivityLog.id)
    )
    for entry in result.scalars().all():
        history[entry.entity_id].append(entry)
    return history
