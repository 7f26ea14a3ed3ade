"""FastAPI dependencies shared by the ledger routers.

Dependencies:
  get_cold_storage_id  → resolve the store from X-Cold-Storage-Id (or the
                         DEFAULT_COLD_STORAGE_ID setting) and verify it exists
"""

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.config import settings
from coldstore.database import get_db
from coldstore.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from coldstore.models.cold_storage import ColdStorage
from coldstore.store_context import set_current_store


async def get_cold_storage_id(
    x_cold_storage_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Return the active cold storage id for this request."""
    cold_storage_id = x_cold_storage_id or settings.default_cold_storage_id
    if not cold_storage_id:
        raise InvalidInputError(
            "No cold storage selected: send X-Cold-Storage-Id or set DEFAULT_COLD_STORAGE_ID",
            error_code="MISSING_COLD_STORAGE",
        )

    store = (
        await db.execute(
            select(ColdStorage).where(
                ColdStorage.id == cold_storage_id,
                ColdStorage.is_active == True,  # noqa: E712
            )
        )
    ).scalar_one_or_none()
    if not store:
        raise ResourceNotFoundError("Cold storage", cold_storage_id)

    set_current_store(store.id)
    return store.id
