"""Storage gate pass routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coldstore.database import get_db, get_session_factory
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.common import ApiResponse
from coldstore.schemas.storage_gate_pass import (
    CreatedStorageGatePass,
    StorageGatePassCreate,
    StorageGatePassDetail,
)
from coldstore.services import storage as storage_service
from coldstore.utils.cache import cached, invalidate_ledger_cache
from coldstore.utils.transaction import run_in_transaction

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[CreatedStorageGatePass],
    status_code=status.HTTP_201_CREATED,
)
async def create_storage_gate_pass(
    body: StorageGatePassCreate,
    cold_storage_id: str = Depends(get_cold_storage_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Place graded bags; all allocations succeed together or none do."""
    async def work(db: AsyncSession) -> CreatedStorageGatePass:
        storage = await storage_service.create_storage(db, cold_storage_id, body)
        payloads = await storage_service.storage_payloads(db, [storage])
        return payloads[0]

    data = await run_in_transaction(session_factory, work, label="create storage gate pass")
    await invalidate_ledger_cache()
    return ApiResponse(data=data, message="Storage gate pass created")


@router.get("", response_model=ApiResponse[list[StorageGatePassDetail]])
@cached(prefix="storage-gate-pass")
async def list_storage_gate_passes(
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    items = await storage_service.list_storage(db, cold_storage_id)
    data = await storage_service.storage_payloads(db, items, populate=True)
    return ApiResponse(data=data)
