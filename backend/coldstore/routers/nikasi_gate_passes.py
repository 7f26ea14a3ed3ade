"""Nikasi gate pass routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coldstore.database import get_db, get_session_factory
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.common import ApiResponse
from coldstore.schemas.nikasi_gate_pass import (
    CreatedNikasiGatePass,
    NikasiGatePassCreate,
    NikasiGatePassDetail,
)
from coldstore.services import nikasi as nikasi_service
from coldstore.utils.cache import cached, invalidate_ledger_cache
from coldstore.utils.transaction import run_in_transaction

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[CreatedNikasiGatePass],
    status_code=status.HTTP_201_CREATED,
)
async def create_nikasi_gate_pass(
    body: NikasiGatePassCreate,
    cold_storage_id: str = Depends(get_cold_storage_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async def work(db: AsyncSession) -> CreatedNikasiGatePass:
        nikasi = await nikasi_service.create_nikasi(db, cold_storage_id, body)
        payloads = await nikasi_service.nikasi_payloads(db, [nikasi])
        return payloads[0]

    data = await run_in_transaction(session_factory, work, label="create nikasi gate pass")
    await invalidate_ledger_cache()
    return ApiResponse(data=data, message="Nikasi gate pass created")


@router.get("", response_model=ApiResponse[list[NikasiGatePassDetail]])
@cached(prefix="nikasi-gate-pass")
async def list_nikasi_gate_passes(
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    items = await nikasi_service.list_nikasi(db, cold_storage_id)
    data = await nikasi_service.nikasi_payloads(db, items, populate=True)
    return ApiResponse(data=data)
