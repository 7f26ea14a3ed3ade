"""Incoming gate pass routes — lot intake, listing and closing."""

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coldstore.database import get_db, get_session_factory
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.common import ApiResponse
from coldstore.schemas.incoming_gate_pass import (
    IncomingGatePassCreate,
    IncomingGatePassDetail,
    IncomingGatePassOut,
    incoming_detail,
    incoming_out,
)
from coldstore.services import lots
from coldstore.utils.cache import cached, invalidate_ledger_cache
from coldstore.utils.transaction import run_in_transaction

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[IncomingGatePassOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_incoming_gate_pass(
    body: IncomingGatePassCreate,
    cold_storage_id: str = Depends(get_cold_storage_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async def work(db: AsyncSession) -> IncomingGatePassOut:
        lot = await lots.create_incoming(db, cold_storage_id, body)
        return incoming_out(lot)

    data = await run_in_transaction(session_factory, work, label="create incoming gate pass")
    await invalidate_ledger_cache()
    return ApiResponse(data=data, message="Incoming gate pass created")


@router.get("", response_model=ApiResponse[list[IncomingGatePassDetail]])
@cached(prefix="incoming-gate-pass")
async def list_incoming_gate_passes(
    status_filter: Literal["OPEN", "CLOSED"] | None = Query(None, alias="status"),
    farmer_storage_link_id: str | None = Query(None, alias="farmerStorageLinkId"),
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    items = await lots.list_incoming(
        db, cold_storage_id, status=status_filter, farmer_storage_link_id=farmer_storage_link_id
    )
    return ApiResponse(data=[incoming_detail(lot) for lot in items])


@router.post("/{incoming_gate_pass_id}/close", response_model=ApiResponse[IncomingGatePassOut])
async def close_incoming_gate_pass(
    incoming_gate_pass_id: str,
    cold_storage_id: str = Depends(get_cold_storage_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async def work(db: AsyncSession) -> IncomingGatePassOut:
        lot = await lots.close_incoming(db, cold_storage_id, incoming_gate_pass_id)
        return incoming_out(lot)

    data = await run_in_transaction(session_factory, work, label="close incoming gate pass")
    await invalidate_ledger_cache()
    return ApiResponse(data=data, message="Incoming gate pass closed")
