"""Grading gate pass routes."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coldstore.database import get_db, get_session_factory
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.common import ApiResponse
from coldstore.schemas.grading_gate_pass import (
    CreatedGradingGatePass,
    GradingGatePassCreate,
    GradingGatePassDetail,
    grading_detail,
    grading_out,
)
from coldstore.services import grading as grading_service
from coldstore.utils.cache import cached, invalidate_ledger_cache
from coldstore.utils.transaction import run_in_transaction

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[CreatedGradingGatePass],
    status_code=status.HTTP_201_CREATED,
)
async def create_grading_gate_pass(
    body: GradingGatePassCreate,
    cold_storage_id: str = Depends(get_cold_storage_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Split an open lot into sized buckets."""
    async def work(db: AsyncSession) -> CreatedGradingGatePass:
        grading = await grading_service.create_grading(db, cold_storage_id, body)
        return grading_out(grading)

    data = await run_in_transaction(session_factory, work, label="create grading gate pass")
    await invalidate_ledger_cache()
    return ApiResponse(data=data, message="Grading gate pass created")


@router.get("", response_model=ApiResponse[list[GradingGatePassDetail]])
@cached(prefix="grading-gate-pass")
async def list_grading_gate_passes(
    farmer_storage_link_id: str | None = Query(None, alias="farmerStorageLinkId"),
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    """Grading gate passes with live bucket balances, newest first."""
    items = await grading_service.list_grading(
        db, cold_storage_id, farmer_storage_link_id=farmer_storage_link_id
    )
    return ApiResponse(data=[grading_detail(g) for g in items])
