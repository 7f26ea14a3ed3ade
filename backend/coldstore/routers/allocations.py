"""Allocation edge routes — inspect the ledger and release quantity."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coldstore.database import get_db, get_session_factory
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.allocation import (
    AllocationOut,
    BucketState,
    ReleaseOut,
    ReleaseRequest,
    allocation_out,
)
from coldstore.schemas.common import ApiResponse
from coldstore.services import allocation as engine
from coldstore.utils.cache import cached, invalidate_ledger_cache
from coldstore.utils.transaction import run_in_transaction

router = APIRouter()


def _bucket_state(bucket: engine.AllocatableBucket) -> BucketState:
    return BucketState(
        kind=bucket.kind.value,
        gate_pass_id=bucket.gate_pass_id,
        size=bucket.size,
        initial_quantity=bucket.initial_quantity,
        current_quantity=bucket.current_quantity,
    )


@router.get("", response_model=ApiResponse[list[AllocationOut]])
@cached(prefix="allocations")
async def list_allocations(
    consumer_kind: Literal["storage", "nikasi"] | None = Query(None, alias="consumerKind"),
    consumer_gate_pass_id: str | None = Query(None, alias="consumerGatePassId"),
    source_gate_pass_id: str | None = Query(None, alias="sourceGatePassId"),
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    """Debit and credit edges, oldest first."""
    items = await engine.list_allocations(
        db,
        cold_storage_id,
        consumer_kind=consumer_kind,
        consumer_gate_pass_id=consumer_gate_pass_id,
        source_gate_pass_id=source_gate_pass_id,
    )
    return ApiResponse(data=[allocation_out(a) for a in items])


@router.post("/{allocation_id}/release", response_model=ApiResponse[ReleaseOut])
async def release_allocation(
    allocation_id: str,
    body: ReleaseRequest,
    cold_storage_id: str = Depends(get_cold_storage_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Quick-remove: give back part or all of an allocation to its source."""
    async def work(db: AsyncSession) -> ReleaseOut:
        result = await engine.release(
            db,
            cold_storage_id=cold_storage_id,
            allocation_id=allocation_id,
            amount=body.amount,
        )
        return ReleaseOut(
            credit=allocation_out(result.credit),
            released=result.released,
            net_allocated=result.net_allocated,
            source_bucket=_bucket_state(result.source),
            placement_bucket=_bucket_state(result.placement) if result.placement else None,
        )

    data = await run_in_transaction(session_factory, work, label="release allocation")
    await invalidate_ledger_cache()
    return ApiResponse(data=data, message=f"Released {data.released:g} bags")
