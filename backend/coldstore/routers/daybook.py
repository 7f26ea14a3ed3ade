"""Daybook routes."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.database import get_db
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.common import ApiResponse
from coldstore.schemas.daybook import DaybookGatePassType, DaybookPage
from coldstore.services import daybook as daybook_service
from coldstore.utils.cache import cached

router = APIRouter()


@router.get("", response_model=ApiResponse[DaybookPage])
@cached(prefix="daybook")
async def get_daybook(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    gate_pass_type: list[DaybookGatePassType] | None = Query(None, alias="gatePassType"),
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    """Lots with every gate pass that drew on them, paginated.

    ``gatePassType`` may repeat; a lot is listed when it has at least one
    gate pass of any requested type.
    """
    data = await daybook_service.get_daybook(
        db,
        cold_storage_id,
        page=page,
        limit=limit,
        sort_order=sort_order,
        gate_pass_types=gate_pass_type,
    )
    return ApiResponse(data=data)
