"""Voucher number preview for the gate-pass forms."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.database import get_db
from coldstore.deps import get_cold_storage_id
from coldstore.schemas.common import CamelModel
from coldstore.utils.numbering import peek_next_number

router = APIRouter()


class VoucherNumberOut(CamelModel):
    type: str
    next_voucher_number: int


@router.get("", response_model=VoucherNumberOut)
async def get_next_voucher_number(
    pass_type: Literal[
        "incoming-gate-pass", "grading-gate-pass", "storage-gate-pass", "nikasi-gate-pass"
    ] = Query(..., alias="type"),
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    """Number the next gate pass of this type would receive.

    Read-only; the number is only consumed when the gate pass is created.
    """
    number = await peek_next_number(db, cold_storage_id, pass_type)
    return VoucherNumberOut(type=pass_type, next_voucher_number=number)
