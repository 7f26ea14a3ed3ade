"""Farmer routes — register a farmer and link an account at this store."""

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coldstore.database import get_db
from coldstore.deps import get_cold_storage_id
from coldstore.middleware.exceptions import InvalidInputError
from coldstore.models.farmer import Farmer, FarmerStorageLink
from coldstore.schemas.common import ApiResponse
from coldstore.schemas.farmer import FarmerCreate, FarmerStorageLinkOut, farmer_link_out
from coldstore.utils.cache import cached, invalidate_cache

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[FarmerStorageLinkOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_farmer(
    body: FarmerCreate,
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    """Create the farmer (or reuse one by mobile number) and open an account."""
    farmer = (
        await db.execute(select(Farmer).where(Farmer.mobile_number == body.mobile_number))
    ).scalar_one_or_none()
    if farmer is None:
        farmer = Farmer(
            name=body.name,
            address=body.address,
            mobile_number=body.mobile_number,
            image_url=body.image_url,
        )
        db.add(farmer)
        await db.flush()

    existing = (
        await db.execute(
            select(FarmerStorageLink).where(
                FarmerStorageLink.farmer_id == farmer.id,
                FarmerStorageLink.cold_storage_id == cold_storage_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise InvalidInputError(
            f"Farmer {farmer.name} already has account #{existing.account_number} at this store",
            error_code="DUPLICATE_FARMER_ACCOUNT",
        )

    account_number = body.account_number
    if account_number is None:
        last = await db.scalar(
            select(func.max(FarmerStorageLink.account_number)).where(
                FarmerStorageLink.cold_storage_id == cold_storage_id
            )
        )
        account_number = (last or 0) + 1

    link = FarmerStorageLink(
        farmer=farmer,
        cold_storage_id=cold_storage_id,
        account_number=account_number,
        notes=body.notes,
        is_active=True,
    )
    db.add(link)
    await db.flush()

    await invalidate_cache("farmers:*")
    return ApiResponse(data=farmer_link_out(link), message="Farmer added")


@router.get("", response_model=ApiResponse[list[FarmerStorageLinkOut]])
@cached(prefix="farmers")
async def list_farmers(
    cold_storage_id: str = Depends(get_cold_storage_id),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(FarmerStorageLink)
        .where(FarmerStorageLink.cold_storage_id == cold_storage_id)
        .options(selectinload(FarmerStorageLink.farmer))
        .order_by(FarmerStorageLink.account_number)
    )
    return ApiResponse(data=[farmer_link_out(link) for link in result.scalars().all()])
