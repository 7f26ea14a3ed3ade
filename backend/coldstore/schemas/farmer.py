"""Pydantic schemas for farmers and their cold-storage accounts."""

from pydantic import Field

from coldstore.schemas.common import CamelModel, DocumentOut, iso


class FarmerCreate(CamelModel):
    """Payload for POST /api/farmers; registers a farmer and links an account."""
    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = None
    mobile_number: str = Field(..., min_length=1, max_length=20)
    image_url: str | None = None
    # Omitted → next free account number at this store
    account_number: int | None = Field(None, ge=1)
    notes: str | None = None


class FarmerOut(CamelModel):
    id: str = Field(alias="_id")
    name: str
    address: str | None = None
    mobile_number: str
    image_url: str | None = None


class FarmerStorageLinkOut(DocumentOut):
    farmer_id: FarmerOut
    cold_storage_id: str
    account_number: int
    is_active: bool
    notes: str | None = None


def farmer_out(farmer) -> FarmerOut:
    return FarmerOut(
        id=farmer.id,
        name=farmer.name,
        address=farmer.address,
        mobile_number=farmer.mobile_number,
        image_url=farmer.image_url,
    )


def farmer_link_out(link) -> FarmerStorageLinkOut:
    return FarmerStorageLinkOut(
        id=link.id,
        farmer_id=farmer_out(link.farmer),
        cold_storage_id=link.cold_storage_id,
        account_number=link.account_number,
        is_active=link.is_active,
        notes=link.notes,
        created_at=iso(link.created_at),
        updated_at=iso(link.updated_at),
    )
