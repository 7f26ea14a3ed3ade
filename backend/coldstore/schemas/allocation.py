"""Pydantic schemas for allocation edges and releases."""

from pydantic import Field

from coldstore.schemas.common import CamelModel, iso


class AllocationOut(CamelModel):
    id: str = Field(alias="_id")
    source_kind: str
    source_bucket_id: str
    source_gate_pass_id: str
    size: str
    consumer_kind: str
    consumer_gate_pass_id: str
    # Positive = debit, negative = credit
    quantity: float
    quantity_available: float | None = None
    reverses_id: str | None = None
    chamber: str | None = None
    floor: str | None = None
    row: str | None = None
    created_at: str | None = None


class ReleaseRequest(CamelModel):
    """Payload for POST /api/allocations/{id}/release."""
    amount: float


class BucketState(CamelModel):
    kind: str
    gate_pass_id: str
    size: str
    initial_quantity: float
    current_quantity: float


class ReleaseOut(CamelModel):
    credit: AllocationOut
    released: float
    net_allocated: float
    source_bucket: BucketState
    # Storage placement that shrank with the release (storage consumers only)
    placement_bucket: BucketState | None = None


def allocation_out(allocation) -> AllocationOut:
    return AllocationOut(
        id=allocation.id,
        source_kind=allocation.source_kind,
        source_bucket_id=allocation.source_bucket_id,
        source_gate_pass_id=allocation.source_gate_pass_id,
        size=allocation.size,
        consumer_kind=allocation.consumer_kind,
        consumer_gate_pass_id=allocation.consumer_gate_pass_id,
        quantity=allocation.quantity,
        quantity_available=allocation.quantity_available,
        reverses_id=allocation.reverses_id,
        chamber=allocation.chamber,
        floor=allocation.floor,
        row=allocation.row,
        created_at=iso(allocation.created_at),
    )
