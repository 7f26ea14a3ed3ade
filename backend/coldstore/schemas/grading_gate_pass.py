"""Pydantic schemas for grading gate passes."""

from datetime import date

from pydantic import Field

from coldstore.schemas.common import CamelModel, DocumentOut, iso
from coldstore.schemas.incoming_gate_pass import IncomingGatePassDetail, incoming_detail


class GradingOrderDetail(CamelModel):
    """One size row of a grading gate pass."""
    size: str = Field(..., min_length=1, max_length=50)
    bag_type: str = Field(..., min_length=1, max_length=50)
    # Accepted on create for shape compatibility; a new bucket always starts full
    current_quantity: float | None = None
    initial_quantity: float
    weight_per_bag_kg: float = Field(..., ge=0, allow_inf_nan=False)


class GradingGatePassCreate(CamelModel):
    """Payload for POST /api/grading-gate-pass."""
    incoming_gate_pass_id: str
    graded_by_id: str
    gate_pass_no: int | None = Field(None, ge=1)
    date: date
    variety: str = Field(..., min_length=1, max_length=100)
    order_details: list[GradingOrderDetail] = Field(..., min_length=1)
    # Derived from the buckets; the client's value is ignored
    allocation_status: str | None = None
    remarks: str | None = None
    manual_gate_pass_number: int | None = None


class GradedBy(CamelModel):
    id: str = Field(alias="_id")


class CreatedGradingGatePass(DocumentOut):
    """Grading gate pass with references as ids (POST response)."""
    incoming_gate_pass_id: str
    graded_by_id: str
    gate_pass_no: int
    manual_gate_pass_number: int | None = None
    date: str
    variety: str
    order_details: list[GradingOrderDetail]
    allocation_status: str
    remarks: str | None = None


class GradingGatePassDetail(CreatedGradingGatePass):
    """Grading gate pass with incoming gate pass and farmer populated."""
    incoming_gate_pass_id: IncomingGatePassDetail
    graded_by_id: GradedBy


def order_details_out(grading) -> list[GradingOrderDetail]:
    return [
        GradingOrderDetail(
            size=bucket.size,
            bag_type=bucket.bag_type,
            current_quantity=bucket.current_quantity,
            initial_quantity=bucket.initial_quantity,
            weight_per_bag_kg=bucket.weight_per_bag_kg,
        )
        for bucket in grading.buckets
    ]


def _common_fields(grading) -> dict:
    return dict(
        id=grading.id,
        gate_pass_no=grading.gate_pass_no,
        manual_gate_pass_number=grading.manual_gate_pass_number,
        date=iso(grading.date),
        variety=grading.variety,
        order_details=order_details_out(grading),
        allocation_status=grading.allocation_status,
        remarks=grading.remarks,
        created_at=iso(grading.created_at),
        updated_at=iso(grading.updated_at),
        revision=grading.revision or 0,
    )


def grading_out(grading) -> CreatedGradingGatePass:
    """Requires ``buckets`` to be loaded."""
    return CreatedGradingGatePass(
        incoming_gate_pass_id=grading.incoming_gate_pass_id,
        graded_by_id=grading.graded_by_id,
        **_common_fields(grading),
    )


def grading_detail(grading) -> GradingGatePassDetail:
    """Requires ``buckets`` and ``incoming_gate_pass.farmer_storage_link.farmer`` loaded."""
    return GradingGatePassDetail(
        incoming_gate_pass_id=incoming_detail(grading.incoming_gate_pass),
        graded_by_id=GradedBy(id=grading.graded_by_id),
        **_common_fields(grading),
    )
