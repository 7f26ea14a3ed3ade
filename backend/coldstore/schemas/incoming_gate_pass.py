"""Pydantic schemas for incoming gate passes (lots)."""

from datetime import date
from typing import Literal

from pydantic import Field

from coldstore.schemas.common import CamelModel, DocumentOut, iso
from coldstore.schemas.farmer import FarmerStorageLinkOut, farmer_link_out


class WeightSlip(CamelModel):
    slip_number: str | None = None
    gross_weight_kg: float | None = Field(None, ge=0, allow_inf_nan=False)
    tare_weight_kg: float | None = Field(None, ge=0, allow_inf_nan=False)


class GradingSummary(CamelModel):
    total_graded_bags: float = 0


class IncomingGatePassCreate(CamelModel):
    """Payload for POST /api/incoming-gate-pass.

    ``status`` and ``gradingSummary`` are accepted for shape compatibility;
    a new lot always starts OPEN with nothing graded.
    """
    farmer_storage_link_id: str
    received_by_id: str | None = None
    gate_pass_no: int | None = Field(None, ge=1)
    date: date
    variety: str = Field(..., min_length=1, max_length=100)
    truck_number: str = Field(..., min_length=1, max_length=30)
    bags_received: float
    weight_slip: WeightSlip | None = None
    status: Literal["OPEN", "CLOSED"] | None = None
    grading_summary: GradingSummary | None = None
    remarks: str | None = None
    manual_gate_pass_number: int | None = None


class IncomingGatePassOut(DocumentOut):
    farmer_storage_link_id: str
    gate_pass_no: int
    manual_gate_pass_number: int | None = None
    date: str
    variety: str
    truck_number: str
    bags_received: float
    weight_slip: WeightSlip | None = None
    status: str
    grading_summary: GradingSummary
    remarks: str | None = None


class IncomingGatePassDetail(IncomingGatePassOut):
    """Incoming gate pass with its farmer link populated (list views)."""
    farmer_storage_link_id: FarmerStorageLinkOut


def _common_fields(lot) -> dict:
    weight_slip = None
    if lot.slip_number or lot.gross_weight_kg is not None or lot.tare_weight_kg is not None:
        weight_slip = WeightSlip(
            slip_number=lot.slip_number,
            gross_weight_kg=lot.gross_weight_kg,
            tare_weight_kg=lot.tare_weight_kg,
        )
    return dict(
        id=lot.id,
        gate_pass_no=lot.gate_pass_no,
        manual_gate_pass_number=lot.manual_gate_pass_number,
        date=iso(lot.date),
        variety=lot.variety,
        truck_number=lot.truck_number,
        bags_received=lot.bags_received,
        weight_slip=weight_slip,
        status=lot.status,
        grading_summary=GradingSummary(total_graded_bags=lot.total_graded_bags or 0),
        remarks=lot.remarks,
        created_at=iso(lot.created_at),
        updated_at=iso(lot.updated_at),
        revision=lot.revision or 0,
    )


def incoming_out(lot) -> IncomingGatePassOut:
    return IncomingGatePassOut(
        farmer_storage_link_id=lot.farmer_storage_link_id, **_common_fields(lot)
    )


def incoming_detail(lot) -> IncomingGatePassDetail:
    """Requires ``farmer_storage_link.farmer`` to be loaded."""
    return IncomingGatePassDetail(
        farmer_storage_link_id=farmer_link_out(lot.farmer_storage_link),
        **_common_fields(lot),
    )
