"""Pydantic schemas for nikasi (dispatch) gate passes."""

from datetime import date

from pydantic import Field

from coldstore.schemas.common import CamelModel, DocumentOut
from coldstore.schemas.grading_gate_pass import GradingGatePassDetail
from coldstore.schemas.storage_gate_pass import EditHistoryEntry, GatePassSnapshot


class NikasiAllocationIn(CamelModel):
    size: str = Field(..., min_length=1, max_length=50)
    quantity_to_allocate: float


class NikasiGradingEntry(CamelModel):
    grading_gate_pass_id: str
    allocations: list[NikasiAllocationIn] = Field(..., min_length=1)


class NikasiStorageEntry(CamelModel):
    storage_gate_pass_id: str
    allocations: list[NikasiAllocationIn] = Field(..., min_length=1)


class NikasiGatePassCreate(CamelModel):
    """Payload for POST /api/nikasi-gate-pass.

    ``gradingGatePasses`` draw from grading buckets, ``storageGatePasses``
    from placed storage buckets; which are accepted depends on the store's
    NIKASI_SOURCE setting.
    """
    gate_pass_no: int | None = Field(None, ge=1)
    date: date
    variety: str = Field(..., min_length=1, max_length=100)
    from_location: str | None = Field(None, alias="from", max_length=255)
    to_field: str | None = Field(None, max_length=255)
    grading_gate_passes: list[NikasiGradingEntry] = []
    storage_gate_passes: list[NikasiStorageEntry] = []
    remarks: str | None = None
    manual_gate_pass_number: int | None = None


class NikasiOrderDetail(CamelModel):
    size: str
    grading_gate_pass_id: str | None = None
    storage_gate_pass_id: str | None = None
    quantity_available: float
    # Net of any releases
    quantity_issued: float
    allocation_id: str


class CreatedNikasiGatePass(DocumentOut):
    gate_pass_no: int
    manual_gate_pass_number: int | None = None
    grading_gate_pass_ids: list[str]
    storage_gate_pass_ids: list[str] = []
    grading_gate_pass_snapshots: list[GatePassSnapshot]
    storage_gate_pass_snapshots: list[GatePassSnapshot] = []
    date: str
    variety: str
    from_location: str | None = Field(None, alias="from")
    to_field: str | None = None
    order_details: list[NikasiOrderDetail]
    edit_history: list[EditHistoryEntry] = []
    remarks: str | None = None


class NikasiGatePassDetail(CreatedNikasiGatePass):
    """Nikasi gate pass with its grading gate passes populated."""
    grading_gate_pass_ids: list[GradingGatePassDetail]
