"""Pydantic schemas for storage gate passes and the snapshots they embed."""

from datetime import date

from pydantic import Field

from coldstore.schemas.common import CamelModel, DocumentOut, iso
from coldstore.schemas.grading_gate_pass import GradingGatePassDetail


# ── Create ───────────────────────────────────────────────────

class StorageAllocationIn(CamelModel):
    size: str = Field(..., min_length=1, max_length=50)
    quantity_to_allocate: float
    # Required non-empty; checked by the ledger so a blank location is a 400
    chamber: str = ""
    floor: str = ""
    row: str = ""


class StorageGradingEntry(CamelModel):
    grading_gate_pass_id: str
    allocations: list[StorageAllocationIn] = Field(..., min_length=1)


class StorageGatePassCreate(CamelModel):
    """Payload for POST /api/storage-gate-pass."""
    gate_pass_no: int | None = Field(None, ge=1)
    date: date
    variety: str = Field(..., min_length=1, max_length=100)
    grading_gate_passes: list[StorageGradingEntry] = Field(..., min_length=1)
    remarks: str | None = None
    manual_gate_pass_number: int | None = None


# ── Snapshots ────────────────────────────────────────────────

class IncomingBagSize(CamelModel):
    """Immutable copy of a source bucket at allocation time."""
    size: str
    current_quantity: float
    initial_quantity: float
    location: str | None = None


class GatePassSnapshot(CamelModel):
    id: str = Field(alias="_id")
    gate_pass_no: int
    incoming_bag_sizes: list[IncomingBagSize]


class EditHistoryEntry(CamelModel):
    action: str
    summary: str | None = None
    details: dict | None = None
    actor_id: str | None = None
    created_at: str | None = None


# ── Response ─────────────────────────────────────────────────

class StorageOrderDetail(CamelModel):
    """Live placement row (one StorageBucket)."""
    size: str
    current_quantity: float
    initial_quantity: float
    weight_per_bag: float
    bag_type: str
    chamber: str
    floor: str
    row: str


class CreatedStorageGatePass(DocumentOut):
    gate_pass_no: int
    manual_gate_pass_number: int | None = None
    grading_gate_pass_ids: list[str]
    grading_gate_pass_snapshots: list[GatePassSnapshot]
    date: str
    variety: str
    order_details: list[StorageOrderDetail]
    edit_history: list[EditHistoryEntry] = []
    remarks: str | None = None


class StorageGatePassDetail(CreatedStorageGatePass):
    """Storage gate pass with its grading gate passes populated."""
    grading_gate_pass_ids: list[GradingGatePassDetail]


def history_out(entries) -> list[EditHistoryEntry]:
    return [
        EditHistoryEntry(
            action=entry.action,
            summary=entry.summary,
            details=entry.details,
            actor_id=entry.actor_id,
            created_at=iso(entry.created_at),
        )
        for entry in entries
    ]
