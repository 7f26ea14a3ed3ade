"""Pydantic schemas for the daybook (one entry per incoming lot)."""

from typing import Literal

from pydantic import Field

from coldstore.schemas.common import CamelModel, Pagination
from coldstore.schemas.grading_gate_pass import CreatedGradingGatePass
from coldstore.schemas.incoming_gate_pass import IncomingGatePassOut
from coldstore.schemas.nikasi_gate_pass import CreatedNikasiGatePass
from coldstore.schemas.storage_gate_pass import CreatedStorageGatePass

DaybookGatePassType = Literal["incoming", "grading", "storage", "nikasi"]


class DaybookFarmer(CamelModel):
    id: str = Field(alias="_id")
    name: str
    address: str | None = None
    mobile_number: str
    image_url: str | None = None
    account_number: int
    created_at: str | None = None
    updated_at: str | None = None


class DaybookSummaries(CamelModel):
    """Bag totals for one lot.

    The wastage fields need a weight slip with gross and tare weights and
    at least one graded bag; otherwise they are omitted (null).
    """
    total_bags_incoming: float
    total_bags_graded: float
    total_bags_stored: float
    total_bags_nikasi: float
    incoming_net_kg: float | None = None
    wastage_kg: float | None = None
    wastage_percent: float | None = None


class DaybookEntry(CamelModel):
    incoming: IncomingGatePassOut
    farmer: DaybookFarmer | None = None
    grading_passes: list[CreatedGradingGatePass] = []
    storage_passes: list[CreatedStorageGatePass] = []
    nikasi_passes: list[CreatedNikasiGatePass] = []
    summaries: DaybookSummaries


class DaybookPage(CamelModel):
    daybook: list[DaybookEntry]
    pagination: Pagination
