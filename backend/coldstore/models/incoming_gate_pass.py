"""IncomingGatePass — a Lot of produce received at the cold storage.

Created at intake with the raw bag count for one variety.  Grading gate
passes split it into sized buckets and add their quantities to
``total_graded_bags``.  A lot is never deleted, only closed.

Lifecycle:  OPEN → CLOSED
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldstore.database import Base

LOT_OPEN = "OPEN"
LOT_CLOSED = "CLOSED"


class IncomingGatePass(Base):
    __tablename__ = "incoming_gate_passes"
    __table_args__ = (
        UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_incoming_gate_pass_no"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cold_storage_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cold_storages.id"), nullable=False, index=True
    )
    farmer_storage_link_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("farmer_storage_links.id"), nullable=False, index=True
    )
    received_by_id: Mapped[str | None] = mapped_column(String(36))

    # ── Numbering ────────────────────────────────────────────
    gate_pass_no: Mapped[int] = mapped_column(Integer, nullable=False)
    manual_gate_pass_number: Mapped[int | None] = mapped_column(Integer)

    # ── Produce ──────────────────────────────────────────────
    date: Mapped[datetime] = mapped_column(Date, nullable=False)
    variety: Mapped[str] = mapped_column(String(100), nullable=False)
    truck_number: Mapped[str] = mapped_column(String(30), nullable=False)
    bags_received: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Weight slip ──────────────────────────────────────────
    slip_number: Mapped[str | None] = mapped_column(String(50))
    gross_weight_kg: Mapped[float | None] = mapped_column(Float)
    tare_weight_kg: Mapped[float | None] = mapped_column(Float)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(10), default=LOT_OPEN, index=True)
    # Sum of initial quantities of every grading bucket cut from this lot
    total_graded_bags: Mapped[float] = mapped_column(Float, default=0.0)

    remarks: Mapped[str | None] = mapped_column(Text)
    revision: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    farmer_storage_link = relationship("FarmerStorageLink")
    grading_gate_passes = relationship(
        "GradingGatePass", back_populates="incoming_gate_pass"
    )
