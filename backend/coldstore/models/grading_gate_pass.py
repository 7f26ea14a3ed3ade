"""GradingGatePass — splits a Lot into per-size buckets.

Each GradingBucket is keyed by (grading_gate_pass_id, size).  Its
``initial_quantity`` is fixed at creation; ``current_quantity`` is the
balance still available to storage / nikasi allocations and only moves
through the allocation engine.

Allocation status is derived from the buckets:
    UNALLOCATED          every bucket untouched
    PARTIALLY_ALLOCATED  some quantity allocated
    ALLOCATED            every bucket drained to zero
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint, Date, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldstore.database import Base

UNALLOCATED = "UNALLOCATED"
PARTIALLY_ALLOCATED = "PARTIALLY_ALLOCATED"
ALLOCATED = "ALLOCATED"


class GradingGatePass(Base):
    __tablename__ = "grading_gate_passes"
    __table_args__ = (
        UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_grading_gate_pass_no"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cold_storage_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cold_storages.id"), nullable=False, index=True
    )
    incoming_gate_pass_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("incoming_gate_passes.id"), nullable=False, index=True
    )
    graded_by_id: Mapped[str] = mapped_column(String(36), nullable=False)

    gate_pass_no: Mapped[int] = mapped_column(Integer, nullable=False)
    manual_gate_pass_number: Mapped[int | None] = mapped_column(Integer)
    date: Mapped[datetime] = mapped_column(Date, nullable=False)
    variety: Mapped[str] = mapped_column(String(100), nullable=False)

    allocation_status: Mapped[str] = mapped_column(String(30), default=UNALLOCATED, index=True)
    remarks: Mapped[str | None] = mapped_column(Text)
    revision: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    incoming_gate_pass = relationship("IncomingGatePass", back_populates="grading_gate_passes")
    buckets = relationship(
        "GradingBucket", back_populates="grading_gate_pass",
        order_by="GradingBucket.position",
    )

    def refresh_allocation_status(self) -> str:
        """Recompute allocation_status from the (loaded) buckets."""
        buckets = list(self.buckets)
        if buckets and all(b.current_quantity <= 0 for b in buckets):
            self.allocation_status = ALLOCATED
        elif any(b.current_quantity < b.initial_quantity for b in buckets):
            self.allocation_status = PARTIALLY_ALLOCATED
        else:
            self.allocation_status = UNALLOCATED
        return self.allocation_status


class GradingBucket(Base):
    """One size row of a grading gate pass."""
    __tablename__ = "grading_buckets"
    __table_args__ = (
        UniqueConstraint("grading_gate_pass_id", "size", name="uq_grading_bucket_size"),
        CheckConstraint(
            "current_quantity >= 0 AND current_quantity <= initial_quantity",
            name="ck_grading_bucket_bounds",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    grading_gate_pass_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("grading_gate_passes.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    size: Mapped[str] = mapped_column(String(50), nullable=False)
    bag_type: Mapped[str] = mapped_column(String(50), nullable=False)
    weight_per_bag_kg: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Quantities ───────────────────────────────────────────
    initial_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    current_quantity: Mapped[float] = mapped_column(Float, nullable=False)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    grading_gate_pass = relationship("GradingGatePass", back_populates="buckets")

    __mapper_args__ = {"version_id_col": version_id}
