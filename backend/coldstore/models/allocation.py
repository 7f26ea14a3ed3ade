"""Allocation ledger and bucket snapshots.

Allocation is the append-only edge between a source bucket and the gate
pass that consumed from it.  Debits carry a positive quantity; a release
appends a credit row (negative quantity, ``reverses_id`` pointing at the
debit) instead of touching history.  For every bucket:

    initial_quantity - current_quantity == sum(quantity of its allocations)

BucketSnapshot is the immutable copy of a source bucket's state taken at
allocation time and embedded in the consuming gate pass for display and
edit-history reconstruction.  Snapshots are never updated.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from coldstore.database import Base

# source_kind / consumer_kind values
KIND_GRADING = "grading"
KIND_STORAGE = "storage"
KIND_NIKASI = "nikasi"


class Allocation(Base):
    __tablename__ = "allocations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cold_storage_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cold_storages.id"), nullable=False, index=True
    )

    # ── Source bucket ────────────────────────────────────────
    # grading | storage
    source_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    source_bucket_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    source_gate_pass_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    size: Mapped[str] = mapped_column(String(50), nullable=False)

    # ── Consumer ─────────────────────────────────────────────
    # storage | nikasi
    consumer_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    consumer_gate_pass_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Positive = debit, negative = credit (release)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    # Source current_quantity just before the debit (debits only)
    quantity_available: Mapped[float | None] = mapped_column(Float)
    reverses_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("allocations.id"), index=True
    )

    # ── Placement (storage consumers only) ───────────────────
    chamber: Mapped[str | None] = mapped_column(String(50))
    floor: Mapped[str | None] = mapped_column(String(50))
    row: Mapped[str | None] = mapped_column(String(50))

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    @property
    def is_credit(self) -> bool:
        return self.reverses_id is not None


class BucketSnapshot(Base):
    __tablename__ = "bucket_snapshots"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    consumer_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    consumer_gate_pass_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    allocation_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("allocations.id")
    )

    source_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    source_gate_pass_id: Mapped[str] = mapped_column(String(36), nullable=False)
    source_gate_pass_no: Mapped[int] = mapped_column(Integer, nullable=False)

    size: Mapped[str] = mapped_column(String(50), nullable=False)
    initial_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    current_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    location: Mapped[str | None] = mapped_column(String(160))

    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
