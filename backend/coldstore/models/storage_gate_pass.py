"""StorageGatePass — places graded bags at a chamber / floor / row.

Every size placed by a storage gate pass becomes a StorageBucket keyed by
(storage_gate_pass_id, size).  A StorageBucket is both the audit of what
was placed and a live, allocatable balance that nikasi gate passes draw
from.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint, Date, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldstore.database import Base


class StorageGatePass(Base):
    __tablename__ = "storage_gate_passes"
    __table_args__ = (
        UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_storage_gate_pass_no"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cold_storage_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cold_storages.id"), nullable=False, index=True
    )
    gate_pass_no: Mapped[int] = mapped_column(Integer, nullable=False)
    manual_gate_pass_number: Mapped[int | None] = mapped_column(Integer)
    date: Mapped[datetime] = mapped_column(Date, nullable=False)
    variety: Mapped[str] = mapped_column(String(100), nullable=False)

    remarks: Mapped[str | None] = mapped_column(Text)
    revision: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    buckets = relationship(
        "StorageBucket", back_populates="storage_gate_pass",
        order_by="StorageBucket.created_at",
    )


class StorageBucket(Base):
    """Bags of one size held under one storage gate pass."""
    __tablename__ = "storage_buckets"
    __table_args__ = (
        UniqueConstraint("storage_gate_pass_id", "size", name="uq_storage_bucket_size"),
        CheckConstraint(
            "current_quantity >= 0 AND current_quantity <= initial_quantity",
            name="ck_storage_bucket_bounds",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    storage_gate_pass_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("storage_gate_passes.id"), nullable=False, index=True
    )

    size: Mapped[str] = mapped_column(String(50), nullable=False)
    bag_type: Mapped[str] = mapped_column(String(50), nullable=False)
    weight_per_bag_kg: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Location ─────────────────────────────────────────────
    chamber: Mapped[str] = mapped_column(String(50), nullable=False)
    floor: Mapped[str] = mapped_column(String(50), nullable=False)
    row: Mapped[str] = mapped_column(String(50), nullable=False)

    # ── Quantities ───────────────────────────────────────────
    # initial = net quantity placed (shrinks only when a placement is released)
    initial_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    current_quantity: Mapped[float] = mapped_column(Float, nullable=False)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    storage_gate_pass = relationship("StorageGatePass", back_populates="buckets")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def location(self) -> str:
        return f"{self.chamber}-{self.floor}-{self.row}"
