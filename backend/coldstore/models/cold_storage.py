"""ColdStorage — the store that owns gate passes and their numbering.

GatePassCounter holds the last issued gate-pass number per store and
pass type.  It is read and bumped inside the same transaction that
creates the gate pass, so numbers are strictly increasing and never
reused.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from coldstore.database import Base


class ColdStorage(Base):
    __tablename__ = "cold_storages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class GatePassCounter(Base):
    __tablename__ = "gate_pass_counters"
    __table_args__ = (
        UniqueConstraint("cold_storage_id", "pass_type", name="uq_gate_pass_counter_store_type"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cold_storage_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cold_storages.id"), nullable=False, index=True
    )
    # incoming-gate-pass | grading-gate-pass | storage-gate-pass | nikasi-gate-pass
    pass_type: Mapped[str] = mapped_column(String(40), nullable=False)
    last_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version_id}
