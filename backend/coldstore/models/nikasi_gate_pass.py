"""NikasiGatePass — bags released from the store toward dispatch.

A nikasi gate pass owns no buckets of its own; its order details are the
allocation edges it debited (see Allocation), each with the quantity that
was available at the time and the net quantity issued.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from coldstore.database import Base


class NikasiGatePass(Base):
    __tablename__ = "nikasi_gate_passes"
    __table_args__ = (
        UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_nikasi_gate_pass_no"),
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

    # Free-text route of the dispatch
    from_location: Mapped[str | None] = mapped_column(String(255))
    to_field: Mapped[str | None] = mapped_column(String(255))

    remarks: Mapped[str | None] = mapped_column(Text)
    revision: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
