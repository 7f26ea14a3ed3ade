"""ActivityLog — immutable audit trail of ledger actions.

Records what was done, when, and to which gate pass.  The entries for a
storage or nikasi gate pass form its ``editHistory``.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coldstore.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cold_storage_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # ── Who ────────────────────────────────────────────────────
    actor_id: Mapped[str | None] = mapped_column(String(36))

    # ── What ───────────────────────────────────────────────────
    # created | closed | allocated | released
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Target ─────────────────────────────────────────────────
    # incoming_gate_pass | grading_gate_pass | storage_gate_pass | nikasi_gate_pass
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(36), index=True)
    entity_code: Mapped[str | None] = mapped_column(String(100))

    # ── Context ────────────────────────────────────────────────
    summary: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
