"""Lot registry — incoming gate pass intake.

Handles:
  - Issuing the store's next incoming gate-pass number
  - Recording the lot (OPEN, nothing graded yet)
  - Closing a lot, after which no further grading is accepted
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coldstore.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from coldstore.models.farmer import FarmerStorageLink
from coldstore.models.incoming_gate_pass import LOT_CLOSED, LOT_OPEN, IncomingGatePass
from coldstore.schemas.incoming_gate_pass import IncomingGatePassCreate
from coldstore.services.allocation import qty
from coldstore.utils.activity import log_activity
from coldstore.utils.numbering import INCOMING, issue_gate_pass_number

logger = logging.getLogger(__name__)


async def get_lot(
    db: AsyncSession, cold_storage_id: str, lot_id: str, lock: bool = False
) -> IncomingGatePass:
    stmt = select(IncomingGatePass).where(
        IncomingGatePass.id == lot_id,
        IncomingGatePass.cold_storage_id == cold_storage_id,
    )
    if lock:
        stmt = stmt.with_for_update()
    lot = (await db.execute(stmt)).scalar_one_or_none()
    if not lot:
        raise ResourceNotFoundError("Incoming gate pass", lot_id)
    return lot


async def create_incoming(
    db: AsyncSession,
    cold_storage_id: str,
    body: IncomingGatePassCreate,
) -> IncomingGatePass:
    """Record a new lot.

    Raises:
        InvalidInputError: bagsReceived ≤ 0 or the farmer account is inactive.
        ResourceNotFoundError: farmer account not linked to this store.
        GatePassNumberConflictError: proposed gatePassNo already issued.
    """
    bags_received = qty(body.bags_received)
    if not bags_received > 0:
        raise InvalidInputError(
            "bagsReceived must be greater than 0",
            details={"bagsReceived": bags_received},
        )

    link = (
        await db.execute(
            select(FarmerStorageLink).where(
                FarmerStorageLink.id == body.farmer_storage_link_id,
                FarmerStorageLink.cold_storage_id == cold_storage_id,
            )
        )
    ).scalar_one_or_none()
    if not link:
        raise ResourceNotFoundError("Farmer storage link", body.farmer_storage_link_id)
    if not link.is_active:
        raise InvalidInputError(f"Farmer account #{link.account_number} is inactive")

    gate_pass_no = await issue_gate_pass_number(
        db, cold_storage_id, INCOMING, body.gate_pass_no
    )
    slip = body.weight_slip
    lot = IncomingGatePass(
        cold_storage_id=cold_storage_id,
        farmer_storage_link_id=link.id,
        received_by_id=body.received_by_id,
        gate_pass_no=gate_pass_no,
        manual_gate_pass_number=body.manual_gate_pass_number,
        date=body.date,
        variety=body.variety,
        truck_number=body.truck_number,
        bags_received=bags_received,
        slip_number=slip.slip_number if slip else None,
        gross_weight_kg=slip.gross_weight_kg if slip else None,
        tare_weight_kg=slip.tare_weight_kg if slip else None,
        status=LOT_OPEN,
        total_graded_bags=0.0,
        remarks=body.remarks,
        revision=0,
    )
    db.add(lot)
    await db.flush()

    await log_activity(
        db, cold_storage_id,
        action="created", entity_type="incoming_gate_pass",
        entity_id=lot.id, entity_code=f"#{lot.gate_pass_no}",
        summary=f"Received {lot.bags_received:g} bags of {lot.variety} on truck {lot.truck_number}",
        actor_id=body.received_by_id,
    )
    logger.info(f"Incoming gate pass #{lot.gate_pass_no} created for store {cold_storage_id}")
    return lot


async def close_incoming(
    db: AsyncSession, cold_storage_id: str, lot_id: str
) -> IncomingGatePass:
    """Close a lot (idempotent)."""
    lot = await get_lot(db, cold_storage_id, lot_id, lock=True)
    if lot.status != LOT_CLOSED:
        lot.status = LOT_CLOSED
        lot.revision = (lot.revision or 0) + 1
        await log_activity(
            db, cold_storage_id,
            action="closed", entity_type="incoming_gate_pass",
            entity_id=lot.id, entity_code=f"#{lot.gate_pass_no}",
            summary=f"Closed with {lot.total_graded_bags:g} of {lot.bags_received:g} bags graded",
        )
        await db.flush()
    return lot


async def list_incoming(
    db: AsyncSession,
    cold_storage_id: str,
    status: str | None = None,
    farmer_storage_link_id: str | None = None,
) -> list[IncomingGatePass]:
    stmt = (
        select(IncomingGatePass)
        .where(IncomingGatePass.cold_storage_id == cold_storage_id)
        .options(
            selectinload(IncomingGatePass.farmer_storage_link)
            .selectinload(FarmerStorageLink.farmer)
        )
    )
    if status:
        stmt = stmt.where(IncomingGatePass.status == status)
    if farmer_storage_link_id:
        stmt = stmt.where(IncomingGatePass.farmer_storage_link_id == farmer_storage_link_id)
    stmt = stmt.order_by(IncomingGatePass.gate_pass_no.desc())
    return list((await db.execute(stmt)).scalars().all())
