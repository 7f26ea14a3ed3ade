"""Grading ledger — splits a lot into per-size buckets."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coldstore.middleware.exceptions import InvalidInputError
from coldstore.models.farmer import FarmerStorageLink
from coldstore.models.grading_gate_pass import (
    UNALLOCATED,
    GradingBucket,
    GradingGatePass,
)
from coldstore.models.incoming_gate_pass import LOT_CLOSED, IncomingGatePass
from coldstore.schemas.grading_gate_pass import GradingGatePassCreate
from coldstore.services.allocation import qty
from coldstore.services.lots import get_lot
from coldstore.utils.activity import log_activity
from coldstore.utils.numbering import GRADING, issue_gate_pass_number

logger = logging.getLogger(__name__)


def _detail_options():
    return (
        selectinload(GradingGatePass.buckets),
        selectinload(GradingGatePass.incoming_gate_pass)
        .selectinload(IncomingGatePass.farmer_storage_link)
        .selectinload(FarmerStorageLink.farmer),
    )


async def create_grading(
    db: AsyncSession,
    cold_storage_id: str,
    body: GradingGatePassCreate,
) -> GradingGatePass:
    """Create a grading gate pass and its buckets (current = initial).

    The lot's total graded bags grow by the sum of the new buckets.

    Raises:
        ResourceNotFoundError: unknown incoming gate pass.
        InvalidInputError: lot closed, duplicate size, or quantity ≤ 0.
    """
    lot = await get_lot(db, cold_storage_id, body.incoming_gate_pass_id, lock=True)
    if lot.status == LOT_CLOSED:
        raise InvalidInputError(
            f"Incoming gate pass #{lot.gate_pass_no} is closed",
            details={"incomingGatePassId": lot.id},
        )

    seen: set[str] = set()
    for detail in body.order_details:
        if detail.size in seen:
            raise InvalidInputError(
                f"Size {detail.size} appears more than once",
                details={"size": detail.size},
            )
        seen.add(detail.size)
        if not qty(detail.initial_quantity) > 0:
            raise InvalidInputError(
                f"initialQuantity must be greater than 0 (size {detail.size})",
                details={"size": detail.size, "initialQuantity": qty(detail.initial_quantity)},
            )

    gate_pass_no = await issue_gate_pass_number(db, cold_storage_id, GRADING, body.gate_pass_no)
    grading = GradingGatePass(
        cold_storage_id=cold_storage_id,
        incoming_gate_pass_id=lot.id,
        graded_by_id=body.graded_by_id,
        gate_pass_no=gate_pass_no,
        manual_gate_pass_number=body.manual_gate_pass_number,
        date=body.date,
        variety=body.variety,
        allocation_status=UNALLOCATED,
        remarks=body.remarks,
        revision=0,
        buckets=[
            GradingBucket(
                position=position,
                size=detail.size,
                bag_type=detail.bag_type,
                weight_per_bag_kg=detail.weight_per_bag_kg,
                initial_quantity=qty(detail.initial_quantity),
                current_quantity=qty(detail.initial_quantity),
            )
            for position, detail in enumerate(body.order_details)
        ],
    )
    db.add(grading)

    graded = qty(sum(b.initial_quantity for b in grading.buckets))
    lot.total_graded_bags = qty((lot.total_graded_bags or 0) + graded)
    await db.flush()

    await log_activity(
        db, cold_storage_id,
        action="created", entity_type="grading_gate_pass",
        entity_id=grading.id, entity_code=f"#{grading.gate_pass_no}",
        summary=f"Graded {graded:g} bags of incoming gate pass #{lot.gate_pass_no} "
                f"into {len(grading.buckets)} size(s)",
        details={"sizes": {b.size: b.initial_quantity for b in grading.buckets}},
        actor_id=body.graded_by_id,
    )
    logger.info(f"Grading gate pass #{grading.gate_pass_no} created from lot #{lot.gate_pass_no}")
    return grading


async def list_grading(
    db: AsyncSession,
    cold_storage_id: str,
    farmer_storage_link_id: str | None = None,
) -> list[GradingGatePass]:
    stmt = (
        select(GradingGatePass)
        .where(GradingGatePass.cold_storage_id == cold_storage_id)
        .options(*_detail_options())
    )
    if farmer_storage_link_id:
        stmt = stmt.join(
            IncomingGatePass, GradingGatePass.incoming_gate_pass_id == IncomingGatePass.id
        ).where(IncomingGatePass.farmer_storage_link_id == farmer_storage_link_id)
    stmt = stmt.order_by(GradingGatePass.gate_pass_no.desc())
    return list((await db.execute(stmt)).scalars().all())


async def load_grading_details(
    db: AsyncSession, gate_pass_ids: list[str]
) -> dict[str, GradingGatePass]:
    """Grading gate passes by id, populated for list views."""
    if not gate_pass_ids:
        return {}
    result = await db.execute(
        select(GradingGatePass)
        .where(GradingGatePass.id.in_(gate_pass_ids))
        .options(*_detail_options())
    )
    return {g.id: g for g in result.scalars().all()}
