"""Nikasi ledger — bags issued out of the store toward dispatch.

A nikasi gate pass debits storage buckets (placed bags) and/or grading
buckets, depending on the NIKASI_SOURCE setting:

    storage   only storageGatePasses[] entries are accepted
    grading   only gradingGatePasses[] entries are accepted
    any       both (default)

Its order details are the debit edges themselves: the quantity available
at the time and the net quantity issued after any releases.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.config import settings
from coldstore.middleware.exceptions import InvalidInputError
from coldstore.models.allocation import KIND_GRADING, KIND_NIKASI, KIND_STORAGE, Allocation
from coldstore.models.nikasi_gate_pass import NikasiGatePass
from coldstore.schemas.common import iso
from coldstore.schemas.grading_gate_pass import grading_detail
from coldstore.schemas.nikasi_gate_pass import (
    CreatedNikasiGatePass,
    NikasiGatePassCreate,
    NikasiGatePassDetail,
    NikasiOrderDetail,
)
from coldstore.schemas.storage_gate_pass import history_out
from coldstore.services.allocation import (
    AllocationRequest,
    BucketKey,
    BucketKind,
    allocate,
    net_by_debit,
    qty,
)
from coldstore.services.grading import load_grading_details
from coldstore.services.snapshots import group_snapshots, load_snapshots, source_gate_pass_ids
from coldstore.utils.activity import edit_history, log_activity
from coldstore.utils.numbering import NIKASI, issue_gate_pass_number

logger = logging.getLogger(__name__)


def _dispatch_requests(body: NikasiGatePassCreate) -> list[AllocationRequest]:
    mode = settings.nikasi_source
    if body.grading_gate_passes and mode == "storage":
        raise InvalidInputError(
            "Nikasi is issued from storage gate passes at this store; "
            "gradingGatePasses are not accepted",
            details={"nikasiSource": mode},
        )
    if body.storage_gate_passes and mode == "grading":
        raise InvalidInputError(
            "Nikasi is issued from grading gate passes at this store; "
            "storageGatePasses are not accepted",
            details={"nikasiSource": mode},
        )

    requests = [
        AllocationRequest(
            key=BucketKey(BucketKind.GRADING, entry.grading_gate_pass_id, item.size),
            quantity=item.quantity_to_allocate,
        )
        for entry in body.grading_gate_passes
        for item in entry.allocations
    ]
    requests += [
        AllocationRequest(
            key=BucketKey(BucketKind.STORAGE, entry.storage_gate_pass_id, item.size),
            quantity=item.quantity_to_allocate,
        )
        for entry in body.storage_gate_passes
        for item in entry.allocations
    ]
    if not requests:
        raise InvalidInputError("At least one grading or storage gate pass allocation is required")
    return requests


async def create_nikasi(
    db: AsyncSession,
    cold_storage_id: str,
    body: NikasiGatePassCreate,
    actor_id: str | None = None,
) -> NikasiGatePass:
    """Create a nikasi gate pass and debit its sources.

    Raises:
        InvalidInputError: source kind not allowed, variety mismatch, or
            quantity ≤ 0.
        ResourceNotFoundError: unknown source gate pass or size.
        InsufficientQuantityError: a source bucket cannot cover the request.
    """
    requests = _dispatch_requests(body)

    # Debit the buckets before taking the store-wide counter row
    nikasi_id = str(uuid.uuid4())
    result = await allocate(
        db,
        cold_storage_id=cold_storage_id,
        consumer_kind=KIND_NIKASI,
        consumer_gate_pass_id=nikasi_id,
        requests=requests,
        variety=body.variety,
        actor_id=actor_id,
    )

    gate_pass_no = await issue_gate_pass_number(db, cold_storage_id, NIKASI, body.gate_pass_no)
    nikasi = NikasiGatePass(
        id=nikasi_id,
        cold_storage_id=cold_storage_id,
        gate_pass_no=gate_pass_no,
        manual_gate_pass_number=body.manual_gate_pass_number,
        date=body.date,
        variety=body.variety,
        from_location=body.from_location,
        to_field=body.to_field,
        remarks=body.remarks,
        revision=0,
    )
    db.add(nikasi)
    await db.flush()

    total = qty(sum(a.quantity for a in result.allocations))
    await log_activity(
        db, cold_storage_id,
        action="created", entity_type="nikasi_gate_pass",
        entity_id=nikasi.id, entity_code=f"#{nikasi.gate_pass_no}",
        summary=f"Issued {total:g} bags toward {nikasi.to_field or 'dispatch'}",
        details={
            "allocations": [
                {"allocationId": a.id, "sourceKind": a.source_kind,
                 "sourceGatePassId": a.source_gate_pass_id,
                 "size": a.size, "quantity": a.quantity}
                for a in result.allocations
            ],
        },
        actor_id=actor_id,
    )
    logger.info(f"Nikasi gate pass #{nikasi.gate_pass_no} issued {total:g} bags")
    return nikasi


async def list_nikasi(db: AsyncSession, cold_storage_id: str) -> list[NikasiGatePass]:
    result = await db.execute(
        select(NikasiGatePass)
        .where(NikasiGatePass.cold_storage_id == cold_storage_id)
        .order_by(NikasiGatePass.gate_pass_no.desc())
    )
    return list(result.scalars().all())


async def nikasi_payloads(
    db: AsyncSession,
    nikasis: list[NikasiGatePass],
    populate: bool = False,
) -> list[CreatedNikasiGatePass]:
    """Render nikasi gate passes with snapshots, order details and history."""
    ids = [n.id for n in nikasis]
    snapshots = await load_snapshots(db, KIND_NIKASI, ids)
    history = await edit_history(db, ids)

    debits: list[Allocation] = []
    if ids:
        result = await db.execute(
            select(Allocation).where(
                Allocation.consumer_kind == KIND_NIKASI,
                Allocation.consumer_gate_pass_id.in_(ids),
                Allocation.reverses_id.is_(None),
            )
        )
        debits = list(result.scalars().all())
    net = await net_by_debit(db, debits)
    position = {
        snap.allocation_id: snap.position for rows in snapshots.values() for snap in rows
    }
    debits.sort(key=lambda d: position.get(d.id, 0))

    grading_sources = {n.id: source_gate_pass_ids(snapshots[n.id], KIND_GRADING) for n in nikasis}
    storage_sources = {n.id: source_gate_pass_ids(snapshots[n.id], KIND_STORAGE) for n in nikasis}
    grading = {}
    if populate:
        all_ids = list(dict.fromkeys(gid for gids in grading_sources.values() for gid in gids))
        grading = await load_grading_details(db, all_ids)

    payloads = []
    for nikasi in nikasis:
        fields = dict(
            id=nikasi.id,
            gate_pass_no=nikasi.gate_pass_no,
            manual_gate_pass_number=nikasi.manual_gate_pass_number,
            storage_gate_pass_ids=storage_sources[nikasi.id],
            grading_gate_pass_snapshots=group_snapshots(snapshots[nikasi.id], KIND_GRADING),
            storage_gate_pass_snapshots=group_snapshots(snapshots[nikasi.id], KIND_STORAGE),
            date=iso(nikasi.date),
            variety=nikasi.variety,
            from_location=nikasi.from_location,
            to_field=nikasi.to_field,
            order_details=[
                NikasiOrderDetail(
                    size=d.size,
                    grading_gate_pass_id=d.source_gate_pass_id if d.source_kind == KIND_GRADING else None,
                    storage_gate_pass_id=d.source_gate_pass_id if d.source_kind == KIND_STORAGE else None,
                    quantity_available=d.quantity_available,
                    quantity_issued=net[d.id],
                    allocation_id=d.id,
                )
                for d in debits
                if d.consumer_gate_pass_id == nikasi.id
            ],
            edit_history=history_out(history[nikasi.id]),
            remarks=nikasi.remarks,
            created_at=iso(nikasi.created_at),
            updated_at=iso(nikasi.updated_at),
            revision=nikasi.revision or 0,
        )
        if populate:
            payloads.append(NikasiGatePassDetail(
                grading_gate_pass_ids=[
                    grading_detail(grading[gid]) for gid in grading_sources[nikasi.id] if gid in grading
                ],
                **fields,
            ))
        else:
            payloads.append(CreatedNikasiGatePass(
                grading_gate_pass_ids=grading_sources[nikasi.id], **fields,
            ))
    return payloads
