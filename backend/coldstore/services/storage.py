"""Storage ledger — places graded bags at a chamber / floor / row.

A storage gate pass debits grading buckets through the allocation engine
and produces one StorageBucket per size it placed.  StorageBuckets are
first-class allocatable buckets: nikasi gate passes draw from them.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coldstore.middleware.exceptions import InvalidInputError
from coldstore.models.allocation import KIND_GRADING, KIND_STORAGE
from coldstore.models.storage_gate_pass import StorageBucket, StorageGatePass
from coldstore.schemas.common import iso
from coldstore.schemas.grading_gate_pass import grading_detail
from coldstore.schemas.storage_gate_pass import (
    CreatedStorageGatePass,
    StorageGatePassCreate,
    StorageGatePassDetail,
    StorageOrderDetail,
    history_out,
)
from coldstore.services.allocation import (
    AllocationRequest,
    BucketKey,
    BucketKind,
    Location,
    allocate,
    qty,
)
from coldstore.services.grading import load_grading_details
from coldstore.services.snapshots import group_snapshots, load_snapshots, source_gate_pass_ids
from coldstore.utils.activity import edit_history, log_activity
from coldstore.utils.numbering import STORAGE, issue_gate_pass_number

logger = logging.getLogger(__name__)


def _placement_requests(body: StorageGatePassCreate) -> list[AllocationRequest]:
    """Turn the payload into engine requests; one location per size."""
    requests: list[AllocationRequest] = []
    locations: dict[str, Location] = {}
    for entry in body.grading_gate_passes:
        for item in entry.allocations:
            location = Location.parse(item.chamber, item.floor, item.row)
            placed = locations.setdefault(item.size, location)
            if placed != location:
                raise InvalidInputError(
                    f"Size {item.size} is placed at both {placed.label} and {location.label}; "
                    f"use one location per size or a separate storage gate pass",
                    details={"size": item.size, "locations": [placed.label, location.label]},
                )
            requests.append(AllocationRequest(
                key=BucketKey(BucketKind.GRADING, entry.grading_gate_pass_id, item.size),
                quantity=item.quantity_to_allocate,
                location=location,
            ))
    return requests


async def create_storage(
    db: AsyncSession,
    cold_storage_id: str,
    body: StorageGatePassCreate,
    actor_id: str | None = None,
) -> StorageGatePass:
    """Create a storage gate pass, debit its grading sources, place the bags.

    Raises:
        InvalidInputError: missing location, conflicting locations for one
            size, variety mismatch, or quantity ≤ 0.
        ResourceNotFoundError: unknown grading gate pass or size.
        InsufficientQuantityError: a grading bucket cannot cover the request.
    """
    requests = _placement_requests(body)

    # Debit the buckets before taking the store-wide counter row
    storage_id = str(uuid.uuid4())
    result = await allocate(
        db,
        cold_storage_id=cold_storage_id,
        consumer_kind=KIND_STORAGE,
        consumer_gate_pass_id=storage_id,
        requests=requests,
        variety=body.variety,
        actor_id=actor_id,
    )

    gate_pass_no = await issue_gate_pass_number(db, cold_storage_id, STORAGE, body.gate_pass_no)
    storage = StorageGatePass(
        id=storage_id,
        cold_storage_id=cold_storage_id,
        gate_pass_no=gate_pass_no,
        manual_gate_pass_number=body.manual_gate_pass_number,
        date=body.date,
        variety=body.variety,
        remarks=body.remarks,
        revision=0,
        buckets=[],
    )
    db.add(storage)

    # One placement bucket per size; several grading sources merge into it
    placed: dict[str, StorageBucket] = {}
    for request, allocation in zip(requests, result.allocations):
        source = result.buckets[request.key]
        bucket = placed.get(allocation.size)
        if bucket is None:
            bucket = StorageBucket(
                size=allocation.size,
                bag_type=source.bag_type,
                weight_per_bag_kg=source.weight_per_bag_kg,
                chamber=request.location.chamber,
                floor=request.location.floor,
                row=request.location.row,
                initial_quantity=0.0,
                current_quantity=0.0,
            )
            placed[allocation.size] = bucket
            storage.buckets.append(bucket)
        bucket.initial_quantity = qty(bucket.initial_quantity + allocation.quantity)
        bucket.current_quantity = qty(bucket.current_quantity + allocation.quantity)
    await db.flush()

    total = qty(sum(a.quantity for a in result.allocations))
    grading_ids = list(dict.fromkeys(r.key.gate_pass_id for r in requests))
    await log_activity(
        db, cold_storage_id,
        action="created", entity_type="storage_gate_pass",
        entity_id=storage.id, entity_code=f"#{storage.gate_pass_no}",
        summary=f"Placed {total:g} bags from {len(grading_ids)} grading gate pass(es)",
        details={
            "allocations": [
                {"allocationId": a.id, "gradingGatePassId": a.source_gate_pass_id,
                 "size": a.size, "quantity": a.quantity,
                 "location": f"{a.chamber}-{a.floor}-{a.row}"}
                for a in result.allocations
            ],
        },
        actor_id=actor_id,
    )
    logger.info(f"Storage gate pass #{storage.gate_pass_no} placed {total:g} bags")
    return storage


async def list_storage(db: AsyncSession, cold_storage_id: str) -> list[StorageGatePass]:
    result = await db.execute(
        select(StorageGatePass)
        .where(StorageGatePass.cold_storage_id == cold_storage_id)
        .options(selectinload(StorageGatePass.buckets))
        .order_by(StorageGatePass.gate_pass_no.desc())
    )
    return list(result.scalars().all())


async def storage_payloads(
    db: AsyncSession,
    storages: list[StorageGatePass],
    populate: bool = False,
) -> list[CreatedStorageGatePass]:
    """Render storage gate passes with snapshots, placements and history.

    ``populate`` swaps grading gate pass ids for the populated records.
    Requires ``buckets`` to be loaded on every storage gate pass.
    """
    ids = [s.id for s in storages]
    snapshots = await load_snapshots(db, KIND_STORAGE, ids)
    history = await edit_history(db, ids)

    sources = {s.id: source_gate_pass_ids(snapshots[s.id], KIND_GRADING) for s in storages}
    grading = {}
    if populate:
        all_ids = list(dict.fromkeys(gid for gids in sources.values() for gid in gids))
        grading = await load_grading_details(db, all_ids)

    payloads = []
    for storage in storages:
        fields = dict(
            id=storage.id,
            gate_pass_no=storage.gate_pass_no,
            manual_gate_pass_number=storage.manual_gate_pass_number,
            grading_gate_pass_snapshots=group_snapshots(snapshots[storage.id], KIND_GRADING),
            date=iso(storage.date),
            variety=storage.variety,
            order_details=[
                StorageOrderDetail(
                    size=b.size,
                    current_quantity=b.current_quantity,
                    initial_quantity=b.initial_quantity,
                    weight_per_bag=b.weight_per_bag_kg,
                    bag_type=b.bag_type,
                    chamber=b.chamber,
                    floor=b.floor,
                    row=b.row,
                )
                for b in storage.buckets
            ],
            edit_history=history_out(history[storage.id]),
            remarks=storage.remarks,
            created_at=iso(storage.created_at),
            updated_at=iso(storage.updated_at),
            revision=storage.revision or 0,
        )
        if populate:
            payloads.append(StorageGatePassDetail(
                grading_gate_pass_ids=[
                    grading_detail(grading[gid]) for gid in sources[storage.id] if gid in grading
                ],
                **fields,
            ))
        else:
            payloads.append(CreatedStorageGatePass(
                grading_gate_pass_ids=sources[storage.id], **fields,
            ))
    return payloads
