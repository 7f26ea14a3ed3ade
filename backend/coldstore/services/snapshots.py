"""Snapshot / audit store.

A BucketSnapshot freezes ``{size, initialQuantity, currentQuantity,
location}`` of a source bucket at the moment an allocation touched it.
Snapshots are written once and never updated; the live bucket keeps
moving.  The consuming gate pass renders them grouped per source gate
pass:

    [
        {"_id": <grading or storage gate pass id>, "gatePassNo": 12,
         "incomingBagSizes": [{"size": "Medium", "currentQuantity": 100,
                               "initialQuantity": 100, "location": "A-1-3"}]}
    ]
"""

from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coldstore.models.allocation import KIND_GRADING, BucketSnapshot
from coldstore.schemas.storage_gate_pass import GatePassSnapshot, IncomingBagSize


def take_snapshot(
    bucket,
    *,
    consumer_kind: str,
    consumer_gate_pass_id: str,
    allocation_id: str,
    current_quantity: float,
    location: str | None,
    position: int,
) -> BucketSnapshot:
    """Freeze ``bucket`` (an AllocatableBucket) as seen before a debit."""
    return BucketSnapshot(
        consumer_kind=consumer_kind,
        consumer_gate_pass_id=consumer_gate_pass_id,
        allocation_id=allocation_id,
        source_kind=bucket.kind.value,
        source_gate_pass_id=bucket.gate_pass_id,
        source_gate_pass_no=bucket.gate_pass_no,
        size=bucket.size,
        initial_quantity=bucket.initial_quantity,
        current_quantity=current_quantity,
        location=location,
        position=position,
    )


async def load_snapshots(
    db: AsyncSession, consumer_kind: str, consumer_ids: list[str]
) -> dict[str, list[BucketSnapshot]]:
    """Snapshots per consumer gate pass, in allocation order."""
    snapshots: dict[str, list[BucketSnapshot]] = {cid: [] for cid in consumer_ids}
    if not consumer_ids:
        return snapshots
    result = await db.execute(
        select(BucketSnapshot)
        .where(
            BucketSnapshot.consumer_kind == consumer_kind,
            BucketSnapshot.consumer_gate_pass_id.in_(consumer_ids),
        )
        .order_by(BucketSnapshot.position, BucketSnapshot.created_at)
    )
    for snap in result.scalars().all():
        snapshots[snap.consumer_gate_pass_id].append(snap)
    return snapshots


def group_snapshots(
    snapshots: list[BucketSnapshot], source_kind: str = KIND_GRADING
) -> list[GatePassSnapshot]:
    """Group one consumer's snapshots by source gate pass (first-seen order)."""
    grouped: dict[str, list[BucketSnapshot]] = defaultdict(list)
    numbers: dict[str, int] = {}
    for snap in snapshots:
        if snap.source_kind != source_kind:
            continue
        grouped[snap.source_gate_pass_id].append(snap)
        numbers[snap.source_gate_pass_id] = snap.source_gate_pass_no

    return [
        GatePassSnapshot(
            id=gate_pass_id,
            gate_pass_no=numbers[gate_pass_id],
            incoming_bag_sizes=[
                IncomingBagSize(
                    size=snap.size,
                    current_quantity=snap.current_quantity,
                    initial_quantity=snap.initial_quantity,
                    location=snap.location,
                )
                for snap in rows
            ],
        )
        for gate_pass_id, rows in grouped.items()
    ]


def source_gate_pass_ids(snapshots: list[BucketSnapshot], source_kind: str) -> list[str]:
    """Distinct source gate pass ids of one kind, first-seen order."""
    seen: list[str] = []
    for snap in snapshots:
        if snap.source_kind == source_kind and snap.source_gate_pass_id not in seen:
            seen.append(snap.source_gate_pass_id)
    return seen

