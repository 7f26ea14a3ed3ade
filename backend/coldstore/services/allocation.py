"""Allocation engine — moves bag quantity from source buckets to consumers.

The storage and nikasi ledgers both consume through ``allocate``:

  1. Resolve every source bucket key with a row-locked read
     (``FOR UPDATE NOWAIT`` on PostgreSQL); NotFound if any is missing.
  2. Validate against that one consistent read, before any mutation:
     every quantity > 0, and per bucket the summed request ≤ current.
  3. Snapshot each source bucket as seen before its debit.
  4. Debit the buckets and append one Allocation edge per request.

The caller owns the transaction (see utils.transaction), so a failure in
any step leaves every bucket untouched.  Buckets carry a version_id, so
two transactions that both passed validation against the same balance
cannot both commit.

``release`` appends a credit edge and restores the amount to the
immediate source bucket only (non-cascading).

Invariant per bucket, at all times:

    0 <= current_quantity <= initial_quantity
    initial_quantity - current_quantity == sum(Allocation.quantity)
"""

import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coldstore.config import settings
from coldstore.middleware.exceptions import (
    InsufficientQuantityError,
    InvalidInputError,
    ResourceNotFoundError,
)
from coldstore.models.allocation import (
    KIND_GRADING,
    KIND_NIKASI,
    KIND_STORAGE,
    Allocation,
    BucketSnapshot,
)
from coldstore.models.grading_gate_pass import GradingBucket, GradingGatePass
from coldstore.models.nikasi_gate_pass import NikasiGatePass
from coldstore.models.storage_gate_pass import StorageBucket, StorageGatePass
from coldstore.services.snapshots import take_snapshot
from coldstore.utils.activity import log_activity

logger = logging.getLogger(__name__)

QUANTITY_PLACES = 3


def qty(value: float) -> float:
    """Round a bag quantity to the ledger's precision.

    Raises:
        InvalidInputError: the value is NaN or infinite.
    """
    value = float(value)
    if not math.isfinite(value):
        raise InvalidInputError(
            "Quantity must be a finite number", details={"quantity": str(value)}
        )
    return round(value, QUANTITY_PLACES)


# ── Data structures ────────────────────────────────────────────


class BucketKind(str, Enum):
    GRADING = KIND_GRADING
    STORAGE = KIND_STORAGE


@dataclass(frozen=True)
class BucketKey:
    """(gate pass, size) address of a live bucket."""
    kind: BucketKind
    gate_pass_id: str
    size: str


@dataclass(frozen=True)
class Location:
    chamber: str
    floor: str
    row: str

    @classmethod
    def parse(cls, chamber: str | None, floor: str | None, row: str | None) -> "Location":
        """Build a location; every part is required and non-empty."""
        values = {
            "chamber": (chamber or "").strip(),
            "floor": (floor or "").strip(),
            "row": (row or "").strip(),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise InvalidInputError(
                f"Storage location requires {', '.join(missing)}",
                details={"missing": missing},
            )
        return cls(**values)

    @property
    def label(self) -> str:
        return f"{self.chamber}-{self.floor}-{self.row}"


@dataclass
class AllocationRequest:
    key: BucketKey
    quantity: float
    # Storage consumers only
    location: Location | None = None


@dataclass
class AllocatableBucket:
    """Tagged variant over GradingBucket and StorageBucket.

    The engine only ever reads and moves quantity through this type, so
    both bucket kinds follow exactly the same debit / credit rules.
    """
    kind: BucketKind
    row: GradingBucket | StorageBucket
    gate_pass_id: str
    gate_pass_no: int
    variety: str

    @property
    def key(self) -> BucketKey:
        return BucketKey(self.kind, self.gate_pass_id, self.row.size)

    @property
    def size(self) -> str:
        return self.row.size

    @property
    def initial_quantity(self) -> float:
        return self.row.initial_quantity

    @property
    def current_quantity(self) -> float:
        return self.row.current_quantity

    @property
    def bag_type(self) -> str:
        return self.row.bag_type

    @property
    def weight_per_bag_kg(self) -> float:
        return self.row.weight_per_bag_kg

    @property
    def location(self) -> str | None:
        if self.kind is BucketKind.STORAGE:
            return self.row.location
        return None

    def describe(self) -> str:
        return f"{self.kind.value} gate pass #{self.gate_pass_no} size {self.size}"

    def ref(self) -> dict:
        return {
            "kind": self.kind.value,
            "gatePassId": self.gate_pass_id,
            "gatePassNo": self.gate_pass_no,
            "size": self.size,
        }

    def debit(self, amount: float) -> None:
        self.row.current_quantity = qty(self.row.current_quantity - amount)

    def credit(self, amount: float) -> None:
        self.row.current_quantity = qty(
            min(self.row.initial_quantity, self.row.current_quantity + amount)
        )


@dataclass
class AllocationResult:
    allocations: list[Allocation]
    snapshots: list[BucketSnapshot]
    buckets: dict[BucketKey, AllocatableBucket]


@dataclass
class ReleaseResult:
    credit: Allocation
    released: float
    net_allocated: float
    source: AllocatableBucket
    # The storage placement that shrank (storage consumers only)
    placement: AllocatableBucket | None = None


# ── Resolution ─────────────────────────────────────────────────


def _lock(stmt, of):
    return stmt.with_for_update(of=of, nowait=settings.allocation_lock_nowait)


async def resolve_buckets(
    db: AsyncSession,
    cold_storage_id: str,
    keys: list[BucketKey],
    lock: bool = True,
) -> dict[BucketKey, AllocatableBucket]:
    """Load the live buckets for ``keys`` (row-locked by default).

    Raises:
        ResourceNotFoundError: a gate pass or one of its sizes is unknown.
    """
    resolved: dict[BucketKey, AllocatableBucket] = {}
    grading_keys = [k for k in keys if k.kind is BucketKind.GRADING]
    storage_keys = [k for k in keys if k.kind is BucketKind.STORAGE]

    if grading_keys:
        stmt = (
            select(GradingBucket, GradingGatePass)
            .join(GradingGatePass, GradingBucket.grading_gate_pass_id == GradingGatePass.id)
            .where(
                GradingGatePass.cold_storage_id == cold_storage_id,
                or_(*[
                    and_(GradingBucket.grading_gate_pass_id == k.gate_pass_id, GradingBucket.size == k.size)
                    for k in grading_keys
                ]),
            )
            .order_by(GradingBucket.id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = _lock(stmt, GradingBucket)
        for bucket, gate_pass in (await db.execute(stmt)).all():
            entry = AllocatableBucket(
                kind=BucketKind.GRADING, row=bucket, gate_pass_id=gate_pass.id,
                gate_pass_no=gate_pass.gate_pass_no, variety=gate_pass.variety,
            )
            resolved[entry.key] = entry

    if storage_keys:
        stmt = (
            select(StorageBucket, StorageGatePass)
            .join(StorageGatePass, StorageBucket.storage_gate_pass_id == StorageGatePass.id)
            .where(
                StorageGatePass.cold_storage_id == cold_storage_id,
                or_(*[
                    and_(StorageBucket.storage_gate_pass_id == k.gate_pass_id, StorageBucket.size == k.size)
                    for k in storage_keys
                ]),
            )
            .order_by(StorageBucket.id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = _lock(stmt, StorageBucket)
        for bucket, gate_pass in (await db.execute(stmt)).all():
            entry = AllocatableBucket(
                kind=BucketKind.STORAGE, row=bucket, gate_pass_id=gate_pass.id,
                gate_pass_no=gate_pass.gate_pass_no, variety=gate_pass.variety,
            )
            resolved[entry.key] = entry

    missing = [k for k in keys if k not in resolved]
    if missing:
        await _raise_missing(db, cold_storage_id, missing[0])
    return resolved


async def _raise_missing(db: AsyncSession, cold_storage_id: str, key: BucketKey) -> None:
    model = GradingGatePass if key.kind is BucketKind.GRADING else StorageGatePass
    label = "Grading" if key.kind is BucketKind.GRADING else "Storage"
    exists = await db.scalar(
        select(func.count(model.id)).where(
            model.id == key.gate_pass_id, model.cold_storage_id == cold_storage_id
        )
    )
    if not exists:
        raise ResourceNotFoundError(f"{label} gate pass", key.gate_pass_id)
    raise ResourceNotFoundError(f"{label} bucket", f"{key.gate_pass_id} size {key.size}")


# ── Allocate ───────────────────────────────────────────────────


async def allocate(
    db: AsyncSession,
    *,
    cold_storage_id: str,
    consumer_kind: str,
    consumer_gate_pass_id: str,
    requests: list[AllocationRequest],
    variety: str | None = None,
    actor_id: str | None = None,
) -> AllocationResult:
    """Debit source buckets for one consumer gate pass, all or nothing.

    Raises:
        InvalidInputError: empty request list, quantity ≤ 0, variety
            mismatch, or a source that is the consumer itself.
        ResourceNotFoundError: unknown source gate pass or size.
        InsufficientQuantityError: summed request exceeds a bucket's balance.
    """
    if not requests:
        raise InvalidInputError("At least one allocation is required")

    for request in requests:
        request.quantity = qty(request.quantity)
        if not request.quantity > 0:
            raise InvalidInputError(
                f"Quantity must be greater than 0 (size {request.key.size})",
                details={"gatePassId": request.key.gate_pass_id, "size": request.key.size,
                         "quantity": request.quantity},
            )
        if request.key.kind.value == consumer_kind and request.key.gate_pass_id == consumer_gate_pass_id:
            raise InvalidInputError(
                "A gate pass cannot allocate from its own bucket",
                details={"gatePassId": consumer_gate_pass_id, "size": request.key.size},
            )

    keys = list(dict.fromkeys(r.key for r in requests))
    buckets = await resolve_buckets(db, cold_storage_id, keys)

    if variety is not None:
        for bucket in buckets.values():
            if bucket.variety != variety:
                raise InvalidInputError(
                    f"Variety mismatch: {bucket.describe()} holds {bucket.variety}, not {variety}",
                    details={"bucket": bucket.ref(), "expected": variety, "actual": bucket.variety},
                )

    # Validate every bucket before touching any of them
    requested: dict[BucketKey, float] = defaultdict(float)
    for request in requests:
        requested[request.key] += request.quantity
    for key, total in requested.items():
        bucket = buckets[key]
        if qty(total) > bucket.current_quantity:
            raise InsufficientQuantityError(
                bucket.describe(), qty(total), bucket.current_quantity, bucket.ref(),
            )

    allocations: list[Allocation] = []
    snapshots: list[BucketSnapshot] = []
    for position, request in enumerate(requests):
        bucket = buckets[request.key]
        before = bucket.current_quantity
        location = request.location
        allocation = Allocation(
            id=str(uuid.uuid4()),
            cold_storage_id=cold_storage_id,
            source_kind=bucket.kind.value,
            source_bucket_id=bucket.row.id,
            source_gate_pass_id=bucket.gate_pass_id,
            size=bucket.size,
            consumer_kind=consumer_kind,
            consumer_gate_pass_id=consumer_gate_pass_id,
            quantity=request.quantity,
            quantity_available=before,
            chamber=location.chamber if location else None,
            floor=location.floor if location else None,
            row=location.row if location else None,
            created_by=actor_id,
        )
        snapshot = take_snapshot(
            bucket,
            consumer_kind=consumer_kind,
            consumer_gate_pass_id=consumer_gate_pass_id,
            allocation_id=allocation.id,
            current_quantity=before,
            location=location.label if location else bucket.location,
            position=position,
        )
        bucket.debit(request.quantity)
        db.add(allocation)
        allocations.append(allocation)
        snapshots.append(snapshot)

    # Snapshots reference their allocation rows
    await db.flush()
    db.add_all(snapshots)

    await _refresh_grading_status(
        db, {b.gate_pass_id for b in buckets.values() if b.kind is BucketKind.GRADING}
    )
    await db.flush()

    logger.info(
        f"Allocated {sum(a.quantity for a in allocations):g} bags from {len(buckets)} bucket(s) "
        f"to {consumer_kind} gate pass {consumer_gate_pass_id}",
        extra={"cold_storage_id": cold_storage_id, "consumer_kind": consumer_kind},
    )
    return AllocationResult(allocations=allocations, snapshots=snapshots, buckets=buckets)


async def _refresh_grading_status(db: AsyncSession, gate_pass_ids: set[str]) -> None:
    if not gate_pass_ids:
        return
    result = await db.execute(
        select(GradingGatePass)
        .where(GradingGatePass.id.in_(gate_pass_ids))
        .options(selectinload(GradingGatePass.buckets))
        .execution_options(populate_existing=True)
    )
    for gate_pass in result.scalars().all():
        gate_pass.refresh_allocation_status()


# ── Release ────────────────────────────────────────────────────


async def net_allocated(db: AsyncSession, debit: Allocation) -> float:
    """Debit quantity minus everything already released from it."""
    credited = await db.scalar(
        select(func.coalesce(func.sum(Allocation.quantity), 0.0)).where(
            Allocation.reverses_id == debit.id
        )
    )
    return qty(debit.quantity + (credited or 0.0))


async def net_by_debit(db: AsyncSession, debits: list[Allocation]) -> dict[str, float]:
    """``net_allocated`` for many debits in one query."""
    net = {d.id: d.quantity for d in debits}
    if not debits:
        return net
    result = await db.execute(
        select(Allocation.reverses_id, func.sum(Allocation.quantity))
        .where(Allocation.reverses_id.in_(list(net)))
        .group_by(Allocation.reverses_id)
    )
    for debit_id, credited in result.all():
        net[debit_id] += credited or 0.0
    return {debit_id: qty(value) for debit_id, value in net.items()}


async def release(
    db: AsyncSession,
    *,
    cold_storage_id: str,
    allocation_id: str,
    amount: float,
    actor_id: str | None = None,
) -> ReleaseResult:
    """Return ``amount`` of a debit to its immediate source bucket.

    Appends a credit edge; upstream buckets are never touched.  Releasing
    a storage placement also shrinks the StorageBucket it produced.

    Raises:
        ResourceNotFoundError: unknown allocation.
        InvalidInputError: amount ≤ 0, amount above the net still
            allocated, or the allocation is itself a credit.
        InsufficientQuantityError: the placed bags were already dispatched.
    """
    debit = (
        await db.execute(
            select(Allocation).where(
                Allocation.id == allocation_id,
                Allocation.cold_storage_id == cold_storage_id,
            )
        )
    ).scalar_one_or_none()
    if not debit:
        raise ResourceNotFoundError("Allocation", allocation_id)
    if debit.is_credit:
        raise InvalidInputError(
            "A release entry cannot itself be released",
            details={"allocationId": debit.id, "reversesId": debit.reverses_id},
        )

    amount = qty(amount)
    if not amount > 0:
        raise InvalidInputError(
            "Release amount must be greater than 0", details={"amount": amount}
        )

    source_key = BucketKey(BucketKind(debit.source_kind), debit.source_gate_pass_id, debit.size)
    keys = [source_key]
    placement_key = None
    if debit.consumer_kind == KIND_STORAGE:
        placement_key = BucketKey(BucketKind.STORAGE, debit.consumer_gate_pass_id, debit.size)
        keys.append(placement_key)
    buckets = await resolve_buckets(db, cold_storage_id, keys)

    # Read under the bucket locks so two releases cannot both pass
    remaining = await net_allocated(db, debit)
    if amount > remaining:
        raise InvalidInputError(
            f"Release amount {amount:g} exceeds the {remaining:g} still allocated",
            details={"allocationId": debit.id, "amount": amount, "netAllocated": remaining},
        )

    placement = buckets.get(placement_key) if placement_key else None
    if placement is not None:
        if amount > placement.current_quantity:
            raise InsufficientQuantityError(
                placement.describe(), amount, placement.current_quantity, placement.ref(),
            )
        placement.row.initial_quantity = qty(placement.row.initial_quantity - amount)
        placement.debit(amount)

    source = buckets[source_key]
    source.credit(amount)

    credit = Allocation(
        id=str(uuid.uuid4()),
        cold_storage_id=cold_storage_id,
        source_kind=debit.source_kind,
        source_bucket_id=debit.source_bucket_id,
        source_gate_pass_id=debit.source_gate_pass_id,
        size=debit.size,
        consumer_kind=debit.consumer_kind,
        consumer_gate_pass_id=debit.consumer_gate_pass_id,
        quantity=-amount,
        reverses_id=debit.id,
        chamber=debit.chamber,
        floor=debit.floor,
        row=debit.row,
        created_by=actor_id,
    )
    db.add(credit)

    if source.kind is BucketKind.GRADING:
        await _refresh_grading_status(db, {source.gate_pass_id})
    await _bump_revision(db, debit.consumer_kind, debit.consumer_gate_pass_id)
    await log_activity(
        db, cold_storage_id,
        action="released", entity_type=f"{debit.consumer_kind}_gate_pass",
        entity_id=debit.consumer_gate_pass_id,
        summary=f"Released {amount:g} of {debit.size} back to {source.describe()}",
        details={"allocationId": debit.id, "creditId": credit.id, "amount": amount},
        actor_id=actor_id,
    )
    await db.flush()

    logger.info(
        f"Released {amount:g} of allocation {debit.id} back to {source.describe()}",
        extra={"cold_storage_id": cold_storage_id, "allocation_id": debit.id},
    )
    return ReleaseResult(
        credit=credit,
        released=amount,
        net_allocated=qty(remaining - amount),
        source=source,
        placement=placement,
    )


async def _bump_revision(db: AsyncSession, consumer_kind: str, gate_pass_id: str) -> None:
    model = NikasiGatePass if consumer_kind == KIND_NIKASI else StorageGatePass
    gate_pass = await db.get(model, gate_pass_id)
    if gate_pass is not None:
        gate_pass.revision = (gate_pass.revision or 0) + 1


# ── Queries ────────────────────────────────────────────────────


async def list_allocations(
    db: AsyncSession,
    cold_storage_id: str,
    *,
    consumer_kind: str | None = None,
    consumer_gate_pass_id: str | None = None,
    source_gate_pass_id: str | None = None,
    debits_only: bool = False,
) -> list[Allocation]:
    stmt = select(Allocation).where(Allocation.cold_storage_id == cold_storage_id)
    if consumer_kind:
        stmt = stmt.where(Allocation.consumer_kind == consumer_kind)
    if consumer_gate_pass_id:
        stmt = stmt.where(Allocation.consumer_gate_pass_id == consumer_gate_pass_id)
    if source_gate_pass_id:
        stmt = stmt.where(Allocation.source_gate_pass_id == source_gate_pass_id)
    if debits_only:
        stmt = stmt.where(Allocation.reverses_id.is_(None))
    stmt = stmt.order_by(Allocation.created_at, Allocation.id)
    return list((await db.execute(stmt)).scalars().all())
