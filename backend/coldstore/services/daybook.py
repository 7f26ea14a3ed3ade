"""Daybook — the store's running register, one entry per incoming lot.

Each entry gathers the lot's grading gate passes and every storage and
nikasi gate pass that drew bags from them, with bag totals:

    totalBagsIncoming   bags received on the lot
    totalBagsGraded     bags graded into sized buckets
    totalBagsStored     net bags placed from the lot's grading buckets
    totalBagsNikasi     net bags issued from the lot, straight from its
                        grading buckets or out of storage placements

A storage gate pass can merge several lots into one size bucket.  Nikasi
issued from such a bucket is shared between those lots in proportion to
the net bags each placed there.

With a weight slip on the lot and at least one graded bag:

    wastageKg = (net kg - incoming bags * 0.7) - (graded kg - graded bags * 0.06)
"""

import logging
import math
from collections import defaultdict

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from coldstore.models.allocation import KIND_GRADING, KIND_NIKASI, KIND_STORAGE, Allocation
from coldstore.models.farmer import FarmerStorageLink
from coldstore.models.grading_gate_pass import GradingGatePass
from coldstore.models.incoming_gate_pass import IncomingGatePass
from coldstore.models.nikasi_gate_pass import NikasiGatePass
from coldstore.models.storage_gate_pass import StorageGatePass
from coldstore.schemas.common import Pagination, iso
from coldstore.schemas.daybook import (
    DaybookEntry,
    DaybookFarmer,
    DaybookPage,
    DaybookSummaries,
)
from coldstore.schemas.grading_gate_pass import grading_out
from coldstore.schemas.incoming_gate_pass import incoming_out
from coldstore.services.allocation import net_by_debit, qty
from coldstore.services.nikasi import nikasi_payloads
from coldstore.services.storage import storage_payloads

logger = logging.getLogger(__name__)

# Empty-bag weights deducted before comparing incoming and graded weight
INCOMING_BAG_KG = 0.7
GRADED_BAG_KG = 0.06


# ── Gate pass type filter ──────────────────────────────────────


def _lots_with_grading(cold_storage_id: str):
    return select(GradingGatePass.incoming_gate_pass_id).where(
        GradingGatePass.cold_storage_id == cold_storage_id
    )


def _lots_with_storage(cold_storage_id: str):
    return (
        select(GradingGatePass.incoming_gate_pass_id)
        .join(Allocation, Allocation.source_gate_pass_id == GradingGatePass.id)
        .where(
            GradingGatePass.cold_storage_id == cold_storage_id,
            Allocation.source_kind == KIND_GRADING,
            Allocation.consumer_kind == KIND_STORAGE,
        )
    )


def _lots_with_nikasi(cold_storage_id: str) -> list:
    direct = (
        select(GradingGatePass.incoming_gate_pass_id)
        .join(Allocation, Allocation.source_gate_pass_id == GradingGatePass.id)
        .where(
            GradingGatePass.cold_storage_id == cold_storage_id,
            Allocation.source_kind == KIND_GRADING,
            Allocation.consumer_kind == KIND_NIKASI,
        )
    )
    placement = aliased(Allocation)
    via_storage = (
        select(GradingGatePass.incoming_gate_pass_id)
        .join(placement, placement.source_gate_pass_id == GradingGatePass.id)
        .join(Allocation, Allocation.source_gate_pass_id == placement.consumer_gate_pass_id)
        .where(
            GradingGatePass.cold_storage_id == cold_storage_id,
            placement.source_kind == KIND_GRADING,
            placement.consumer_kind == KIND_STORAGE,
            Allocation.source_kind == KIND_STORAGE,
            Allocation.consumer_kind == KIND_NIKASI,
        )
    )
    return [direct, via_storage]


def _type_filter(cold_storage_id: str, gate_pass_types: list[str] | None):
    """Lots having at least one gate pass of the given types (None = all)."""
    if not gate_pass_types or "incoming" in gate_pass_types:
        return None
    conditions = []
    if "grading" in gate_pass_types:
        conditions.append(IncomingGatePass.id.in_(_lots_with_grading(cold_storage_id)))
    if "storage" in gate_pass_types:
        conditions.append(IncomingGatePass.id.in_(_lots_with_storage(cold_storage_id)))
    if "nikasi" in gate_pass_types:
        conditions += [IncomingGatePass.id.in_(q) for q in _lots_with_nikasi(cold_storage_id)]
    return or_(*conditions)


# ── Daybook ────────────────────────────────────────────────────


async def get_daybook(
    db: AsyncSession,
    cold_storage_id: str,
    *,
    page: int = 1,
    limit: int = 10,
    sort_order: str = "desc",
    gate_pass_types: list[str] | None = None,
) -> DaybookPage:
    """One page of lots, ordered by incoming gate pass number."""
    base_stmt = select(IncomingGatePass).where(IncomingGatePass.cold_storage_id == cold_storage_id)
    condition = _type_filter(cold_storage_id, gate_pass_types)
    if condition is not None:
        base_stmt = base_stmt.where(condition)

    count_stmt = select(func.count()).select_from(base_stmt.subquery())
    total = await db.scalar(count_stmt) or 0

    order = (
        IncomingGatePass.gate_pass_no.asc() if sort_order == "asc"
        else IncomingGatePass.gate_pass_no.desc()
    )
    result = await db.execute(
        base_stmt
        .options(
            selectinload(IncomingGatePass.farmer_storage_link)
            .selectinload(FarmerStorageLink.farmer)
        )
        .order_by(order)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    lots = list(result.scalars().all())

    return DaybookPage(
        daybook=await _entries(db, lots),
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


async def _entries(db: AsyncSession, lots: list[IncomingGatePass]) -> list[DaybookEntry]:
    if not lots:
        return []
    lot_ids = {lot.id for lot in lots}

    result = await db.execute(
        select(GradingGatePass)
        .where(GradingGatePass.incoming_gate_pass_id.in_(list(lot_ids)))
        .options(selectinload(GradingGatePass.buckets))
        .order_by(GradingGatePass.gate_pass_no)
    )
    gradings = list(result.scalars().all())
    lot_of_grading = {g.id: g.incoming_gate_pass_id for g in gradings}

    # Storage gate passes fed by this page's lots, with every placement
    # into them from any lot
    storage_ids = set(
        (await db.execute(
            select(Allocation.consumer_gate_pass_id).where(
                Allocation.source_kind == KIND_GRADING,
                Allocation.consumer_kind == KIND_STORAGE,
                Allocation.source_gate_pass_id.in_(list(lot_of_grading)),
            )
        )).scalars().all()
    )
    placements = list(
        (await db.execute(
            select(Allocation).where(
                Allocation.consumer_kind == KIND_STORAGE,
                Allocation.consumer_gate_pass_id.in_(list(storage_ids)),
                Allocation.reverses_id.is_(None),
            )
        )).scalars().all()
    )
    outside = {p.source_gate_pass_id for p in placements} - set(lot_of_grading)
    if outside:
        rows = await db.execute(
            select(GradingGatePass.id, GradingGatePass.incoming_gate_pass_id)
            .where(GradingGatePass.id.in_(list(outside)))
        )
        lot_of_grading.update({gid: lot_id for gid, lot_id in rows.all()})

    issues = list(
        (await db.execute(
            select(Allocation).where(
                Allocation.consumer_kind == KIND_NIKASI,
                Allocation.reverses_id.is_(None),
                or_(
                    and_(
                        Allocation.source_kind == KIND_GRADING,
                        Allocation.source_gate_pass_id.in_(list(lot_of_grading)),
                    ),
                    and_(
                        Allocation.source_kind == KIND_STORAGE,
                        Allocation.source_gate_pass_id.in_(list(storage_ids)),
                    ),
                ),
            )
        )).scalars().all()
    )
    net = await net_by_debit(db, placements + issues)

    stored: dict[str, float] = defaultdict(float)
    storage_by_lot: dict[str, dict[str, None]] = defaultdict(dict)
    placed: dict[tuple[str, str], dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for debit in placements:
        lot_id = lot_of_grading[debit.source_gate_pass_id]
        placed[(debit.consumer_gate_pass_id, debit.size)][lot_id] += net[debit.id]
        if lot_id in lot_ids:
            stored[lot_id] += net[debit.id]
            storage_by_lot[lot_id][debit.consumer_gate_pass_id] = None

    issued: dict[str, float] = defaultdict(float)
    nikasi_by_lot: dict[str, dict[str, None]] = defaultdict(dict)
    for debit in issues:
        if debit.source_kind == KIND_GRADING:
            shares = {lot_of_grading[debit.source_gate_pass_id]: 1.0}
        else:
            bucket = placed[(debit.source_gate_pass_id, debit.size)]
            bucket_total = sum(bucket.values())
            shares = {
                lot_id: (value / bucket_total if bucket_total else 0.0)
                for lot_id, value in bucket.items()
            }
        for lot_id, share in shares.items():
            if lot_id in lot_ids:
                issued[lot_id] += net[debit.id] * share
                nikasi_by_lot[lot_id][debit.consumer_gate_pass_id] = None

    storages = await _storage_payloads(db, storage_ids)
    nikasis = await _nikasi_payloads(db, {i.consumer_gate_pass_id for i in issues})

    gradings_by_lot: dict[str, list[GradingGatePass]] = defaultdict(list)
    for grading in gradings:
        gradings_by_lot[grading.incoming_gate_pass_id].append(grading)

    entries = []
    for lot in lots:
        lot_gradings = gradings_by_lot[lot.id]
        entries.append(DaybookEntry(
            incoming=incoming_out(lot),
            farmer=_farmer(lot.farmer_storage_link),
            grading_passes=[grading_out(g) for g in lot_gradings],
            storage_passes=sorted(
                (storages[sid] for sid in storage_by_lot[lot.id]), key=lambda s: s.gate_pass_no
            ),
            nikasi_passes=sorted(
                (nikasis[nid] for nid in nikasi_by_lot[lot.id]), key=lambda n: n.gate_pass_no
            ),
            summaries=_summaries(lot, lot_gradings, stored[lot.id], issued[lot.id]),
        ))
    logger.debug(f"Daybook page with {len(entries)} lot(s)")
    return entries


async def _storage_payloads(db: AsyncSession, ids: set[str]) -> dict:
    if not ids:
        return {}
    result = await db.execute(
        select(StorageGatePass)
        .where(StorageGatePass.id.in_(list(ids)))
        .options(selectinload(StorageGatePass.buckets))
    )
    payloads = await storage_payloads(db, list(result.scalars().all()))
    return {p.id: p for p in payloads}


async def _nikasi_payloads(db: AsyncSession, ids: set[str]) -> dict:
    if not ids:
        return {}
    result = await db.execute(select(NikasiGatePass).where(NikasiGatePass.id.in_(list(ids))))
    payloads = await nikasi_payloads(db, list(result.scalars().all()))
    return {p.id: p for p in payloads}


def _farmer(link: FarmerStorageLink | None) -> DaybookFarmer | None:
    if link is None or link.farmer is None:
        return None
    farmer = link.farmer
    return DaybookFarmer(
        id=farmer.id,
        name=farmer.name,
        address=farmer.address,
        mobile_number=farmer.mobile_number,
        image_url=farmer.image_url,
        account_number=link.account_number,
        created_at=iso(farmer.created_at),
        updated_at=iso(farmer.updated_at),
    )


def _summaries(
    lot: IncomingGatePass,
    gradings: list[GradingGatePass],
    stored: float,
    issued: float,
) -> DaybookSummaries:
    graded = lot.total_graded_bags or 0.0
    totals = dict(
        total_bags_incoming=lot.bags_received,
        total_bags_graded=qty(graded),
        total_bags_stored=qty(stored),
        total_bags_nikasi=qty(issued),
    )
    if lot.gross_weight_kg is None or lot.tare_weight_kg is None:
        return DaybookSummaries(**totals)

    net_kg = lot.gross_weight_kg - lot.tare_weight_kg
    totals["incoming_net_kg"] = qty(net_kg)
    if graded > 0:
        graded_kg = sum(
            b.initial_quantity * b.weight_per_bag_kg for g in gradings for b in g.buckets
        )
        wastage = (net_kg - lot.bags_received * INCOMING_BAG_KG) - (graded_kg - graded * GRADED_BAG_KG)
        totals["wastage_kg"] = qty(wastage)
        if net_kg > 0:
            totals["wastage_percent"] = round(wastage / net_kg * 100, 2)
    return DaybookSummaries(**totals)
