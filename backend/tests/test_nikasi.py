"""Nikasi gate pass endpoint tests, including the full lot walk-through."""

import pytest

from coldstore.config import settings


async def _storage_bucket(ledger, storage_id: str, size: str = "Medium") -> dict:
    items = (await ledger.get("/api/storage-gate-pass"))["data"]
    storage = next(s for s in items if s["_id"] == storage_id)
    return next(d for d in storage["orderDetails"] if d["size"] == size)


@pytest.mark.api
@pytest.mark.asyncio
class TestNikasiCreate:
    """Test issuing bags out of the store."""

    async def test_issue_from_storage(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})
        storage = await ledger.create_storage(grading["_id"], 40)

        nikasi = (await ledger.create_nikasi(storage=[(storage["_id"], "Medium", 25)]))["data"]

        assert nikasi["gatePassNo"] == 1
        assert nikasi["from"] == "Cold Storage Gate"
        assert nikasi["toField"] == "Mandi"
        assert nikasi["storageGatePassIds"] == [storage["_id"]]
        assert nikasi["gradingGatePassIds"] == []
        detail = nikasi["orderDetails"][0]
        assert detail["storageGatePassId"] == storage["_id"]
        assert detail["quantityAvailable"] == 40
        assert detail["quantityIssued"] == 25
        snapshot = nikasi["storageGatePassSnapshots"][0]["incomingBagSizes"][0]
        assert snapshot["location"] == "A-1-3"
        assert snapshot["currentQuantity"] == 40

    async def test_issue_from_grading(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100, "Small": 30})

        nikasi = (await ledger.create_nikasi(grading=[(grading["_id"], "Small", 30)]))["data"]

        assert nikasi["gradingGatePassIds"] == [grading["_id"]]
        assert nikasi["orderDetails"][0]["gradingGatePassId"] == grading["_id"]
        assert await ledger.graded_bucket(grading["_id"], "Small") == (30, 0)

    async def test_source_mode_storage_rejects_grading(self, ledger, monkeypatch):
        monkeypatch.setattr(settings, "nikasi_source", "storage")
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        body = await ledger.create_nikasi(grading=[(grading["_id"], "Medium", 5)], expected=400)
        assert body["error"]["details"] == {"nikasiSource": "storage"}

    async def test_source_mode_grading_rejects_storage(self, ledger, monkeypatch):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})
        storage = await ledger.create_storage(grading["_id"], 40)
        monkeypatch.setattr(settings, "nikasi_source", "grading")

        await ledger.create_nikasi(storage=[(storage["_id"], "Medium", 5)], expected=400)

    async def test_requires_a_source(self, ledger):
        body = await ledger.create_nikasi(expected=400)
        assert body["success"] is False

    async def test_unknown_storage_gate_pass(self, ledger):
        body = await ledger.create_nikasi(storage=[("missing", "Medium", 5)], expected=404)
        assert body["error"]["details"]["resource"] == "Storage gate pass"


@pytest.mark.integration
@pytest.mark.asyncio
class TestLotWalkThrough:
    """Grading → storage → nikasi → release on one Medium bucket."""

    async def test_medium_bucket_walk_through(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        # Storage places 40 at A-1-3
        storage = await ledger.create_storage(grading["_id"], 40)
        assert await ledger.graded_bucket(grading["_id"]) == (100, 60)
        placed = storage["orderDetails"][0]
        assert (placed["currentQuantity"], placed["chamber"], placed["floor"], placed["row"]) == (40, "A", "1", "3")

        # Nikasi draws 25 from the placement; grading is untouched
        nikasi = (await ledger.create_nikasi(storage=[(storage["_id"], "Medium", 25)]))["data"]
        assert (await _storage_bucket(ledger, storage["_id"]))["currentQuantity"] == 15
        assert await ledger.graded_bucket(grading["_id"]) == (100, 60)

        # 70 against a balance of 60 fails and changes nothing
        body = await ledger.post(
            "/api/storage-gate-pass", ledger.storage_payload(grading["_id"], 70), expected=400
        )
        assert body["error"]["code"] == "INSUFFICIENT_QUANTITY"
        assert body["error"]["details"]["available"] == 60
        assert await ledger.graded_bucket(grading["_id"]) == (100, 60)

        # Releasing 10 of the nikasi credits the storage bucket only
        allocation_id = nikasi["orderDetails"][0]["allocationId"]
        released = (await ledger.release(allocation_id, 10))["data"]
        assert released["netAllocated"] == 15
        assert released["sourceBucket"]["currentQuantity"] == 25
        assert released["placementBucket"] is None
        assert (await _storage_bucket(ledger, storage["_id"]))["currentQuantity"] == 25
        assert await ledger.graded_bucket(grading["_id"]) == (100, 60)

        items = (await ledger.get("/api/nikasi-gate-pass"))["data"]
        listed = items[0]
        assert listed["orderDetails"][0]["quantityIssued"] == 15
        assert listed["__v"] == 1
        assert [e["action"] for e in listed["editHistory"]] == ["created", "released"]


@pytest.mark.api
@pytest.mark.asyncio
class TestNikasiList:

    async def test_list_populates_grading_sources(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})
        await ledger.create_nikasi(grading=[(grading["_id"], "Medium", 10)])

        items = (await ledger.get("/api/nikasi-gate-pass"))["data"]
        assert len(items) == 1
        assert items[0]["gradingGatePassIds"][0]["_id"] == grading["_id"]
        assert items[0]["gradingGatePassSnapshots"][0]["incomingBagSizes"][0]["currentQuantity"] == 100
