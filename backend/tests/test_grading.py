"""Grading gate pass endpoint tests."""

import pytest


@pytest.mark.api
@pytest.mark.asyncio
class TestGradingCreate:
    """Test splitting a lot into sized buckets."""

    async def test_buckets_start_full(self, ledger):
        lot = await ledger.create_lot(bags=300)
        grading = await ledger.create_grading(lot["_id"], {"Small": 80, "Medium": 100, "Large": 60})

        assert grading["gatePassNo"] == 1
        assert grading["incomingGatePassId"] == lot["_id"]
        assert grading["allocationStatus"] == "UNALLOCATED"
        by_size = {d["size"]: d for d in grading["orderDetails"]}
        assert by_size["Medium"]["initialQuantity"] == 100
        assert by_size["Medium"]["currentQuantity"] == 100
        assert [d["size"] for d in grading["orderDetails"]] == ["Small", "Medium", "Large"]

    async def test_client_current_quantity_is_ignored(self, ledger):
        lot = await ledger.create_lot()
        body = await ledger.post(
            "/api/grading-gate-pass",
            {
                "incomingGatePassId": lot["_id"],
                "gradedById": "grader-1",
                "date": lot["date"],
                "variety": "Pukhraj",
                "allocationStatus": "ALLOCATED",
                "orderDetails": [{
                    "size": "Medium", "bagType": "JUTE", "currentQuantity": 3,
                    "initialQuantity": 100, "weightPerBagKg": 50,
                }],
            },
        )
        grading = body["data"]
        assert grading["orderDetails"][0]["currentQuantity"] == 100
        assert grading["allocationStatus"] == "UNALLOCATED"

    async def test_updates_lot_grading_summary(self, ledger):
        lot = await ledger.create_lot(bags=300)
        await ledger.create_grading(lot["_id"], {"Medium": 100})
        await ledger.create_grading(lot["_id"], {"Large": 50.5})

        items = (await ledger.get("/api/incoming-gate-pass"))["data"]
        assert items[0]["gradingSummary"]["totalGradedBags"] == 150.5

    async def test_closed_lot_rejects_grading(self, ledger):
        lot = await ledger.create_lot()
        await ledger.post(f"/api/incoming-gate-pass/{lot['_id']}/close", {}, expected=200)

        body = await ledger.post(
            "/api/grading-gate-pass",
            {
                "incomingGatePassId": lot["_id"],
                "gradedById": "grader-1",
                "date": lot["date"],
                "variety": "Pukhraj",
                "orderDetails": [{"size": "Medium", "bagType": "JUTE", "initialQuantity": 10, "weightPerBagKg": 50}],
            },
            expected=400,
        )
        assert "closed" in body["message"]

    async def test_duplicate_size_rejected(self, ledger):
        lot = await ledger.create_lot()
        detail = {"size": "Medium", "bagType": "JUTE", "initialQuantity": 10, "weightPerBagKg": 50}
        body = await ledger.post(
            "/api/grading-gate-pass",
            {
                "incomingGatePassId": lot["_id"],
                "gradedById": "grader-1",
                "date": lot["date"],
                "variety": "Pukhraj",
                "orderDetails": [detail, detail],
            },
            expected=400,
        )
        assert body["error"]["code"] == "INVALID_INPUT"

    async def test_zero_initial_quantity_rejected(self, ledger):
        lot = await ledger.create_lot()
        await ledger.post(
            "/api/grading-gate-pass",
            {
                "incomingGatePassId": lot["_id"],
                "gradedById": "grader-1",
                "date": lot["date"],
                "variety": "Pukhraj",
                "orderDetails": [{"size": "Medium", "bagType": "JUTE", "initialQuantity": 0, "weightPerBagKg": 50}],
            },
            expected=400,
        )

    async def test_unknown_lot(self, ledger):
        body = await ledger.post(
            "/api/grading-gate-pass",
            {
                "incomingGatePassId": "missing",
                "gradedById": "grader-1",
                "date": "2026-10-18",
                "variety": "Pukhraj",
                "orderDetails": [{"size": "Medium", "bagType": "JUTE", "initialQuantity": 10, "weightPerBagKg": 50}],
            },
            expected=404,
        )
        assert body["error"]["details"]["resource"] == "Incoming gate pass"

    async def test_failed_grading_consumes_no_number(self, ledger):
        lot = await ledger.create_lot()
        await ledger.post(
            "/api/grading-gate-pass",
            {
                "incomingGatePassId": lot["_id"],
                "gradedById": "grader-1",
                "date": lot["date"],
                "variety": "Pukhraj",
                "orderDetails": [{"size": "Medium", "bagType": "JUTE", "initialQuantity": -1, "weightPerBagKg": 50}],
            },
            expected=400,
        )
        grading = await ledger.create_grading(lot["_id"], {"Medium": 10})
        assert grading["gatePassNo"] == 1


@pytest.mark.api
@pytest.mark.asyncio
class TestGradingList:

    async def test_list_populates_lot_and_farmer(self, ledger):
        lot = await ledger.create_lot()
        await ledger.create_grading(lot["_id"], {"Medium": 100})

        items = (await ledger.get("/api/grading-gate-pass"))["data"]
        assert len(items) == 1
        populated = items[0]["incomingGatePassId"]
        assert populated["_id"] == lot["_id"]
        assert populated["farmerStorageLinkId"]["farmerId"]["mobileNumber"] == "9876543210"
        assert items[0]["gradedById"] == {"_id": "grader-1"}

    async def test_filter_by_farmer_link(self, ledger):
        lot = await ledger.create_lot()
        await ledger.create_grading(lot["_id"], {"Medium": 100})

        mine = (await ledger.get("/api/grading-gate-pass", farmerStorageLinkId=ledger.farmer_link_id))["data"]
        other = (await ledger.get("/api/grading-gate-pass", farmerStorageLinkId="someone-else"))["data"]
        assert len(mine) == 1
        assert other == []
