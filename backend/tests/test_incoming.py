"""Incoming gate pass (lot) endpoint tests."""

from datetime import date

import pytest


@pytest.mark.api
@pytest.mark.asyncio
class TestIncomingCreate:
    """Test lot intake."""

    async def test_create_lot_issues_first_number(self, ledger):
        """A new lot gets #1, starts OPEN with nothing graded."""
        lot = await ledger.create_lot(bags=250, weightSlip={"slipNumber": "WS-9", "grossWeightKg": 12500})

        assert lot["gatePassNo"] == 1
        assert lot["status"] == "OPEN"
        assert lot["bagsReceived"] == 250
        assert lot["gradingSummary"] == {"totalGradedBags": 0}
        assert lot["weightSlip"]["slipNumber"] == "WS-9"
        assert lot["__v"] == 0
        assert lot["_id"]

    async def test_numbers_increase_per_store(self, ledger):
        first = await ledger.create_lot()
        second = await ledger.create_lot()
        assert second["gatePassNo"] == first["gatePassNo"] + 1

    async def test_client_status_is_ignored(self, ledger):
        """A lot is always created OPEN, whatever the client sends."""
        lot = await ledger.create_lot(status="CLOSED", gradingSummary={"totalGradedBags": 99})
        assert lot["status"] == "OPEN"
        assert lot["gradingSummary"]["totalGradedBags"] == 0

    @pytest.mark.parametrize("bags", [0, -5])
    async def test_rejects_non_positive_bags(self, client, store_headers, farmer_link, bags):
        response = await client.post(
            "/api/incoming-gate-pass",
            json={
                "farmerStorageLinkId": farmer_link.id,
                "date": date.today().isoformat(),
                "variety": "Pukhraj",
                "truckNumber": "UP80 AB 1234",
                "bagsReceived": bags,
            },
            headers=store_headers,
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_INPUT"

    async def test_unknown_farmer_link(self, client, store_headers):
        response = await client.post(
            "/api/incoming-gate-pass",
            json={
                "farmerStorageLinkId": "no-such-link",
                "date": date.today().isoformat(),
                "variety": "Pukhraj",
                "truckNumber": "UP80 AB 1234",
                "bagsReceived": 10,
            },
            headers=store_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_proposed_number_must_be_above_last(self, ledger):
        """A proposed gatePassNo jumps the counter; a reused one is a 409."""
        lot = await ledger.create_lot(gatePassNo=10)
        assert lot["gatePassNo"] == 10

        nxt = await ledger.create_lot()
        assert nxt["gatePassNo"] == 11

        body = await ledger.post(
            "/api/incoming-gate-pass",
            {
                "farmerStorageLinkId": ledger.farmer_link_id,
                "date": date.today().isoformat(),
                "variety": "Pukhraj",
                "truckNumber": "UP80 AB 1234",
                "bagsReceived": 10,
                "gatePassNo": 10,
            },
            expected=409,
        )
        assert body["error"]["code"] == "DUPLICATE_GATE_PASS_NUMBER"

    async def test_missing_store_header(self, client, farmer_link):
        response = await client.get("/api/incoming-gate-pass")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_COLD_STORAGE"

    async def test_unknown_store(self, client, farmer_link):
        response = await client.get(
            "/api/incoming-gate-pass", headers={"X-Cold-Storage-Id": "nope"}
        )
        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestIncomingListAndClose:
    """Test listing and closing lots."""

    async def test_list_populates_farmer(self, ledger):
        await ledger.create_lot()
        items = (await ledger.get("/api/incoming-gate-pass"))["data"]

        assert len(items) == 1
        link = items[0]["farmerStorageLinkId"]
        assert link["accountNumber"] == 1
        assert link["farmerId"]["name"] == "Ram Singh"

    async def test_close_is_idempotent(self, ledger):
        lot = await ledger.create_lot()

        closed = (await ledger.post(f"/api/incoming-gate-pass/{lot['_id']}/close", {}, expected=200))["data"]
        assert closed["status"] == "CLOSED"
        assert closed["__v"] == 1

        again = (await ledger.post(f"/api/incoming-gate-pass/{lot['_id']}/close", {}, expected=200))["data"]
        assert again["status"] == "CLOSED"
        assert again["__v"] == 1

    async def test_filter_by_status(self, ledger):
        open_lot = await ledger.create_lot()
        closed_lot = await ledger.create_lot()
        await ledger.post(f"/api/incoming-gate-pass/{closed_lot['_id']}/close", {}, expected=200)

        open_items = (await ledger.get("/api/incoming-gate-pass", status="OPEN"))["data"]
        assert [i["_id"] for i in open_items] == [open_lot["_id"]]

        closed_items = (await ledger.get("/api/incoming-gate-pass", status="CLOSED"))["data"]
        assert [i["_id"] for i in closed_items] == [closed_lot["_id"]]
