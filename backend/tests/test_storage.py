"""Storage gate pass endpoint tests."""

import pytest


@pytest.mark.api
@pytest.mark.asyncio
class TestStorageCreate:
    """Test placing graded bags at a location."""

    async def test_places_bags_and_debits_grading(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        storage = await ledger.create_storage(grading["_id"], 40)

        assert storage["gatePassNo"] == 1
        assert storage["gradingGatePassIds"] == [grading["_id"]]
        detail = storage["orderDetails"][0]
        assert detail == {
            "size": "Medium",
            "currentQuantity": 40,
            "initialQuantity": 40,
            "weightPerBag": 50,
            "bagType": "JUTE",
            "chamber": "A",
            "floor": "1",
            "row": "3",
        }
        assert await ledger.graded_bucket(grading["_id"]) == (100, 60)

    async def test_snapshot_records_state_before_debit(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})
        await ledger.create_storage(grading["_id"], 30)

        storage = await ledger.create_storage(grading["_id"], 20, location=("B", "2", "1"))

        snapshot = storage["gradingGatePassSnapshots"][0]
        assert snapshot["_id"] == grading["_id"]
        assert snapshot["gatePassNo"] == grading["gatePassNo"]
        assert snapshot["incomingBagSizes"] == [
            {"size": "Medium", "currentQuantity": 70, "initialQuantity": 100, "location": "B-2-1"}
        ]

    async def test_several_grading_sources_merge_per_size(self, ledger):
        lot = await ledger.create_lot(bags=400)
        first = await ledger.create_grading(lot["_id"], {"Medium": 100})
        second = await ledger.create_grading(lot["_id"], {"Medium": 80, "Large": 50})

        payload = {
            "date": lot["date"],
            "variety": "Pukhraj",
            "gradingGatePasses": [
                {"gradingGatePassId": first["_id"], "allocations": [
                    {"size": "Medium", "quantityToAllocate": 10, "chamber": "A", "floor": "1", "row": "3"},
                ]},
                {"gradingGatePassId": second["_id"], "allocations": [
                    {"size": "Medium", "quantityToAllocate": 15, "chamber": "A", "floor": "1", "row": "3"},
                    {"size": "Large", "quantityToAllocate": 5, "chamber": "C", "floor": "2", "row": "9"},
                ]},
            ],
        }
        storage = (await ledger.post("/api/storage-gate-pass", payload))["data"]

        by_size = {d["size"]: d for d in storage["orderDetails"]}
        assert by_size["Medium"]["initialQuantity"] == 25
        assert by_size["Large"]["currentQuantity"] == 5
        assert (by_size["Large"]["chamber"], by_size["Large"]["row"]) == ("C", "9")
        assert storage["gradingGatePassIds"] == [first["_id"], second["_id"]]
        assert len(storage["gradingGatePassSnapshots"]) == 2

    async def test_one_location_per_size(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})
        payload = {
            "date": lot["date"],
            "variety": "Pukhraj",
            "gradingGatePasses": [{"gradingGatePassId": grading["_id"], "allocations": [
                {"size": "Medium", "quantityToAllocate": 10, "chamber": "A", "floor": "1", "row": "3"},
                {"size": "Medium", "quantityToAllocate": 10, "chamber": "A", "floor": "1", "row": "4"},
            ]}],
        }
        body = await ledger.post("/api/storage-gate-pass", payload, expected=400)
        assert body["error"]["details"]["locations"] == ["A-1-3", "A-1-4"]
        assert await ledger.graded_bucket(grading["_id"]) == (100, 100)

    @pytest.mark.parametrize("location", [("", "1", "3"), ("A", "", "3"), ("A", "1", " ")])
    async def test_location_required(self, ledger, location):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        payload = ledger.storage_payload(grading["_id"], 10, location=location)
        body = await ledger.post("/api/storage-gate-pass", payload, expected=400)
        assert body["error"]["code"] == "INVALID_INPUT"

    async def test_insufficient_quantity_is_atomic(self, ledger):
        """A failing size rolls back the other sizes and the gate-pass number."""
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 60, "Large": 30})
        payload = {
            "date": lot["date"],
            "variety": "Pukhraj",
            "gradingGatePasses": [{"gradingGatePassId": grading["_id"], "allocations": [
                {"size": "Medium", "quantityToAllocate": 20, "chamber": "A", "floor": "1", "row": "3"},
                {"size": "Large", "quantityToAllocate": 31, "chamber": "A", "floor": "1", "row": "4"},
            ]}],
        }
        body = await ledger.post("/api/storage-gate-pass", payload, expected=400)
        assert body["error"]["code"] == "INSUFFICIENT_QUANTITY"
        assert body["error"]["details"]["shortfall"] == 1

        assert await ledger.graded_bucket(grading["_id"]) == (60, 60)
        assert (await ledger.get("/api/storage-gate-pass"))["data"] == []
        assert await ledger.allocations() == []

        storage = await ledger.create_storage(grading["_id"], 20)
        assert storage["gatePassNo"] == 1

    async def test_buckets_are_checked_before_the_number(self, ledger):
        """A shortfall is reported even when the proposed number is also taken."""
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 50})
        first = await ledger.create_storage(grading["_id"], 10)

        payload = {**ledger.storage_payload(grading["_id"], 45), "gatePassNo": first["gatePassNo"]}
        body = await ledger.post("/api/storage-gate-pass", payload, expected=400)
        assert body["error"]["code"] == "INSUFFICIENT_QUANTITY"

        payload = {**ledger.storage_payload(grading["_id"], 5), "gatePassNo": first["gatePassNo"]}
        body = await ledger.post("/api/storage-gate-pass", payload, expected=409)
        assert body["error"]["code"] == "DUPLICATE_GATE_PASS_NUMBER"
        assert await ledger.graded_bucket(grading["_id"]) == (50, 40)

    async def test_variety_must_match(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        payload = ledger.storage_payload(grading["_id"], 10, variety="Kufri Jyoti")
        await ledger.post("/api/storage-gate-pass", payload, expected=400)

    async def test_unknown_size(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        body = await ledger.post(
            "/api/storage-gate-pass", ledger.storage_payload(grading["_id"], 10, size="Jumbo"), expected=404
        )
        assert body["error"]["details"]["resource"] == "Grading bucket"

    async def test_edit_history_records_creation(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})

        storage = await ledger.create_storage(grading["_id"], 40)

        assert [entry["action"] for entry in storage["editHistory"]] == ["created"]
        allocations = storage["editHistory"][0]["details"]["allocations"]
        assert allocations[0]["location"] == "A-1-3"


@pytest.mark.api
@pytest.mark.asyncio
class TestStorageList:

    async def test_list_populates_grading(self, ledger):
        lot = await ledger.create_lot()
        grading = await ledger.create_grading(lot["_id"], {"Medium": 100})
        await ledger.create_storage(grading["_id"], 40)

        items = (await ledger.get("/api/storage-gate-pass"))["data"]
        assert len(items) == 1
        populated = items[0]["gradingGatePassIds"][0]
        assert populated["_id"] == grading["_id"]
        assert populated["orderDetails"][0]["currentQuantity"] == 60
        assert populated["incomingGatePassId"]["_id"] == lot["_id"]
