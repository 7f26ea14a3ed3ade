"""Gate-pass numbering and voucher-number preview tests."""

import pytest

from coldstore.middleware.exceptions import GatePassNumberConflictError, InvalidInputError
from coldstore.models.cold_storage import ColdStorage
from coldstore.utils.numbering import (
    GRADING,
    INCOMING,
    NIKASI,
    issue_gate_pass_number,
    peek_next_number,
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestIssueNumber:

    async def test_sequence_per_type(self, db_session, cold_storage):
        assert await issue_gate_pass_number(db_session, cold_storage.id, INCOMING) == 1
        assert await issue_gate_pass_number(db_session, cold_storage.id, INCOMING) == 2
        assert await issue_gate_pass_number(db_session, cold_storage.id, GRADING) == 1
        assert await peek_next_number(db_session, cold_storage.id, INCOMING) == 3

    async def test_counter_created_lazily(self, db_session):
        store = ColdStorage(name="New Store")
        db_session.add(store)
        await db_session.flush()

        assert await peek_next_number(db_session, store.id, NIKASI) == 1
        assert await issue_gate_pass_number(db_session, store.id, NIKASI) == 1
        assert await peek_next_number(db_session, store.id, NIKASI) == 2

    async def test_proposed_number(self, db_session, cold_storage):
        assert await issue_gate_pass_number(db_session, cold_storage.id, INCOMING, proposed=7) == 7
        with pytest.raises(GatePassNumberConflictError) as exc_info:
            await issue_gate_pass_number(db_session, cold_storage.id, INCOMING, proposed=7)
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["lastIssued"] == 7

    async def test_unknown_type(self, db_session, cold_storage):
        with pytest.raises(InvalidInputError):
            await issue_gate_pass_number(db_session, cold_storage.id, "dispatch-note")


@pytest.mark.api
@pytest.mark.asyncio
class TestVoucherNumber:

    async def test_preview_does_not_consume(self, ledger):
        first = await ledger.get("/api/voucher-number", type="incoming-gate-pass")
        again = await ledger.get("/api/voucher-number", type="incoming-gate-pass")
        assert first == {"type": "incoming-gate-pass", "nextVoucherNumber": 1}
        assert again == first

        lot = await ledger.create_lot()
        assert lot["gatePassNo"] == 1
        after = await ledger.get("/api/voucher-number", type="incoming-gate-pass")
        assert after["nextVoucherNumber"] == 2

    async def test_types_are_independent(self, ledger):
        lot = await ledger.create_lot()
        await ledger.create_grading(lot["_id"], {"Medium": 10})

        storage = await ledger.get("/api/voucher-number", type="storage-gate-pass")
        grading = await ledger.get("/api/voucher-number", type="grading-gate-pass")
        assert storage["nextVoucherNumber"] == 1
        assert grading["nextVoucherNumber"] == 2

    async def test_unknown_type_is_rejected(self, client, store_headers):
        response = await client.get(
            "/api/voucher-number", params={"type": "dispatch-note"}, headers=store_headers
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
