"""Farmer account endpoint tests."""

import pytest


@pytest.mark.api
@pytest.mark.asyncio
class TestFarmers:

    async def test_create_assigns_next_account(self, client, store_headers, farmer_link):
        response = await client.post(
            "/api/farmers",
            json={"name": "Shyam Lal", "mobileNumber": "9000000001", "address": "Firozabad"},
            headers=store_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["accountNumber"] == 2
        assert data["farmerId"]["name"] == "Shyam Lal"
        assert data["isActive"] is True

    async def test_existing_mobile_reuses_farmer(self, client, store_headers, farmer_link):
        """The seeded farmer already has an account here, so a second link is refused."""
        response = await client.post(
            "/api/farmers",
            json={"name": "Ram Singh", "mobileNumber": "9876543210"},
            headers=store_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "DUPLICATE_FARMER_ACCOUNT"

    async def test_explicit_account_number(self, client, store_headers, cold_storage):
        response = await client.post(
            "/api/farmers",
            json={"name": "Geeta Devi", "mobileNumber": "9000000002", "accountNumber": 41},
            headers=store_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["accountNumber"] == 41

    async def test_list(self, client, store_headers, farmer_link):
        response = await client.get("/api/farmers", headers=store_headers)
        assert response.status_code == 200
        items = response.json()["data"]
        assert [i["accountNumber"] for i in items] == [1]
        assert items[0]["farmerId"]["mobileNumber"] == "9876543210"
