"""Pytest configuration and fixtures for ledger tests.

Every test gets its own file-backed SQLite database (tables created from
the models), an httpx client bound to the app, and a seeded cold storage
with one farmer account.  Redis caching is disabled unless a test patches
in its own client.
"""

import json
from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import coldstore.models  # noqa: F401 register every table on Base.metadata
from coldstore.config import settings
from coldstore.database import Base, get_db, get_session_factory
from coldstore.main import app
from coldstore.models.cold_storage import ColdStorage
from coldstore.models.farmer import Farmer, FarmerStorageLink
from coldstore.store_context import clear_store_context
from coldstore.utils.numbering import ensure_counters


# ── Settings ─────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _ledger_settings(monkeypatch):
    """Disable Redis and keep conflict retries quick."""
    monkeypatch.setattr(settings, "cache_enabled", False)
    monkeypatch.setattr(settings, "nikasi_source", "any")
    monkeypatch.setattr(settings, "allocation_retry_backoff_ms", 10)
    monkeypatch.setattr(settings, "default_cold_storage_id", None)
    yield
    clear_store_context()


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database with every ledger table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct service tests; the test commits what it needs."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with the database dependencies pointed at SQLite."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def cold_storage(session_factory) -> ColdStorage:
    """Create an active cold storage with all four counters at 0."""
    async with session_factory() as session:
        store = ColdStorage(name="Test Cold Storage", address="Agra", is_active=True)
        session.add(store)
        await session.flush()
        await ensure_counters(session, store.id)
        await session.commit()
        return store


@pytest_asyncio.fixture
async def farmer_link(session_factory, cold_storage) -> FarmerStorageLink:
    """Create a farmer with account #1 at the test store."""
    async with session_factory() as session:
        farmer = Farmer(name="Ram Singh", address="Village Road", mobile_number="9876543210")
        link = FarmerStorageLink(
            farmer=farmer,
            cold_storage_id=cold_storage.id,
            account_number=1,
            is_active=True,
        )
        session.add(link)
        await session.commit()
        return link


@pytest.fixture
def store_headers(cold_storage) -> dict:
    return {"X-Cold-Storage-Id": cold_storage.id}


class Ledger:
    """Thin wrapper that walks a lot through the gate-pass API."""

    def __init__(self, client: AsyncClient, headers: dict, farmer_link_id: str):
        self.client = client
        self.headers = headers
        self.farmer_link_id = farmer_link_id

    async def post(self, path: str, payload: dict, expected: int = 201) -> dict:
        response = await self.client.post(path, json=payload, headers=self.headers)
        assert response.status_code == expected, response.text
        return response.json()

    async def post_text(self, path: str, payload: dict, expected: int) -> dict:
        """Post with stdlib json encoding, which writes NaN and Infinity literally."""
        response = await self.client.post(
            path,
            content=json.dumps(payload),
            headers={**self.headers, "Content-Type": "application/json"},
        )
        assert response.status_code == expected, response.text
        return response.json()

    async def get(self, path: str, **params) -> dict:
        response = await self.client.get(path, params=params, headers=self.headers)
        assert response.status_code == 200, response.text
        return response.json()

    async def create_lot(self, bags: float = 200, variety: str = "Pukhraj", **extra) -> dict:
        payload = {
            "farmerStorageLinkId": self.farmer_link_id,
            "date": date.today().isoformat(),
            "variety": variety,
            "truckNumber": "UP80 AB 1234",
            "bagsReceived": bags,
            **extra,
        }
        return (await self.post("/api/incoming-gate-pass", payload))["data"]

    async def create_grading(
        self, lot_id: str, sizes: dict[str, float], variety: str = "Pukhraj", **extra
    ) -> dict:
        payload = {
            "incomingGatePassId": lot_id,
            "gradedById": "grader-1",
            "date": date.today().isoformat(),
            "variety": variety,
            "orderDetails": [
                {"size": size, "bagType": "JUTE", "initialQuantity": quantity, "weightPerBagKg": 50}
                for size, quantity in sizes.items()
            ],
            **extra,
        }
        return (await self.post("/api/grading-gate-pass", payload))["data"]

    async def graded_bucket(self, grading_id: str, size: str = "Medium") -> tuple[float, float]:
        """(initialQuantity, currentQuantity) of a live grading bucket."""
        items = (await self.get("/api/grading-gate-pass"))["data"]
        grading = next(g for g in items if g["_id"] == grading_id)
        detail = next(d for d in grading["orderDetails"] if d["size"] == size)
        return detail["initialQuantity"], detail["currentQuantity"]

    def storage_payload(
        self, grading_id: str, quantity: float, size: str = "Medium",
        location: tuple[str, str, str] = ("A", "1", "3"), variety: str = "Pukhraj",
    ) -> dict:
        chamber, floor, row = location
        return {
            "date": date.today().isoformat(),
            "variety": variety,
            "gradingGatePasses": [{
                "gradingGatePassId": grading_id,
                "allocations": [{
                    "size": size, "quantityToAllocate": quantity,
                    "chamber": chamber, "floor": floor, "row": row,
                }],
            }],
        }

    async def create_storage(self, grading_id: str, quantity: float, size: str = "Medium", **kw) -> dict:
        payload = self.storage_payload(grading_id, quantity, size, **kw)
        return (await self.post("/api/storage-gate-pass", payload))["data"]

    async def create_nikasi(
        self,
        *,
        storage: list[tuple[str, str, float]] = (),
        grading: list[tuple[str, str, float]] = (),
        variety: str = "Pukhraj",
        expected: int = 201,
    ) -> dict:
        payload = {
            "date": date.today().isoformat(),
            "variety": variety,
            "from": "Cold Storage Gate",
            "toField": "Mandi",
            "storageGatePasses": [
                {"storageGatePassId": gid, "allocations": [{"size": size, "quantityToAllocate": q}]}
                for gid, size, q in storage
            ],
            "gradingGatePasses": [
                {"gradingGatePassId": gid, "allocations": [{"size": size, "quantityToAllocate": q}]}
                for gid, size, q in grading
            ],
        }
        return await self.post("/api/nikasi-gate-pass", payload, expected=expected)

    async def release(self, allocation_id: str, amount: float, expected: int = 200) -> dict:
        return await self.post(
            f"/api/allocations/{allocation_id}/release", {"amount": amount}, expected=expected
        )

    async def allocations(self, **filters) -> list[dict]:
        return (await self.get("/api/allocations", **filters))["data"]


@pytest.fixture
def ledger(client, store_headers, farmer_link) -> Ledger:
    return Ledger(client, store_headers, farmer_link.id)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "cache: Redis cache tests")
