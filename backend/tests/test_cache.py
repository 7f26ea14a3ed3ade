"""Tests for caching functionality.

Redis itself is replaced by a small in-memory stand-in so the decorator
and invalidation paths run without a server.
"""

import fnmatch

import pytest

from coldstore.config import settings
from coldstore.schemas.common import ApiResponse
from coldstore.store_context import clear_store_context, set_current_store
from coldstore.utils import cache
from coldstore.utils.cache import cache_key, cached, invalidate_cache, invalidate_ledger_cache


class InMemoryRedis:
    """The subset of redis.asyncio.Redis the cache layer calls."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def set(self, key, value):
        self.store[key] = value

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    async def aclose(self):
        pass


@pytest.fixture
def fake_redis(monkeypatch):
    client = InMemoryRedis()
    monkeypatch.setattr(settings, "cache_enabled", True)
    monkeypatch.setattr(cache, "_redis_client", client)
    set_current_store("store-1")
    yield client
    clear_store_context()


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheUtility:
    """Test cache utility functions."""

    async def test_cache_key_generation(self):
        """Test cache key generation."""
        key1 = cache_key(limit=50, offset=0)
        key2 = cache_key(limit=50, offset=0)
        key3 = cache_key(limit=100, offset=0)

        # Same args = same key
        assert key1 == key2

        # Different args = different key
        assert key1 != key3
        assert cache_key() == "default"

    async def test_disabled_cache_always_calls_through(self):
        call_count = 0

        @cached(prefix="test")
        async def expensive_function(limit: int = 10):
            nonlocal call_count
            call_count += 1
            return {"limit": limit}

        await expensive_function(limit=5)
        await expensive_function(limit=5)
        assert call_count == 2

    async def test_cached_decorator(self, fake_redis):
        """Second call with the same kwargs is served from Redis."""
        call_count = 0

        @cached(ttl=10, prefix="grading-gate-pass")
        async def list_things(variety: str = "Pukhraj"):
            nonlocal call_count
            call_count += 1
            return ApiResponse(data=[{"variety": variety}])

        first = await list_things(variety="Pukhraj")
        assert call_count == 1
        assert isinstance(first, ApiResponse)

        second = await list_things(variety="Pukhraj")
        assert call_count == 1
        assert second == {"success": True, "data": [{"variety": "Pukhraj"}], "message": None}

        await list_things(variety="Kufri")
        assert call_count == 2

        # Keys are scoped to the current store
        assert all(key.startswith("s:store-1:grading-gate-pass:list_things:") for key in fake_redis.store)

    async def test_list_arguments_are_part_of_the_key(self, fake_redis):
        calls = []

        @cached(prefix="daybook")
        async def page_of(gate_pass_type: list[str] | None = None):
            calls.append(gate_pass_type)
            return {"types": gate_pass_type}

        await page_of(gate_pass_type=["storage"])
        await page_of(gate_pass_type=["nikasi"])
        await page_of(gate_pass_type=["storage"])
        assert calls == [["storage"], ["nikasi"]]

    async def test_cache_invalidation(self, fake_redis):
        """Only the current store's matching keys are dropped."""
        await fake_redis.set("s:store-1:storage-gate-pass:list:abc", "1")
        await fake_redis.set("s:store-1:farmers:list:abc", "2")
        await fake_redis.set("s:store-2:storage-gate-pass:list:abc", "3")

        await invalidate_cache("storage-gate-pass:*")

        assert set(fake_redis.store) == {
            "s:store-1:farmers:list:abc",
            "s:store-2:storage-gate-pass:list:abc",
        }

    async def test_ledger_invalidation_covers_every_list(self, fake_redis):
        for prefix in ("incoming-gate-pass", "grading-gate-pass", "storage-gate-pass",
                       "nikasi-gate-pass", "allocations", "daybook", "farmers"):
            await fake_redis.set(f"s:store-1:{prefix}:list:x", "1")

        await invalidate_ledger_cache()

        assert set(fake_redis.store) == {"s:store-1:farmers:list:x"}


@pytest.mark.cache
@pytest.mark.asyncio
class TestCachedEndpoints:

    async def test_write_invalidates_list(self, ledger, fake_redis, cold_storage):
        set_current_store(cold_storage.id)
        await ledger.create_lot()
        first = (await ledger.get("/api/incoming-gate-pass"))["data"]
        assert len(first) == 1
        assert any(":incoming-gate-pass:" in key for key in fake_redis.store)

        await ledger.create_lot()
        second = (await ledger.get("/api/incoming-gate-pass"))["data"]
        assert len(second) == 2
