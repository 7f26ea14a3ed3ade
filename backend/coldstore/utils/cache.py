"""Redis caching utilities for the ledger read side.

List endpoints are informational, so they may be served from Redis with
eventual consistency; every ledger write invalidates the store's keys.
Allocation validation never reads from the cache.
"""

import functools
import hashlib
import json
import logging
from datetime import date, datetime
from typing import Callable, Optional

import redis.asyncio as redis

from coldstore.config import settings
from coldstore.store_context import get_current_store

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(*args, **kwargs) -> str:
    """Generate a deterministic hash from arguments."""
    if not args and not kwargs:
        return "default"

    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True)
    return hashlib.md5(key_data.encode()).hexdigest()


def _scoped(key: str) -> str:
    store = get_current_store()
    return f"s:{store}:{key}" if store else key


def _serialize(result):
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json", by_alias=True)
    if isinstance(result, list) and result and hasattr(result[0], "model_dump"):
        return [item.model_dump(mode="json", by_alias=True) for item in result]
    return result


def cached(
    ttl: int | None = None,
    prefix: str = "cache",
    key_builder: Optional[Callable] = None,
):
    """Decorator to cache an endpoint's result in Redis.

    Args:
        ttl: Time-to-live in seconds (default: CACHE_TTL_SECONDS)
        prefix: Cache key prefix for namespacing
        key_builder: Custom function to build cache key from args/kwargs

    Example:
        @cached(prefix="storage-gate-pass")
        async def list_storage_gate_passes(db: AsyncSession = Depends(get_db)):
            ...

    Cache keys: s:{store}:{prefix}:{function_name}:{kwargs_hash}
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.cache_enabled:
                return await func(*args, **kwargs)

            if key_builder:
                key = _scoped(key_builder(*args, **kwargs))
            else:
                # Only simple kwargs; injected sessions and the like are skipped
                cache_kwargs = {}
                for k, v in kwargs.items():
                    if k.startswith("_"):
                        continue
                    if isinstance(v, (int, str, bool, float, type(None))):
                        cache_kwargs[k] = v
                    elif isinstance(v, (date, datetime)):
                        cache_kwargs[k] = v.isoformat()
                    elif isinstance(v, (list, tuple)) and all(
                        isinstance(item, (int, str, bool, float)) for item in v
                    ):
                        cache_kwargs[k] = list(v)
                key = _scoped(f"{prefix}:{func.__name__}:{cache_key(**cache_kwargs)}")

            try:
                redis_client = await get_redis()
                cached_value = await redis_client.get(key)
                if cached_value:
                    logger.debug(f"Cache HIT: {key}")
                    return json.loads(cached_value)
                logger.debug(f"Cache MISS: {key}")
            except redis.RedisError as e:
                logger.warning(f"Redis error (falling back to uncached): {e}")
                return await func(*args, **kwargs)

            result = await func(*args, **kwargs)

            try:
                await redis_client.setex(
                    key,
                    ttl or settings.cache_ttl_seconds,
                    json.dumps(_serialize(result)),
                )
            except redis.RedisError as e:
                logger.warning(f"Redis error (result not cached): {e}")
            return result

        return wrapper

    return decorator


async def invalidate_cache(*patterns: str):
    """Invalidate cache keys matching patterns, scoped to the current store.

    Example:
        await invalidate_cache("grading-gate-pass:*", "storage-gate-pass:*")
    """
    if not settings.cache_enabled:
        return
    try:
        redis_client = await get_redis()
        keys = []
        for pattern in patterns:
            async for key in redis_client.scan_iter(match=_scoped(pattern)):
                keys.append(key)

        if keys:
            await redis_client.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching {', '.join(patterns)}")
    except redis.RedisError as e:
        logger.warning(f"Failed to invalidate cache: {e}")


# Every list a ledger write can change
LEDGER_PATTERNS = (
    "incoming-gate-pass:*",
    "grading-gate-pass:*",
    "storage-gate-pass:*",
    "nikasi-gate-pass:*",
    "allocations:*",
    "daybook:*",
)


async def invalidate_ledger_cache():
    """Drop all ledger list caches for the current store."""
    await invalidate_cache(*LEDGER_PATTERNS)
