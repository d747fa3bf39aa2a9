"""
Redis caching for ride listings.

What we cache:
  - Paginated ride listing responses, JSON-serialized
  - Key pattern: "rides:list:page={page}&size={size}&status=...&driver=...&date=..."

Invalidation:
  - Any booking create/cancel/delete changes some ride's available_seats,
    so every listing key is dropped (prefix SCAN + DELETE)
  - Ride creation and ride updates do the same
  - TTL expiry as a backstop

Single rides are never cached: the booking path reads seat counts straight
from the database under a row lock.
"""

import json
from typing import Optional

import redis.asyncio as redis
from hushryd.core.config import get_settings
from hushryd.core.logging import get_logger
from hushryd.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

RIDE_LIST_PREFIX = "rides:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_ride_list_key(
    page: int,
    page_size: int,
    status: Optional[str] = None,
    driver_id: Optional[str] = None,
    pickup_date: Optional[str] = None,
) -> str:
    return (
        f"{RIDE_LIST_PREFIX}page={page}&size={page_size}"
        f"&status={status or ''}&driver={driver_id or ''}&date={pickup_date or ''}"
    )


async def get_cached_rides(key: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_rides(key: str, data: dict) -> None:
    """Cache ride list response with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_ride_cache() -> None:
    """Drop every cached ride listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{RIDE_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
