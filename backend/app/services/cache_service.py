"""
Redis caching for the event listing.

CACHING STRATEGY
================

What we cache:
  - The ordered event listing, JSON-serialized
  - Cache key pattern: "events:list:upcoming={upcoming_only}"

Why:
  - Listing is the most frequent read and only changes when an event is
    created. Event rows carry no registration counts, so registering or
    cancelling never makes a cached listing stale.

Invalidation strategy:
  - On event creation: delete all "events:list:*" keys (SCAN + DELETE)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What is NOT cached:
  - Single events and stats. Stats must reflect the live registration count,
    and the registration engine never reads through the cache.

Redis is advisory: every Redis error is logged and treated as a miss, so an
outage degrades to direct database reads.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

EVENT_LIST_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis connection. Returns None if Redis is disabled or down."""
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


def _make_event_list_key(upcoming_only: bool) -> str:
    return f"{EVENT_LIST_PREFIX}upcoming={upcoming_only}"


async def get_cached_events(upcoming_only: bool) -> Optional[list]:
    """Retrieve a cached event listing, or None on miss."""
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        record_cache_operation("get", "error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data is None:
        record_cache_operation("get", "miss")
        logger.debug("cache_miss", key=key)
        return None

    record_cache_operation("get", "hit")
    logger.debug("cache_hit", key=key)
    return json.loads(data)


async def set_cached_events(upcoming_only: bool, data: list) -> None:
    """Cache an event listing with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_event_list_key(upcoming_only)
    try:
        await client.set(key, json.dumps(data, default=str), ex=settings.REDIS_CACHE_TTL)
        record_cache_operation("set", "ok")
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        record_cache_operation("set", "error")
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """Delete every cached event listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        record_cache_operation("invalidate", "ok")
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis keyspace hit/miss counters for the health endpoint."""
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
