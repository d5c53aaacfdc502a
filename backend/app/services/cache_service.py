"""
Redis caching and change feed for mixings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized)
  - Cache key pattern: "events:list:page={page}&size={size}&status={status}"

What we never cache:
  - Availability and booking lists. The ledger's derived counts must be
    recomputed from the bookings table after every write.

Invalidation strategy:
  - On event creation or status change: delete all event list keys
  - TTL-based expiry as safety net (5 minutes)

CHANGE FEED
===========

After a ledger write commits, a small JSON message is published on
"mixing:{event_id}:bookings". Clients showing a mixing subscribe (through
whatever realtime gateway fronts Redis) and re-read the ledger when a
message arrives. Messages carry ids and statuses only, never counts.

Redis is optional. Every failure here is logged and swallowed: the database
is authoritative and the cache/feed are advisory.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.metrics import redis_connection_errors
from app.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            redis_connection_errors.inc()
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_event_list_key(page: int, page_size: int, status: Optional[str]) -> str:
    return f"events:list:page={page}&size={page_size}&status={status or 'all'}"


def change_feed_channel(event_id: int) -> str:
    return f"mixing:{event_id}:bookings"


async def get_cached_events(page: int, page_size: int, status: Optional[str]) -> Optional[dict]:
    """Retrieve cached event list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(page, page_size, status)
    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_events(page: int, page_size: int, status: Optional[str], data: dict) -> None:
    """Cache event list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_event_list_key(page, page_size, status)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached event listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match="events:list:*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def publish_booking_change(
    event_id: int,
    booking_id: int,
    status: str,
    promoted: Optional[list[int]] = None,
) -> None:
    """Announce a committed ledger write on the mixing's change feed."""
    if not settings.CHANGE_FEED_ENABLED:
        return

    client = await get_redis()
    if not client:
        return

    message = {
        "event_id": event_id,
        "booking_id": booking_id,
        "status": status,
        "promoted": promoted or [],
    }
    try:
        await client.publish(change_feed_channel(event_id), json.dumps(message))
    except Exception as e:
        logger.error("change_feed_publish_error", event_id=event_id, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
