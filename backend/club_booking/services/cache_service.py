"""
Redis caching service for the day schedule.

CACHING STRATEGY
================

What we cache:
  - The member-independent part of a day schedule (the day's scheduled
    events with slot counts), JSON-serialized
  - Cache key pattern: "events:day:{YYYY-MM-DD}"

Why:
  - The day view is the most frequent read; every member opens it
  - Per-member fields (tiers, booked_by_me, can_book) are computed fresh
    on each request on top of the cached skeleton

Invalidation strategy:
  - On book/cancel/participant changes: delete the event's day key
  - On event creation/cancellation/restore: delete the event's day key
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What we never cache:
  - Anything the reservation manager reads. Slot counts shown from the
    cache are advisory; booking decisions always re-read the store inside
    the booking transaction.

Redis is optional: when disabled or unreachable every call degrades to a
cache miss / no-op ("fail open").
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from club_booking.core.config import get_settings
from club_booking.core.logging import get_logger
from club_booking.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

DAY_KEY_PREFIX = "events:day:"


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
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_day_key(day: date) -> str:
    return f"{DAY_KEY_PREFIX}{day.isoformat()}"


async def get_cached_day(day: date) -> Optional[list[dict]]:
    """Retrieve the cached event skeleton for a day."""
    client = await get_redis()
    if not client:
        return None

    key = _make_day_key(day)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_day(day: date, events: list[dict]) -> None:
    """Cache a day's event skeleton with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_day_key(day)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(events, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_day(day: date) -> None:
    """Drop the cached schedule of one day after any slot or status change."""
    client = await get_redis()
    if not client:
        return

    key = _make_day_key(day)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
            "hit_rate": (
                round(
                    info.get("keyspace_hits", 0)
                    / max(info.get("keyspace_hits", 0) + info.get("keyspace_misses", 0), 1)
                    * 100,
                    2,
                )
            ),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
