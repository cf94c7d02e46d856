"""
Redis cache for event list pages.

Only paginated listings are cached, keyed as
"events:list:page={page}&size={size}&upcoming={upcoming}". Single-event
reads and the booking path always go to the database, which holds the
authoritative seat counts.

Invalidation: any write that changes what a listing shows (event create,
update, delete; booking; cancellation) deletes every "events:list:*" key.
The TTL bounds staleness if an invalidation is lost.

Every Redis failure is logged and treated as a miss; the API keeps serving
from the database when Redis is down or disabled.
"""

import json
import time
from typing import Optional

import redis.asyncio as redis

from booking_api.core.config import get_settings
from booking_api.core.logging import get_logger
from booking_api.core.metrics import record_cache_operation

logger = get_logger(__name__)

EVENT_LIST_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None
# monotonic time before which no reconnect is attempted
_redis_retry_at: float = 0.0


async def get_redis() -> Optional[redis.Redis]:
    """
    Get or create the Redis connection. Returns None if Redis is disabled or
    unreachable. After a failed connect, further attempts are skipped for
    REDIS_RETRY_BACKOFF_SECONDS.
    """
    global _redis_client, _redis_retry_at
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        if time.monotonic() < _redis_retry_at:
            return None

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
            _redis_retry_at = time.monotonic() + settings.REDIS_RETRY_BACKOFF_SECONDS
            logger.error(
                "redis_connection_failed",
                error=str(e),
                retry_in_seconds=settings.REDIS_RETRY_BACKOFF_SECONDS,
            )
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def make_event_list_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{EVENT_LIST_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_events(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = make_event_list_key(page, page_size, upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        record_cache_operation("get", "error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data is None:
        record_cache_operation("get", "miss")
        return None

    record_cache_operation("get", "hit")
    return json.loads(data)


async def set_cached_events(page: int, page_size: int, upcoming_only: bool, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = make_event_list_key(page, page_size, upcoming_only)
    ttl = get_settings().REDIS_CACHE_TTL
    try:
        await client.setex(key, ttl, json.dumps(data, default=str))
        record_cache_operation("set", "ok")
    except redis.RedisError as e:
        record_cache_operation("set", "error")
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """Drop every cached event listing (SCAN over the key prefix)."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            deleted += await client.delete(key)
        record_cache_operation("invalidate", "ok")
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis keyspace statistics for the health endpoint."""
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
