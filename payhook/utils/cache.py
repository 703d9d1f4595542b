"""
Optional Redis side-channel.

Redis is never on the critical path: the server and the worker pool run fine
without it. The client is built once at startup and passed in explicitly.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "payhook"
HEARTBEAT_TTL_SECONDS = 120


async def connect_redis(url: str):
    """
    Connect to Redis and verify the connection with PING.
    Returns the client, or None if Redis is disabled or unreachable.
    """
    if not url:
        logger.info("Redis disabled (no REDIS_URL)")
        return None

    import redis.asyncio as aioredis

    client = aioredis.from_url(url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning("Failed to connect to Redis, continuing without Redis support: %s", str(e))
        await client.aclose()
        return None

    logger.info("Redis connected successfully")
    return client


def heartbeat_key(name: str) -> str:
    return f"{KEY_PREFIX}:worker_health:{name}"


async def write_heartbeat(cache, name: str, ttl: int = HEARTBEAT_TTL_SECONDS) -> None:
    """Store a heartbeat timestamp. Failures are logged and ignored."""
    if cache is None:
        return
    try:
        await cache.set(heartbeat_key(name), datetime.now(timezone.utc).isoformat(), ex=ttl)
    except (RedisError, OSError) as e:
        logger.debug("Heartbeat write failed: %s", str(e))
