"""
Redis service providing a centralized Redis client singleton.

Redis backs two best-effort caches: ranked leaderboard lists and settings
values. The database stays the source of truth, so every helper here logs
and degrades to a cache miss when Redis is unreachable.

Usage:
    from squadfit.services.redis_service import redis_get_json

    cached = await redis_get_json("leaderboard:season:1")
"""

import json
import logging
import os
from typing import Any, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Redis configuration from environment
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_ENABLED = os.getenv("REDIS_ENABLED", "true").lower() in ("true", "1", "yes")

# Connection settings
SOCKET_CONNECT_TIMEOUT = 2
SOCKET_TIMEOUT = 5

# Global Redis client (singleton)
_redis_client: Optional[Redis] = None


async def get_redis_client() -> Optional[Redis]:
    """
    Get or create the Redis client singleton.

    Returns:
        Redis client, or None if Redis is disabled or unreachable
    """
    global _redis_client

    if not REDIS_ENABLED:
        return None

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            return _redis_client
        except Exception as e:
            logger.warning(f"Redis connection lost, recreating client: {e}")
            await close_redis_connection()

    try:
        client = Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            password=REDIS_PASSWORD or None,
            decode_responses=True,
            socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
            socket_timeout=SOCKET_TIMEOUT,
            retry_on_timeout=True,
        )
        await client.ping()
        _redis_client = client
        logger.info(f"Connected to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}: {e}")
        _redis_client = None
        return None


async def close_redis_connection() -> None:
    """Close the Redis connection (call on application shutdown)."""
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("Closed Redis connection")
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            _redis_client = None


async def is_redis_available() -> bool:
    """True if Redis is configured and answering pings."""
    return await get_redis_client() is not None


# ============================================================================
# Convenience functions for common operations
# ============================================================================

async def redis_get(key: str) -> Optional[str]:
    """Get a value, or None if missing or Redis is unavailable."""
    try:
        client = await get_redis_client()
        if client:
            return await client.get(key)
    except Exception as e:
        logger.warning(f"Redis GET error for key {key}: {e}")
    return None


async def redis_set(key: str, value: str, expiry_seconds: Optional[int] = None) -> bool:
    """Set a value with optional TTL. Returns True if stored."""
    try:
        client = await get_redis_client()
        if client:
            if expiry_seconds:
                await client.setex(key, expiry_seconds, value)
            else:
                await client.set(key, value)
            return True
    except Exception as e:
        logger.warning(f"Redis SET error for key {key}: {e}")
    return False


async def redis_delete(*keys: str) -> bool:
    """Delete one or more keys. Returns True if the command ran."""
    if not keys:
        return True
    try:
        client = await get_redis_client()
        if client:
            await client.delete(*keys)
            return True
    except Exception as e:
        logger.warning(f"Redis DELETE error for keys {keys}: {e}")
    return False


async def redis_delete_pattern(pattern: str) -> int:
    """Delete every key matching a glob pattern. Returns the number deleted."""
    try:
        client = await get_redis_client()
        if client is None:
            return 0
        keys = [key async for key in client.scan_iter(match=pattern)]
        if keys:
            await client.delete(*keys)
        return len(keys)
    except Exception as e:
        logger.warning(f"Redis pattern delete error for {pattern}: {e}")
        return 0


async def redis_get_json(key: str) -> Optional[Any]:
    raw = await redis_get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(f"Discarding undecodable cache entry {key}")
        await redis_delete(key)
        return None


async def redis_set_json(key: str, value: Any, expiry_seconds: Optional[int] = None) -> bool:
    return await redis_set(key, json.dumps(value), expiry_seconds)
