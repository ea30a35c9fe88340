"""
Settings service for runtime configuration with database overrides.

Lookup order: the Redis cache, then the settings table, then an environment
variable, then the caller's default.
"""

import os
import logging
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.services import data_service, redis_service

load_dotenv()

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 60
REDIS_KEY_PREFIX = "settings:"


def get_bool_env(key: str, default: bool = True) -> bool:
    """Parse a boolean environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
    use_cache: bool = True,
) -> Optional[str]:
    """
    Get a setting value from the Redis cache first, then database, env var, default.

    A value read from the database is written back to the cache, so later
    lookups skip the database until the entry expires or is invalidated.

    Args:
        session: Database session (optional)
        key: Setting key in database
        env_var: Environment variable name to fall back to
        default: Default value if nothing else is set
        use_cache: If False, skip the Redis cache entirely

    Returns:
        Setting value as string, or None
    """
    redis_key = f"{REDIS_KEY_PREFIX}{key}"
    if use_cache:
        cached = await redis_service.redis_get(redis_key)
        if cached is not None:
            return cached

    if session is not None:
        try:
            value = await data_service.get_setting(session, key)
            if value is not None:
                if use_cache:
                    await redis_service.redis_set(redis_key, value, CACHE_TTL_SECONDS)
                return value
        except Exception as e:
            logger.warning(f"Error reading setting {key} from database: {e}")

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_int_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[int] = None,
) -> Optional[int]:
    """Integer variant of get_setting_with_fallback."""
    value = await get_setting_with_fallback(session, key, env_var)
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid integer value for setting {key}: {value}")
        return default


async def invalidate_settings_cache() -> None:
    """Drop cached settings (call after updating settings)."""
    removed = await redis_service.redis_delete_pattern(f"{REDIS_KEY_PREFIX}*")
    if removed:
        logger.info(f"Cleared {removed} cached settings from Redis")
