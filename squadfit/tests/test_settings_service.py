"""
Tests for runtime settings lookup: Redis cache, settings table, env var, default.
"""
import fnmatch

import pytest
from squadfit.services import data_service, redis_service, settings_service


class FakeRedis:
    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, expiry_seconds=None):
        self.values[key] = value
        self.ttls[key] = expiry_seconds
        return True

    async def delete_pattern(self, pattern):
        keys = [k for k in self.values if fnmatch.fnmatch(k, pattern)]
        for key in keys:
            del self.values[key]
        return len(keys)


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_service, "redis_get", fake.get)
    monkeypatch.setattr(redis_service, "redis_set", fake.set)
    monkeypatch.setattr(redis_service, "redis_delete_pattern", fake.delete_pattern)
    return fake


@pytest.mark.asyncio
async def test_cached_value_served_before_database(seeded_session, fake_redis, monkeypatch):
    fake_redis.values["settings:log_level"] = "DEBUG"

    async def unexpected_read(session, key):
        raise AssertionError("settings table should not be read on a cache hit")

    monkeypatch.setattr(data_service, "get_setting", unexpected_read)

    value = await settings_service.get_setting_with_fallback(seeded_session, "log_level", "LOG_LEVEL", "INFO")
    assert value == "DEBUG"


@pytest.mark.asyncio
async def test_database_value_written_to_cache(seeded_session, fake_redis):
    await data_service.set_setting(seeded_session, "log_level", "WARNING")

    value = await settings_service.get_setting_with_fallback(seeded_session, "log_level", "LOG_LEVEL", "INFO")

    assert value == "WARNING"
    assert fake_redis.values["settings:log_level"] == "WARNING"
    assert fake_redis.ttls["settings:log_level"] == settings_service.CACHE_TTL_SECONDS


@pytest.mark.asyncio
async def test_env_var_then_default(seeded_session, fake_redis, monkeypatch):
    monkeypatch.setenv("SQUADFIT_TEST_SETTING", "from-env")
    value = await settings_service.get_setting_with_fallback(
        seeded_session, "missing_key", "SQUADFIT_TEST_SETTING", "fallback"
    )
    assert value == "from-env"

    monkeypatch.delenv("SQUADFIT_TEST_SETTING")
    value = await settings_service.get_setting_with_fallback(
        seeded_session, "missing_key", "SQUADFIT_TEST_SETTING", "fallback"
    )
    assert value == "fallback"
    assert "settings:missing_key" not in fake_redis.values


@pytest.mark.asyncio
async def test_use_cache_false_skips_redis(seeded_session, fake_redis):
    fake_redis.values["settings:log_level"] = "DEBUG"
    await data_service.set_setting(seeded_session, "log_level", "ERROR")

    value = await settings_service.get_setting_with_fallback(seeded_session, "log_level", use_cache=False)

    assert value == "ERROR"
    assert fake_redis.values["settings:log_level"] == "DEBUG"


@pytest.mark.asyncio
async def test_invalidate_then_read_sees_new_value(seeded_session, fake_redis):
    await data_service.set_setting(seeded_session, "leaderboard_cache_ttl_seconds", "45")
    assert await settings_service.get_int_setting(seeded_session, "leaderboard_cache_ttl_seconds") == 45

    await data_service.set_setting(seeded_session, "leaderboard_cache_ttl_seconds", "90")
    # Stale until the cache is dropped
    assert await settings_service.get_int_setting(seeded_session, "leaderboard_cache_ttl_seconds") == 45

    await settings_service.invalidate_settings_cache()
    assert await settings_service.get_int_setting(seeded_session, "leaderboard_cache_ttl_seconds") == 90


@pytest.mark.asyncio
async def test_invalid_integer_setting_uses_default(seeded_session, fake_redis):
    await data_service.set_setting(seeded_session, "leaderboard_cache_ttl_seconds", "soon")
    value = await settings_service.get_int_setting(
        seeded_session, "leaderboard_cache_ttl_seconds", default=30
    )
    assert value == 30
