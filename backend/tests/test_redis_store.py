"""
RedisStore tests

The store is driven through the FakeRedis client from conftest,
so no server is required.
"""

import json

import pytest

from cacheall.config import RedisConfig
from cacheall.errors import BackendIOError, ConfigurationError, SerializationError
from cacheall.stores import NEVER_EXPIRE, RedisStore
from conftest import as_mapping, keys_of


def make_store(fake_redis, clock, **options):
    return RedisStore(RedisConfig(client=fake_redis, **options), clock=clock)


@pytest.fixture
async def store(fake_redis, clock):
    store = make_store(fake_redis, clock)
    await store.init()
    return store


# ============================================
# 1. Connection
# ============================================

class TestConnection:
    """Handshake and client ownership"""

    @pytest.mark.asyncio
    async def test_init_pings(self, store, fake_redis):
        assert fake_redis.commands[0] == "PING"

    @pytest.mark.asyncio
    async def test_failed_handshake_is_configuration_error(self, fake_redis, clock):
        fake_redis.fail_ping = True
        store = make_store(fake_redis, clock)

        with pytest.raises(ConfigurationError):
            await store.init()

    @pytest.mark.asyncio
    async def test_borrowed_client_is_not_closed(self, store, fake_redis):
        await store.close()
        assert fake_redis.closed is False

    def test_default_prefix(self, fake_redis, clock):
        assert make_store(fake_redis, clock).prefix == "cacheall:"

    def test_builds_client_from_url(self, clock):
        store = RedisStore(RedisConfig(url="redis://localhost:6380/2"), clock=clock)
        kwargs = store.client.connection_pool.connection_kwargs
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2

    def test_builds_client_from_host(self, clock):
        store = RedisStore(RedisConfig(host="cache.local", port=6390, database=3), clock=clock)
        kwargs = store.client.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache.local"
        assert kwargs["port"] == 6390
        assert kwargs["db"] == 3


# ============================================
# 2. get / set / remove
# ============================================

class TestGetSet:
    """Single key commands"""

    @pytest.mark.asyncio
    async def test_roundtrip(self, store):
        await store.set("foo", {"bar": "baz"}, 10)
        assert await store.get("foo") == {"bar": "baz"}

    @pytest.mark.asyncio
    async def test_key_is_prefixed(self, store, fake_redis):
        await store.set("foo", "bar", NEVER_EXPIRE)
        assert json.loads(fake_redis.raw("cacheall:foo")) == "bar"
        assert fake_redis.raw("foo") is None

    @pytest.mark.asyncio
    async def test_custom_prefix(self, fake_redis, clock):
        store = make_store(fake_redis, clock, prefix="app:")
        await store.set("foo", 1, NEVER_EXPIRE)
        assert fake_redis.raw("app:foo") == b"1"

    @pytest.mark.asyncio
    async def test_empty_prefix_disables_namespacing(self, fake_redis, clock):
        store = make_store(fake_redis, clock, prefix="")
        await store.set("foo", 1, NEVER_EXPIRE)
        assert fake_redis.raw("foo") == b"1"

    @pytest.mark.asyncio
    async def test_missing_key(self, store):
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_never_expire_uses_plain_set(self, store, fake_redis):
        await store.set("k", "v", NEVER_EXPIRE)
        assert fake_redis.commands[-1] == "SET"
        assert fake_redis.ttl_of("cacheall:k") is None

    @pytest.mark.asyncio
    async def test_ttl_uses_setex(self, store, fake_redis, clock):
        await store.set("k", "v", 30)
        assert fake_redis.commands[-1] == "SETEX"
        assert fake_redis.ttl_of("cacheall:k") == 30

        clock.advance(30)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [None, 0])
    async def test_missing_ttl_defaults_to_sixty_seconds(self, store, fake_redis, ttl):
        await store.set("k", "v", ttl)
        assert fake_redis.ttl_of("cacheall:k") == 60

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl, expected", [(0.5, 1), (0.001, 1), (1.2, 2), (30, 30)])
    async def test_fractional_ttl_rounds_up(self, store, fake_redis, clock, ttl, expected):
        await store.set("k", "v", ttl)
        assert fake_redis.ttl_of("cacheall:k") == expected
        assert await store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_remove_deletes_key(self, store, fake_redis):
        await store.set("k", "v", 10)
        await store.remove("k")

        assert fake_redis.raw("cacheall:k") is None
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_unserializable_value(self, store):
        with pytest.raises(SerializationError):
            await store.set("k", {1, 2, 3}, 10)

    @pytest.mark.asyncio
    async def test_command_failure_is_backend_error(self, store, fake_redis):
        fake_redis.fail_keys.add("cacheall:k")

        with pytest.raises(BackendIOError) as exc_info:
            await store.set("k", "v", 10)
        assert exc_info.value.failed_keys == ["k"]


# ============================================
# 3. Bulk operations
# ============================================

class TestBulk:
    """Operations over every key under the prefix"""

    @pytest.mark.asyncio
    async def test_get_all_strips_prefix(self, store):
        await store.set("a", 1, 10)
        await store.set("b", [2], NEVER_EXPIRE)

        assert as_mapping(await store.get_all()) == {"a": 1, "b": [2]}

    @pytest.mark.asyncio
    async def test_get_all_ignores_foreign_keys(self, store, fake_redis):
        await fake_redis.set("other:x", "1")
        await store.set("a", 1, 10)

        assert keys_of(await store.get_all()) == ["a"]

    @pytest.mark.asyncio
    async def test_get_all_empty(self, store):
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_remove_by_pattern_matches_unprefixed_key(self, store, fake_redis):
        await store.set("user_1", "a", 10)
        await store.set("user_2", "b", 10)
        await store.set("post_1", "c", 10)

        await store.remove_by_pattern("^user_")

        assert keys_of(await store.get_all()) == ["post_1"]

    @pytest.mark.asyncio
    async def test_clear_only_touches_own_prefix(self, store, fake_redis):
        await fake_redis.set("other:x", "1")
        await store.set("a", 1, 10)
        await store.set("b", 2, 10)

        await store.clear()

        assert await store.get_all() == []
        assert fake_redis.raw("other:x") == b"1"

    @pytest.mark.asyncio
    async def test_partial_failure_names_failed_keys(self, store, fake_redis):
        for key in ("a", "b", "c"):
            await store.set(key, key, 10)
        fake_redis.fail_keys.add("cacheall:b")

        with pytest.raises(BackendIOError) as exc_info:
            await store.clear()

        assert exc_info.value.failed_keys == ["cacheall:b"]
        # Deletions that succeeded are not rolled back
        assert fake_redis.raw("cacheall:a") is None
        assert fake_redis.raw("cacheall:c") is None
