"""
Tests for the tenant-scoped cache store
"""

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from unittest.mock import AsyncMock

from call_relay.services.cache import CacheStore


class TestCacheKeys:

    def test_keys_are_tenant_scoped(self):
        assert CacheStore.recordings_key("t1", 2, 20) == "recordings:tenant:t1:page:2:limit:20"
        assert CacheStore.call_key("t1", "call_9") == "recordings:tenant:t1:call:call_9"
        assert CacheStore.intent_summary_key("t1") == "intent:tenant:t1:summary"
        assert CacheStore.enhanced_key("t1", "call_9") == "enhanced:tenant:t1:call:call_9"

    def test_tenant_prefixes_cover_every_namespace(self):
        prefixes = CacheStore.tenant_prefixes("t1")
        assert prefixes == ["recordings:tenant:t1:", "intent:tenant:t1:", "enhanced:tenant:t1:"]


class TestCacheOperations:

    @pytest.mark.asyncio
    async def test_set_then_get_returns_data(self, cache, fake_redis):
        await cache.set("recordings:tenant:t1:call:c1", {"id": "c1"}, ttl=60)

        assert await cache.get("recordings:tenant:t1:call:c1") == {"id": "c1"}
        assert fake_redis.expiry["recordings:tenant:t1:call:c1"] == 60

    @pytest.mark.asyncio
    async def test_expired_envelope_is_deleted_on_read(self, cache, fake_redis):
        key = "recordings:tenant:t1:call:c1"
        fake_redis.store[key] = json.dumps({"data": {"id": "c1"}, "timestamp": 0, "ttl": 10, "tags": []})

        assert await cache.get(key) is None
        assert key not in fake_redis.store

    @pytest.mark.asyncio
    async def test_get_or_set_loads_once(self, cache):
        loader = AsyncMock(return_value={"calls": []})

        first = await cache.get_or_set("recordings:tenant:t1:page:1:limit:20", 300, loader)
        second = await cache.get_or_set("recordings:tenant:t1:page:1:limit:20", 300, loader)

        assert first == second == {"calls": []}
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate_tenant_leaves_other_tenants(self, cache, fake_redis):
        await cache.set(cache.call_key("t1", "c1"), {"id": "c1"}, 60)
        await cache.set(cache.intent_summary_key("t1"), {}, 60)
        await cache.set(cache.enhanced_key("t1", "c1"), {}, 60)
        await cache.set(cache.call_key("t2", "c2"), {"id": "c2"}, 60)

        deleted = await cache.invalidate_tenant("t1")

        assert deleted == 3
        assert list(fake_redis.store) == [cache.call_key("t2", "c2")]

    @pytest.mark.asyncio
    async def test_invalidate_call_clears_pages_and_summary(self, cache, fake_redis):
        await cache.set(cache.call_key("t1", "c1"), {}, 60)
        await cache.set(cache.call_key("t1", "c2"), {}, 60)
        await cache.set(cache.recordings_key("t1", 1, 20), {}, 60)
        await cache.set(cache.intent_summary_key("t1"), {}, 60)

        await cache.invalidate_call("t1", "c1")

        assert list(fake_redis.store) == [cache.call_key("t1", "c2")]

    @pytest.mark.asyncio
    async def test_stats_counts_per_namespace(self, cache):
        await cache.set(cache.call_key("t1", "c1"), {}, 60)
        await cache.set(cache.recordings_key("t1", 1, 20), {}, 60)
        await cache.set(cache.intent_analysis_key("t1", "c1"), {}, 60)

        stats = await cache.stats("t1")

        assert stats == {"recordings": 2, "intent": 1, "enhanced": 0, "total": 3}

    @pytest.mark.asyncio
    async def test_redis_errors_behave_as_miss(self, cache, fake_redis):
        fake_redis.get = AsyncMock(side_effect=RedisConnectionError("down"))

        assert await cache.get("recordings:tenant:t1:call:c1") is None
