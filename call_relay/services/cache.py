"""
Cache Store
Read-through tenant-scoped cache on Redis with TTL envelopes
"""

import json
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from call_relay.core.config import Settings
from call_relay.core.logging import get_logger

logger = get_logger(__name__)


class CacheNamespace:
    """Key namespaces; each tenant's keys live under `{namespace}:tenant:{id}:`"""
    RECORDINGS = "recordings"
    INTENT = "intent"
    ENHANCED = "enhanced"

    ALL = (RECORDINGS, INTENT, ENHANCED)


def create_redis_client(url: str) -> redis.Redis:
    """Create a pooled Redis client"""
    pool = redis.ConnectionPool.from_url(url, max_connections=100, decode_responses=True)
    return redis.Redis(connection_pool=pool)


class CacheStore:
    """
    Cache with JSON envelopes `{data, timestamp, ttl, tags}`.

    Entries also carry a Redis expiry, but `get` checks the envelope itself
    and deletes the key when `timestamp + ttl` has passed. Redis failures
    are logged and behave as a miss.
    """

    def __init__(self, client: redis.Redis, config: Settings):
        self.client = client
        self.ttl_recordings = config.cache_ttl_recordings
        self.ttl_call_details = config.cache_ttl_call_details
        self.ttl_intent_analysis = config.cache_ttl_intent_analysis
        self.ttl_intent_summary = config.cache_ttl_intent_summary
        self.ttl_enhanced_data = config.cache_ttl_enhanced_data

    # ==================== Keys ====================

    @staticmethod
    def recordings_key(tenant_id: str, page: int, limit: int) -> str:
        return f"{CacheNamespace.RECORDINGS}:tenant:{tenant_id}:page:{page}:limit:{limit}"

    @staticmethod
    def call_key(tenant_id: str, call_id: str) -> str:
        return f"{CacheNamespace.RECORDINGS}:tenant:{tenant_id}:call:{call_id}"

    @staticmethod
    def intent_analysis_key(tenant_id: str, call_id: str) -> str:
        return f"{CacheNamespace.INTENT}:tenant:{tenant_id}:analysis:{call_id}"

    @staticmethod
    def intent_summary_key(tenant_id: str) -> str:
        return f"{CacheNamespace.INTENT}:tenant:{tenant_id}:summary"

    @staticmethod
    def enhanced_key(tenant_id: str, call_id: str) -> str:
        return f"{CacheNamespace.ENHANCED}:tenant:{tenant_id}:call:{call_id}"

    @staticmethod
    def tenant_prefixes(tenant_id: str) -> List[str]:
        return [f"{namespace}:tenant:{tenant_id}:" for namespace in CacheNamespace.ALL]

    # ==================== Operations ====================

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached payload, or None on miss/expiry."""
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            entry = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            await self.delete(key)
            return None

        if entry["timestamp"] + entry["ttl"] < time.time():
            await self.delete(key)
            return None

        return entry["data"]

    async def set(self, key: str, data: Any, ttl: int, tags: Optional[List[str]] = None) -> None:
        entry = {
            "data": data,
            "timestamp": time.time(),
            "ttl": ttl,
            "tags": tags or [],
        }
        try:
            await self.client.set(key, json.dumps(entry, default=str), ex=ttl)
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    async def get_or_set(self, key: str, ttl: int, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Read-through helper: return the cached value or load, store and return it."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def _keys_with_prefix(self, prefix: str) -> List[str]:
        return [key async for key in self.client.scan_iter(match=f"{prefix}*")]

    async def invalidate_tenant(self, tenant_id: str) -> int:
        """Delete every key under the tenant's namespace prefixes."""
        deleted = 0
        try:
            for prefix in self.tenant_prefixes(tenant_id):
                keys = await self._keys_with_prefix(prefix)
                if keys:
                    deleted += await self.client.delete(*keys)
        except RedisError as e:
            logger.error(f"Cache invalidation failed for tenant {tenant_id}: {e}")
            return deleted

        logger.debug(f"Invalidated {deleted} cache keys for tenant {tenant_id}")
        return deleted

    async def invalidate_call(self, tenant_id: str, call_id: str) -> None:
        """Drop one call's detail, analysis and enhanced entries plus list pages."""
        keys = [
            self.call_key(tenant_id, call_id),
            self.intent_analysis_key(tenant_id, call_id),
            self.enhanced_key(tenant_id, call_id),
            self.intent_summary_key(tenant_id),
        ]
        try:
            keys += await self._keys_with_prefix(f"{CacheNamespace.RECORDINGS}:tenant:{tenant_id}:page:")
            await self.client.delete(*keys)
        except RedisError as e:
            logger.error(f"Cache invalidation failed for call {call_id}: {e}")

    async def stats(self, tenant_id: str) -> Dict[str, int]:
        counts = {}
        for namespace, prefix in zip(CacheNamespace.ALL, self.tenant_prefixes(tenant_id)):
            try:
                counts[namespace] = len(await self._keys_with_prefix(prefix))
            except RedisError as e:
                logger.warning(f"Cache stats failed for {prefix}: {e}")
                counts[namespace] = 0
        counts["total"] = sum(counts.values())
        return counts
