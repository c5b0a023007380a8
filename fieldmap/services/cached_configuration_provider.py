"""
📦 Cached Configuration Provider
Redis-backed decorator around a configuration provider.

The active-integration list is cached as JSON with a TTL. Cache failures
never fail a read: they are logged and the inner provider is used.
"""
import json
from typing import List, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from fieldmap.core.logging import LoggerMixin
from fieldmap.models import IntegrationMapping
from fieldmap.services.configuration_provider import IntegrationConfigurationProviderBase

CACHE_ERRORS = (RedisError, OSError)


class CachedConfigurationProvider(LoggerMixin, IntegrationConfigurationProviderBase):

    CACHE_KEY = "fieldmap:config:active_integrations"

    def __init__(self, inner: IntegrationConfigurationProviderBase, redis_client: redis.Redis,
                 ttl_seconds: int = 300, cache_key: Optional[str] = None):
        """
        Args:
            inner: provider that reads the stores
            redis_client: redis.asyncio client
            ttl_seconds: lifetime of a cached entry
            cache_key: override the Redis key (one per environment)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.inner = inner
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.cache_key = cache_key or self.CACHE_KEY

    async def _read_cache(self) -> Optional[List[IntegrationMapping]]:
        try:
            value = await self.redis.get(self.cache_key)
        except CACHE_ERRORS as e:
            self.logger.error(f"Cache get error for key {self.cache_key}: {e}")
            return None

        if not value:
            self.logger.debug(f"Cache MISS for key: {self.cache_key}")
            return None

        try:
            payload = json.loads(value)
            mappings = [IntegrationMapping.model_validate(item) for item in payload]
        except (ValueError, TypeError, ValidationError) as e:
            self.logger.warning(f"Discarding unreadable cache entry {self.cache_key}: {e}")
            return None

        self.logger.debug(f"Cache HIT for key: {self.cache_key}")
        return mappings

    async def _write_cache(self, mappings: List[IntegrationMapping]) -> bool:
        payload = json.dumps([m.model_dump(mode="json") for m in mappings])
        try:
            await self.redis.setex(self.cache_key, self.ttl_seconds, payload)
        except CACHE_ERRORS as e:
            self.logger.error(f"Cache set error for key {self.cache_key}: {e}")
            return False
        self.logger.debug(f"Cache SET for key: {self.cache_key}, TTL: {self.ttl_seconds}s")
        return True

    async def get_all_active_integrations(self) -> List[IntegrationMapping]:
        cached = await self._read_cache()
        if cached is not None:
            return cached

        mappings = await self.inner.get_all_active_integrations()
        await self._write_cache(mappings)
        return mappings

    async def get_active_integration(self, integration_key: str) -> IntegrationMapping:
        for mapping in await self.get_all_active_integrations():
            if mapping.integration_key == integration_key:
                return mapping
        # Not in the active set: let the inner provider raise the precise error
        return await self.inner.get_active_integration(integration_key)

    async def invalidate(self) -> None:
        try:
            await self.redis.delete(self.cache_key)
        except CACHE_ERRORS as e:
            self.logger.error(f"Cache delete error for key {self.cache_key}: {e}")
        else:
            self.logger.info(f"🧹 Configuration cache invalidated: {self.cache_key}")
        await self.inner.invalidate()
