"""
Cache backends for place records.

Two interchangeable implementations share the ``CacheBackend`` interface:
an in-process TTL cache and Redis. Each adapter accepts and returns
``PlaceRecord`` instances; Redis serializes to JSON internally so callers
never see the storage format.
"""

import asyncio
import json
from copy import deepcopy
from typing import Any, Dict, Optional

import redis.asyncio as redis
from cachetools import TTLCache
from pydantic import ValidationError as PydanticValidationError

from shared.config import ProxyConfig
from shared.errors import CacheFailure
from shared.logging import get_logger
from ..domain.records import PlaceRecord


class CacheBackend:
    """Uniform async key-value interface over place records."""

    name = "abstract"

    async def get(self, key: str) -> Optional[PlaceRecord]:  # pragma: no cover - interface
        raise NotImplementedError

    async def set(self, key: str, record: PlaceRecord) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    async def delete(self, key: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryCacheBackend(CacheBackend):
    """In-process cache backed by cachetools' TTLCache."""

    name = "memory"

    def __init__(self, ttl_seconds: int, max_entries: int = 100000):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.logger = get_logger("places.cache.memory")
        self._cache: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds)

    async def get(self, key: str) -> Optional[PlaceRecord]:
        data = self._cache.get(key)
        if data is None:
            return None
        return PlaceRecord.from_cache_dict(deepcopy(data))

    async def set(self, key: str, record: PlaceRecord) -> bool:
        self._cache[key] = deepcopy(record.to_cache_dict())
        self.logger.debug("Cached record", key=key, ttl=self.ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._cache)


class RedisCacheBackend(CacheBackend):
    """Redis cache storing records as JSON text."""

    name = "redis"

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.redis = client
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("places.cache.redis")

    async def get(self, key: str) -> Optional[PlaceRecord]:
        try:
            cached = await self.redis.get(key)
        except Exception as exc:
            raise CacheFailure("get", str(exc), {"key": key}) from exc

        if cached is None:
            return None

        if isinstance(cached, bytes):
            cached = cached.decode("utf-8")

        try:
            data = json.loads(cached)
        except (TypeError, json.JSONDecodeError) as exc:
            raise CacheFailure("get", "Stored value is not valid JSON", {"key": key}) from exc

        if not isinstance(data, dict):
            raise CacheFailure("get", "Stored value is not an object", {"key": key})

        try:
            return PlaceRecord.from_cache_dict(data)
        except PydanticValidationError as exc:
            raise CacheFailure("get", "Stored value does not match the record shape", {"key": key}) from exc

    async def set(self, key: str, record: PlaceRecord) -> bool:
        payload = json.dumps(record.to_cache_dict())
        try:
            await self.redis.set(key, payload, ex=self.ttl_seconds)
        except Exception as exc:
            raise CacheFailure("set", str(exc), {"key": key}) from exc

        self.logger.debug("Cached record", key=key, ttl=self.ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(key))
        except Exception as exc:
            raise CacheFailure("delete", str(exc), {"key": key}) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception:
            return False

    async def close(self) -> None:
        await self.redis.aclose()
        self.logger.info("Redis client disconnected")


def create_memory_backend(config: ProxyConfig) -> MemoryCacheBackend:
    return MemoryCacheBackend(
        ttl_seconds=config.memory_cache_ttl_seconds,
        max_entries=config.memory_cache_max_entries,
    )


async def select_cache_backend(config: ProxyConfig) -> CacheBackend:
    """
    Pick the cache backend once at startup.

    Redis is used when ``redis_url`` is configured and a PING succeeds within
    ``redis_connect_timeout`` seconds. Any failure falls back to the in-process
    cache for the life of the process; there is no later switch back.
    """
    logger = get_logger("places.cache.selector")

    if not config.redis_url:
        logger.info("No Redis URL configured, using in-process cache")
        return create_memory_backend(config)

    timeout = config.redis_connect_timeout
    logger.info("Attempting to connect to Redis", timeout=timeout)
    client = redis.from_url(
        config.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )

    try:
        await asyncio.wait_for(client.ping(), timeout=timeout)
    except Exception as exc:
        logger.error("Redis connection error, falling back to in-process cache", error=str(exc))
        try:
            await client.aclose()
        except Exception as close_exc:
            logger.debug("Failed to close Redis client", error=str(close_exc))
        return create_memory_backend(config)

    logger.info("Redis ping successful, using Redis cache")
    return RedisCacheBackend(client, ttl_seconds=config.redis_ttl_seconds)


def describe_backend(backend: CacheBackend) -> Dict[str, Any]:
    """Summary logged when the backend is selected."""
    info: Dict[str, Any] = {"backend": backend.name}
    ttl = getattr(backend, "ttl_seconds", None)
    if ttl is not None:
        info["ttl_seconds"] = ttl
    return info
