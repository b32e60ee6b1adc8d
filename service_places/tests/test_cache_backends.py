"""
Unit tests for the place cache backends and startup backend selection.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from shared.config import ProxyConfig
from shared.errors import CacheFailure
from service_places.app.caching.backends import (
    MemoryCacheBackend,
    RedisCacheBackend,
    describe_backend,
    select_cache_backend,
)
from service_places.app.domain.records import Geometry, PlaceRecord, normalize_place


@pytest.fixture
def record():
    return PlaceRecord(
        place_id="P",
        name="N",
        geometry=Geometry(location={"lat": 1.0, "lng": 2.0}),
    )


class TestMemoryCacheBackend:
    """Test the in-process TTL cache."""

    @pytest.fixture
    def backend(self):
        return MemoryCacheBackend(ttl_seconds=60, max_entries=10)

    @pytest.mark.asyncio
    async def test_get_missing_key(self, backend):
        assert await backend.get("place:missing") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, backend, record):
        assert await backend.set("place:P", record) is True

        cached = await backend.get("place:P")

        assert cached.to_cache_dict() == record.to_cache_dict()
        assert not cached.has("types")

    @pytest.mark.asyncio
    async def test_stored_value_is_isolated(self, backend, record):
        """Mutating a returned record does not change what is stored."""
        await backend.set("place:P", record)

        first = await backend.get("place:P")
        first.geometry.location["lat"] = 99

        second = await backend.get("place:P")
        assert second.geometry.location["lat"] == 1.0

    @pytest.mark.asyncio
    async def test_set_replaces_whole_record(self, backend, record):
        await backend.set("place:P", record)
        await backend.set("place:P", PlaceRecord(types=["cafe"]))

        cached = await backend.get("place:P")

        assert cached.to_cache_dict() == {"types": ["cafe"]}

    @pytest.mark.asyncio
    async def test_get_returns_record_as_stored(self, backend):
        """Reading back does not add a geometry container the record never had."""
        await backend.set("place:P", PlaceRecord(name="N"))

        cached = await backend.get("place:P")

        assert not cached.has("geometry")
        assert cached.to_cache_dict() == {"name": "N"}

    @pytest.mark.asyncio
    async def test_empty_geometry_container_survives(self, backend):
        await backend.set("place:P", normalize_place({"place_id": "P"}))

        cached = await backend.get("place:P")

        assert cached.has("geometry")
        assert cached.geometry.populated() == []

    @pytest.mark.asyncio
    async def test_delete(self, backend, record):
        await backend.set("place:P", record)

        assert await backend.delete("place:P") is True
        assert len(backend) == 0
        assert await backend.delete("place:P") is False
        assert await backend.get("place:P") is None

    @pytest.mark.asyncio
    async def test_ping_and_close(self, backend):
        assert await backend.ping() is True
        await backend.close()

    def test_describe(self, backend):
        assert describe_backend(backend) == {"backend": "memory", "ttl_seconds": 60}


class TestRedisCacheBackend:
    """Test the Redis adapter's serialization and error wrapping."""

    @pytest.fixture
    def client(self):
        return AsyncMock()

    @pytest.fixture
    def backend(self, client):
        return RedisCacheBackend(client, ttl_seconds=300)

    @pytest.mark.asyncio
    async def test_set_serializes_to_json(self, backend, client, record):
        assert await backend.set("place:P", record) is True

        client.set.assert_awaited_once()
        args, kwargs = client.set.call_args
        assert args[0] == "place:P"
        assert json.loads(args[1]) == record.to_cache_dict()
        assert kwargs == {"ex": 300}

    @pytest.mark.asyncio
    async def test_get_parses_json(self, backend, client, record):
        client.get.return_value = json.dumps(record.to_cache_dict())

        cached = await backend.get("place:P")

        client.get.assert_awaited_once_with("place:P")
        assert isinstance(cached, PlaceRecord)
        assert cached.to_cache_dict() == record.to_cache_dict()

    @pytest.mark.asyncio
    async def test_get_accepts_bytes(self, backend, client, record):
        client.get.return_value = json.dumps(record.to_cache_dict()).encode("utf-8")

        cached = await backend.get("place:P")

        assert cached.to_cache_dict() == record.to_cache_dict()

    @pytest.mark.asyncio
    async def test_get_missing_key(self, backend, client):
        client.get.return_value = None

        assert await backend.get("place:P") is None

    @pytest.mark.asyncio
    async def test_round_trip_matches_memory_backend(self, backend, client, full_place_result):
        """Both backends hand back the same record shape."""
        stored = {}

        async def fake_set(key, value, ex=None):
            stored[key] = value
            return True

        async def fake_get(key):
            return stored.get(key)

        client.set.side_effect = fake_set
        client.get.side_effect = fake_get
        memory = MemoryCacheBackend(ttl_seconds=60)
        record = normalize_place(full_place_result)

        await backend.set("place:P", record)
        await memory.set("place:P", record)

        from_redis = await backend.get("place:P")
        from_memory = await memory.get("place:P")
        assert from_redis.to_cache_dict() == from_memory.to_cache_dict()

    @pytest.mark.asyncio
    async def test_get_error_raises_cache_failure(self, backend, client):
        client.get.side_effect = ConnectionError("connection reset")

        with pytest.raises(CacheFailure) as exc_info:
            await backend.get("place:P")

        assert exc_info.value.operation == "get"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_cache_failure(self, backend, client):
        client.get.return_value = "{not json"

        with pytest.raises(CacheFailure):
            await backend.get("place:P")

    @pytest.mark.asyncio
    async def test_wrong_shape_raises_cache_failure(self, backend, client):
        client.get.return_value = json.dumps({"geometry": "not-an-object"})

        with pytest.raises(CacheFailure):
            await backend.get("place:P")

    @pytest.mark.asyncio
    async def test_set_error_raises_cache_failure(self, backend, client, record):
        client.set.side_effect = ConnectionError("connection reset")

        with pytest.raises(CacheFailure) as exc_info:
            await backend.set("place:P", record)

        assert exc_info.value.operation == "set"

    @pytest.mark.asyncio
    async def test_delete(self, backend, client):
        client.delete.return_value = 1

        assert await backend.delete("place:P") is True
        client.delete.assert_awaited_once_with("place:P")

    @pytest.mark.asyncio
    async def test_ping_failure_reports_false(self, backend, client):
        client.ping.side_effect = ConnectionError("down")

        assert await backend.ping() is False

    @pytest.mark.asyncio
    async def test_close_releases_client(self, backend, client):
        await backend.close()

        client.aclose.assert_awaited_once()


class TestSelectCacheBackend:
    """Test the startup choice between Redis and the in-process fallback."""

    @staticmethod
    def make_config(**overrides):
        values = {"_env_file": None, "redis_url": None, "memory_cache_ttl_seconds": 120}
        values.update(overrides)
        return ProxyConfig(**values)

    @pytest.mark.asyncio
    async def test_no_redis_url_uses_memory(self):
        with patch("service_places.app.caching.backends.redis.from_url") as mock_from_url:
            backend = await select_cache_backend(self.make_config())

        assert isinstance(backend, MemoryCacheBackend)
        assert backend.ttl_seconds == 120
        mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_ping_uses_redis(self):
        client = AsyncMock()
        client.ping.return_value = True

        with patch("service_places.app.caching.backends.redis.from_url", return_value=client) as mock_from_url:
            backend = await select_cache_backend(
                self.make_config(redis_url="redis://cache:6379/0", redis_ttl_seconds=600)
            )

        assert isinstance(backend, RedisCacheBackend)
        assert backend.redis is client
        assert backend.ttl_seconds == 600
        args, kwargs = mock_from_url.call_args
        assert args[0] == "redis://cache:6379/0"
        assert kwargs["socket_connect_timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_failed_ping_falls_back_to_memory(self):
        client = AsyncMock()
        client.ping.side_effect = ConnectionError("refused")

        with patch("service_places.app.caching.backends.redis.from_url", return_value=client):
            backend = await select_cache_backend(self.make_config(redis_url="redis://cache:6379/0"))

        assert isinstance(backend, MemoryCacheBackend)
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_slow_ping_times_out_and_falls_back(self):
        client = AsyncMock()

        async def slow_ping():
            await asyncio.sleep(5)
            return True

        client.ping.side_effect = slow_ping

        with patch("service_places.app.caching.backends.redis.from_url", return_value=client):
            backend = await select_cache_backend(
                self.make_config(redis_url="redis://cache:6379/0", redis_connect_timeout=0.05)
            )

        assert isinstance(backend, MemoryCacheBackend)
