"""
cachewise — Cache Factory Integration Tests

Tests for the factories that create and manage caches and transport clients.
Tests singleton behavior, configuration, serialization wiring and lifecycle.

Python 3.12+ with modern async patterns and type hints.
"""

import asyncio
import socket
from collections.abc import AsyncGenerator

import pytest

from cachewise.cache import Cache, close_all_caches, create_cache, get_cache, list_cache_instances, reset_cache_factory
from cachewise.config import CachewiseConfig, SerializationType, TransportBackend, TransportConfig
from cachewise.errors import ConfigurationError
from cachewise.serialization import JsonTranscoder, PickleTranscoder
from cachewise.transport import MemoryCacheClient, close_all_clients, create_client, list_client_instances

# Check if Redis is available
try:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    redis_available = sock.connect_ex(("localhost", 6379)) == 0
    sock.close()
except OSError:
    redis_available = False


class TestCacheFactory:
    """Test suite for cache factory functionality."""

    @pytest.fixture(autouse=True)
    async def cleanup(self, mock_env_memory: None) -> AsyncGenerator[None, None]:
        """Clean up cache and client instances after each test."""
        yield
        await close_all_caches()
        await close_all_clients()
        reset_cache_factory()

    async def test_create_memory_cache_default(self) -> None:
        """Environment-configured cache uses the memory transport."""
        cache = create_cache()

        assert isinstance(cache, Cache)
        assert isinstance(cache.client, MemoryCacheClient)

        await cache.set("test_key", 0, "test_value")
        assert await cache.get("test_key") == "test_value"

    async def test_explicit_config(self) -> None:
        config = CachewiseConfig(transport=TransportConfig(backend=TransportBackend.MEMORY, max_size=50))

        cache = create_cache(config=config, name="custom")

        assert cache.client.max_size == 50  # type: ignore[attr-defined]
        assert cache.name == "custom"

    async def test_default_serialization_from_config(self) -> None:
        config = CachewiseConfig(default_serialization=SerializationType.TEXT)

        cache = create_cache(config=config, name="text")

        assert isinstance(cache.transcoders.resolve(None), JsonTranscoder)
        assert isinstance(cache.transcoders.resolve(SerializationType.BINARY), PickleTranscoder)
        assert cache.transcoders.is_available(SerializationType.CUSTOM) is False

    async def test_json_transcoder_with_aliases(self) -> None:
        json_transcoder = JsonTranscoder()
        cache = create_cache(
            config=CachewiseConfig(default_serialization=SerializationType.TEXT),
            name="aliased",
            json_transcoder=json_transcoder,
        )

        assert cache.transcoders.resolve(None) is json_transcoder

    async def test_custom_transcoder(self) -> None:
        custom = PickleTranscoder()
        cache = create_cache(config=CachewiseConfig(), name="custom_ser", custom_transcoder=custom)

        assert cache.transcoders.resolve(SerializationType.CUSTOM) is custom

    async def test_singleton_behavior(self) -> None:
        """Factory returns the same instance for the same name."""
        assert create_cache(name="singleton_test") is create_cache(name="singleton_test")

    async def test_multiple_named_instances(self) -> None:
        """Named caches keep separate data."""
        cache1 = create_cache(name="cache1")
        cache2 = create_cache(name="cache2")

        assert cache1 is not cache2

        await cache1.set("key", 0, "value1")
        await cache2.set("key", 0, "value2")

        assert await cache1.get("key") == "value1"
        assert await cache2.get("key") == "value2"

    async def test_get_cache_creates_if_not_exists(self) -> None:
        cache = get_cache("new_instance")

        await cache.set("key", 0, "value")
        assert await cache.get("key") == "value"
        assert "new_instance" in list_cache_instances()

    async def test_get_cache_returns_existing(self) -> None:
        cache1 = create_cache(name="existing")
        await cache1.set("key", 0, "value")

        cache2 = get_cache("existing")

        assert cache1 is cache2
        assert await cache2.get("key") == "value"

    async def test_list_and_reset(self) -> None:
        assert list_cache_instances() == []

        create_cache(name="cache1")
        create_cache(name="cache2")

        assert sorted(list_cache_instances()) == ["cache1", "cache2"]

        reset_cache_factory()
        assert list_cache_instances() == []

    async def test_close_all_caches(self) -> None:
        """Closing shuts down every cache and clears the registry."""
        cache1 = create_cache(name="cache1")
        await cache1.set("key", 0, "value")

        await close_all_caches()

        assert list_cache_instances() == []

    async def test_concurrent_factory_calls(self) -> None:
        async def create_and_use_cache(name: str) -> str:
            cache = create_cache(name=name)
            await cache.set("key", 0, name)
            return str(await cache.get("key"))

        results = await asyncio.gather(
            create_and_use_cache("cache1"),
            create_and_use_cache("cache2"),
            create_and_use_cache("cache1"),
        )

        assert results == ["cache1", "cache2", "cache1"]
        assert len(list_cache_instances()) == 2

    async def test_cache_stats_per_instance(self) -> None:
        cache1 = create_cache(name="stats1")
        cache2 = create_cache(name="stats2")

        await cache1.set("key1", 0, "value1")
        await cache1.get("key1")
        await cache2.get("nonexistent")

        stats1 = await cache1.get_stats()
        stats2 = await cache2.get_stats()

        assert stats1["hits"] == 1
        assert stats1["misses"] == 0
        assert stats2["hits"] == 0
        assert stats2["misses"] == 1

    async def test_max_size_configuration(self) -> None:
        """LRU eviction follows the configured size."""
        config = CachewiseConfig(transport=TransportConfig(max_size=3))
        cache = create_cache(config=config, name="maxsize_test")

        for i in range(4):
            await cache.set(f"key{i}", 0, f"value{i}")

        stats = await cache.get_stats()
        assert stats["evictions"] >= 1

    async def test_change_client(self) -> None:
        cache = create_cache(name="swap")
        await cache.set("key", 0, "old")

        await cache.change_client(MemoryCacheClient(max_size=10))

        assert await cache.get("key") is None


class TestClientFactory:
    @pytest.fixture(autouse=True)
    async def cleanup(self) -> AsyncGenerator[None, None]:
        yield
        await close_all_clients()

    async def test_named_clients_are_singletons(self) -> None:
        client = create_client(TransportConfig(), name="a")

        assert create_client(TransportConfig(max_size=5), name="a") is client
        assert list_client_instances() == ["a"]

    def test_redis_requires_url(self) -> None:
        with pytest.raises(ValueError):
            TransportConfig(backend=TransportBackend.REDIS)

    async def test_unknown_backend_rejected(self) -> None:
        config = TransportConfig.model_construct(backend="memcached")

        with pytest.raises(ConfigurationError):
            create_client(config, name="bad")

    @pytest.mark.skipif(not redis_available, reason="Redis server not available")
    async def test_redis_cache(self, test_redis_url: str) -> None:
        config = CachewiseConfig(transport=TransportConfig(backend=TransportBackend.REDIS, redis_url=test_redis_url))
        cache = create_cache(config=config, name="redis_test")

        await cache.flush()
        await cache.set("key1", 0, "value1")
        assert await cache.get("key1") == "value1"
        await cache.flush()
