"""
cachewise — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
Python 3.12+ with modern type hints and async patterns.
"""

import os
import socket
from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
import pytest_asyncio
from redis.asyncio import Redis

from cachewise.cache import Cache
from cachewise.config import CachewiseConfig, SerializationType
from cachewise.observability import ObservabilityAdapter
from cachewise.serialization import JsonTranscoder, PickleTranscoder, SerializationDispatcher
from cachewise.sites import KeyBuilder, SiteDispatcher
from recording import RecordingClient

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


# Redis availability checker
def is_redis_available() -> bool:
    """Check if Redis server is available for testing."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("localhost", 6379))
        sock.close()
        return result == 0
    except OSError:
        return False


# Skip marker for Redis tests
redis_available = pytest.mark.skipif(not is_redis_available(), reason="Redis server not available")


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest_asyncio.fixture
async def redis_client(test_redis_url: str) -> AsyncGenerator[Redis, None]:  # type: ignore[misc]
    """
    Create a raw Redis client for testing.

    Automatically skips tests if Redis is not available.
    Clears the test database before and after each test.
    """
    client: Redis = Redis.from_url(test_redis_url, decode_responses=False)  # type: ignore[call-arg]

    try:
        await client.ping()
    except Exception as e:
        await client.aclose()
        pytest.skip(f"Redis not available for testing: {e}")

    await client.flushdb()

    yield client

    try:
        await client.flushdb()
    finally:
        await client.aclose()


@pytest.fixture  # type: ignore[misc]
def mock_env_memory(monkeypatch: pytest.MonkeyPatch) -> None:  # type: ignore[type-arg]
    """Set environment variables for the memory transport."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_MAX_SIZE", "100")


@pytest.fixture  # type: ignore[misc]
def mock_env_redis(monkeypatch: pytest.MonkeyPatch, test_redis_url: str) -> None:  # type: ignore[type-arg]
    """Set environment variables for the Redis transport."""
    if not is_redis_available():
        pytest.skip("Redis not available")
    monkeypatch.setenv("CACHE_BACKEND", "redis")
    monkeypatch.setenv("REDIS_URL", test_redis_url)
    monkeypatch.setenv("REDIS_MAX_CONNECTIONS", "5")
    monkeypatch.setenv("REDIS_SOCKET_TIMEOUT", "2")


@pytest.fixture
def config() -> CachewiseConfig:
    """Explicit configuration so tests never read the process environment."""
    return CachewiseConfig(environment="test", log_level="DEBUG")


@pytest.fixture
def client() -> RecordingClient:
    """Recording memory transport."""
    return RecordingClient(max_size=1000)


@pytest.fixture
def transcoders() -> SerializationDispatcher:
    """Transport-native default with text and binary transcoders available."""
    return SerializationDispatcher(
        default=SerializationType.PROVIDER,
        text=JsonTranscoder(),
        binary=PickleTranscoder(),
    )


@pytest.fixture
def cache(client: RecordingClient, transcoders: SerializationDispatcher) -> Cache:
    return Cache("test", client, transcoders)


@pytest.fixture
def observability() -> ObservabilityAdapter:
    return ObservabilityAdapter()


@pytest.fixture
def dispatcher(cache: Cache, config: CachewiseConfig, observability: ObservabilityAdapter) -> SiteDispatcher:
    """Dispatcher over the recording transport."""
    return SiteDispatcher(cache, config, KeyBuilder(max_key_length=config.max_key_length), observability)


@pytest.fixture  # type: ignore[misc]
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }


@pytest.fixture(autouse=True)  # type: ignore[misc]
def reset_factories() -> Generator[None, None, None]:
    """Reset factories and configuration after each test to prevent state leakage."""
    yield
    from cachewise.cache import reset_cache_factory
    from cachewise.config import reset_config
    from cachewise.transport import reset_client_factory

    reset_cache_factory()
    reset_client_factory()
    reset_config()
