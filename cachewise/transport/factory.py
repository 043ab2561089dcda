"""
cachewise — Transport Client Factory

Canonical factory for creating transport clients based on configuration.

Key points:
- Select the transport with CACHE_BACKEND=memory|redis (memory by default,
  redis automatically when REDIS_URL is set)
- When redis is selected, redis must be installed and REDIS_URL must be set
- All configuration is typed and validated via Pydantic models

Examples:
    from cachewise.transport.factory import create_client

    client = create_client()

    from cachewise.config import TransportBackend, TransportConfig
    cfg = TransportConfig(backend=TransportBackend.MEMORY, max_size=500)
    mem_client = create_client(cfg, name="test")
"""

from __future__ import annotations

import logging

from ..config import TransportBackend, TransportConfig, get_config
from ..errors import ConfigurationError
from .interface import CacheClient
from .memory import MemoryCacheClient

logger = logging.getLogger(__name__)

# Global client instances registry
_client_instances: dict[str, CacheClient] = {}


def _create_memory_client(config: TransportConfig) -> CacheClient:
    """Internal helper to construct a memory client."""
    return MemoryCacheClient(max_size=config.max_size)


def _create_redis_client(config: TransportConfig) -> CacheClient:
    """Internal helper to construct a redis client with lazy import."""
    if not config.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=redis",
            details={"env": "REDIS_URL", "backend": "redis"},
        )

    # Lazy import to avoid connecting machinery when the memory transport is used
    try:
        from .redis import RedisCacheClient
    except ImportError as e:
        logger.error(
            "Redis transport selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "Redis transport selected but redis client is unavailable. Install with: pip install 'redis>=5.0.0'",
            details={"package": "redis>=5.0.0", "error": str(e), "backend": "redis"},
        ) from e

    return RedisCacheClient(
        redis_url=config.redis_url,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
    )


def create_client(
    config: TransportConfig | None = None,
    name: str = "default",
) -> CacheClient:
    """
    Create a transport client based on configuration.

    Args:
        config: Transport configuration (uses global config if not provided)
        name: Client instance name (for multiple clients)

    Returns:
        Configured transport client

    Raises:
        ConfigurationError: If configuration is invalid or the transport unavailable
    """
    if name in _client_instances:
        logger.debug("Returning existing transport client: %s", name)
        return _client_instances[name]

    if config is None:
        config = get_config().transport

    logger.info(
        "Creating transport client '%s' with backend: %s",
        name,
        config.backend,
        extra={"client_name": name, "backend": str(config.backend)},
    )

    if config.backend == TransportBackend.MEMORY:
        client = _create_memory_client(config)
    elif config.backend == TransportBackend.REDIS:
        client = _create_redis_client(config)
    else:
        raise ConfigurationError(
            f"Unknown transport backend: {config.backend}",
            details={
                "backend": str(config.backend),
                "supported": ["memory", "redis"],
            },
        )

    _client_instances[name] = client
    return client


def get_client(name: str = "default") -> CacheClient:
    """
    Get an existing client by name, creating it from global configuration if needed.

    Args:
        name: Client instance name

    Returns:
        Transport client
    """
    if name not in _client_instances:
        logger.debug("Transport client '%s' not found, creating new instance", name)
        return create_client(name=name)

    return _client_instances[name]


async def close_all_clients() -> None:
    """
    Shut down all clients and release resources.

    Must be called during graceful shutdown.
    """
    if not _client_instances:
        logger.debug("No transport clients to close")
        return

    logger.info("Closing %d transport client(s)...", len(_client_instances))

    for name, client in list(_client_instances.items()):
        try:
            await client.shutdown()
            logger.info("Closed transport client: %s", name)
        except Exception as e:
            logger.error(
                "Error closing transport client '%s': %s",
                name,
                e,
                extra={"client_name": name, "error": str(e)},
                exc_info=True,
            )

    _client_instances.clear()


def reset_client_factory() -> None:
    """
    Clear all client references without shutting them down.

    Warning: Only use this in testing contexts.
    """
    count = len(_client_instances)
    _client_instances.clear()
    logger.debug("Reset transport client factory, cleared %d instance reference(s)", count)


def list_client_instances() -> list[str]:
    """
    List all registered client names.

    Returns:
        List of client instance names
    """
    return list(_client_instances.keys())
