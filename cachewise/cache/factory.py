"""
cachewise — Cache Factory

Canonical factory for wiring a Cache facade from configuration.

Examples:
    from cachewise.cache import create_cache

    # Uses env-configured transport and serialization
    cache = create_cache()

    # Or explicitly (e.g., for tests)
    from cachewise.config import CachewiseConfig
    cache = create_cache(CachewiseConfig(default_serialization="text"), name="test")
"""

from __future__ import annotations

import logging

from ..config import CachewiseConfig, get_config
from ..serialization import JsonTranscoder, PickleTranscoder, SerializationDispatcher, Transcoder
from ..transport import create_client
from .facade import Cache

logger = logging.getLogger(__name__)

# Global cache instances registry
_cache_instances: dict[str, Cache] = {}


def create_cache(
    config: CachewiseConfig | None = None,
    name: str = "default",
    custom_transcoder: Transcoder | None = None,
    json_transcoder: JsonTranscoder | None = None,
) -> Cache:
    """
    Create a cache facade with text and binary transcoders wired in.

    Args:
        config: Configuration (uses global config if not provided)
        name: Cache instance name
        custom_transcoder: Transcoder for sites asking for CUSTOM serialization
        json_transcoder: Pre-configured JSON transcoder (e.g., with class aliases)

    Returns:
        Cache facade

    Raises:
        ConfigurationError: If the transport or serialization setup is invalid
    """
    if name in _cache_instances:
        logger.debug("Returning existing cache instance: %s", name)
        return _cache_instances[name]

    if config is None:
        config = get_config()

    transcoders = SerializationDispatcher(
        default=config.default_serialization,
        text=json_transcoder or JsonTranscoder(),
        binary=PickleTranscoder(),
        custom=custom_transcoder,
    )
    cache = Cache(name, create_client(config.transport, name=name), transcoders)
    _cache_instances[name] = cache

    logger.info(
        "Cache instance '%s' created",
        name,
        extra={
            "cache_name": name,
            "backend": str(config.transport.backend),
            "default_serialization": str(config.default_serialization),
        },
    )
    return cache


def get_cache(name: str = "default") -> Cache:
    """
    Get an existing cache by name, creating it from global configuration if needed.
    """
    if name not in _cache_instances:
        return create_cache(name=name)

    return _cache_instances[name]


async def close_all_caches() -> None:
    """
    Shut down all caches and release resources.

    Must be called during graceful shutdown.
    """
    for name, cache in list(_cache_instances.items()):
        try:
            await cache.shutdown()
            logger.info("Closed cache instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "error": str(e)},
                exc_info=True,
            )

    _cache_instances.clear()


def reset_cache_factory() -> None:
    """
    Clear all cache references without shutting them down.

    Warning: Only use this in testing contexts.
    """
    _cache_instances.clear()


def list_cache_instances() -> list[str]:
    """List all registered cache names."""
    return list(_cache_instances.keys())
