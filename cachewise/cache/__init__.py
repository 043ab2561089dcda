"""
cachewise — Cache Module

The Cache facade and its factory.

Usage:
    from cachewise.cache import create_cache

    cache = create_cache()
    await cache.set("user:1", 3600, "value")
    value = await cache.get("user:1")
"""

from .facade import Cache
from .factory import (
    close_all_caches,
    create_cache,
    get_cache,
    list_cache_instances,
    reset_cache_factory,
)

__all__ = [
    "Cache",
    "create_cache",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
]
