"""
cachewise — Declarative read-through caching over memcached-class stores

Decorate methods with cache sites; the dispatcher reads, computes, stores and
invalidates around every call.
"""

__version__ = "1.0.0"

from .cache import Cache, create_cache
from .config import CachewiseConfig, SerializationType, get_config, load_config
from .errors import (
    CacheError,
    CachewiseError,
    CacheTimeoutError,
    CacheTransportError,
    ConfigurationError,
    ErrorCode,
    InvalidAnnotationError,
    InvalidKeyError,
    InvalidSiteError,
)
from .serialization import TOMBSTONE
from .sites import KeyBuilder, KeyParam, ReturnKey, SiteDispatcher

__all__ = [
    "Cache",
    "create_cache",
    "CachewiseConfig",
    "SerializationType",
    "get_config",
    "load_config",
    "SiteDispatcher",
    "KeyBuilder",
    "KeyParam",
    "ReturnKey",
    "TOMBSTONE",
    "ErrorCode",
    "CachewiseError",
    "ConfigurationError",
    "InvalidSiteError",
    "InvalidKeyError",
    "InvalidAnnotationError",
    "CacheError",
    "CacheTimeoutError",
    "CacheTransportError",
]
