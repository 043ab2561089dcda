"""
cachewise — Transport Module

Memcached-class clients the cache facade talks to.

The Redis client is lazy-loaded via factory.py to avoid import overhead.
"""

from .factory import (
    close_all_clients,
    create_client,
    get_client,
    list_client_instances,
    reset_client_factory,
)
from .interface import MAX_RELATIVE_EXPIRATION, CacheClient, decode_payload, encode_payload, expiration_deadline
from .memory import MemoryCacheClient

__all__ = [
    "CacheClient",
    "MemoryCacheClient",
    "MAX_RELATIVE_EXPIRATION",
    "expiration_deadline",
    "decode_payload",
    "encode_payload",
    "create_client",
    "get_client",
    "close_all_clients",
    "list_client_instances",
    "reset_client_factory",
]
