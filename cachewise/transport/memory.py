"""
cachewise — Memory Transport Client

In-process client with memcached semantics: LRU eviction, memcached expiration
rules, add-if-absent, and counters stored as ASCII decimals.
Safe for concurrent tasks within one event loop.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Iterable
from typing import Any

from ..errors import CacheTransportError
from ..serialization import CachedData, LongToStringTranscoder, PickleTranscoder, Transcoder
from .interface import CacheClient, decode_payload, encode_payload, expiration_deadline

logger = logging.getLogger(__name__)

_COUNTER_TRANSCODER = LongToStringTranscoder()


class MemoryCacheClient(CacheClient):
    """
    In-memory transport with LRU eviction.

    Features:
    - LRU eviction when max_size is reached
    - Relative and absolute expirations
    - O(1) get/set/delete operations
    """

    def __init__(
        self,
        max_size: int = 10000,
        native_transcoder: Transcoder | None = None,
    ):
        """
        Initialize memory client.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            native_transcoder: Transcoder used when none is passed (pickle by default)
        """
        self.max_size = max_size
        self._native = native_transcoder or PickleTranscoder()

        # Storage: key -> (payload, deadline)
        self._cache: OrderedDict[str, tuple[CachedData, float | None]] = OrderedDict()

        # Stats
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

        self._lock = asyncio.Lock()

    @property
    def native_transcoder(self) -> Transcoder:
        return self._native

    def _is_expired(self, deadline: float | None) -> bool:
        if deadline is None:
            return False
        return time.time() > deadline

    def _lookup(self, key: str) -> CachedData | None:
        """Live payload for a key; caller holds the lock."""
        entry = self._cache.get(key)
        if entry is None:
            return None

        payload, deadline = entry
        if self._is_expired(deadline):
            del self._cache[key]
            return None

        self._cache.move_to_end(key)
        return payload

    def _store(self, key: str, payload: CachedData, deadline: float | None) -> None:
        """Store a payload; caller holds the lock."""
        if key not in self._cache and len(self._cache) >= self.max_size:
            evicted_key, _ = self._cache.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted key from memory cache: {evicted_key}")

        self._cache[key] = (payload, deadline)
        self._cache.move_to_end(key)
        self._sets += 1

    async def get(self, key: str, transcoder: Transcoder | None = None) -> Any | None:
        """Retrieve value from cache."""
        async with self._lock:
            payload = self._lookup(key)
            if payload is None:
                self._misses += 1
                return None
            self._hits += 1

        return decode_payload(transcoder or self._native, payload, key)

    async def get_bulk(self, keys: Iterable[str], transcoder: Transcoder | None = None) -> dict[str, Any]:
        """Retrieve multiple values; absent keys are omitted."""
        transcoder = transcoder or self._native
        found: dict[str, CachedData] = {}

        async with self._lock:
            for key in keys:
                payload = self._lookup(key)
                if payload is None:
                    self._misses += 1
                    continue
                self._hits += 1
                found[key] = payload

        return {key: decode_payload(transcoder, payload, key) for key, payload in found.items()}

    async def set(self, key: str, expiration: int, value: Any, transcoder: Transcoder | None = None) -> bool:
        """Store value in cache."""
        payload = encode_payload(transcoder or self._native, value, key)

        async with self._lock:
            self._store(key, payload, expiration_deadline(expiration))

        return True

    async def add(self, key: str, expiration: int, value: Any, transcoder: Transcoder | None = None) -> bool:
        """Store value only when the key is absent."""
        payload = encode_payload(transcoder or self._native, value, key)

        async with self._lock:
            if self._lookup(key) is not None:
                return False
            self._store(key, payload, expiration_deadline(expiration))

        return True

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        async with self._lock:
            if self._lookup(key) is None:
                return False
            del self._cache[key]
            self._deletes += 1
            return True

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Delete multiple keys."""
        async with self._lock:
            for key in keys:
                if self._cache.pop(key, None) is not None:
                    self._deletes += 1

    async def incr(self, key: str, by: int, default: int, expiration: int = 0) -> int:
        """Increment a counter, creating it with the default when absent."""
        async with self._lock:
            payload = self._lookup(key)
            if payload is None:
                self._store(key, _COUNTER_TRANSCODER.encode(default), expiration_deadline(expiration))
                return int(default)

            value = self._counter_value(key, payload, "incr") + by
            self._replace_counter(key, value)
            return value

    async def decr(self, key: str, by: int) -> int:
        """Decrement a counter, flooring at zero; -1 when absent."""
        async with self._lock:
            payload = self._lookup(key)
            if payload is None:
                return -1

            value = max(0, self._counter_value(key, payload, "decr") - by)
            self._replace_counter(key, value)
            return value

    def _counter_value(self, key: str, payload: CachedData, operation: str) -> int:
        try:
            return _COUNTER_TRANSCODER.decode(payload)
        except (UnicodeDecodeError, ValueError) as e:
            raise CacheTransportError(
                operation,
                "cannot increment or decrement non-numeric value",
                details={"key": key},
            ) from e

    def _replace_counter(self, key: str, value: int) -> None:
        # incr/decr keep the entry's expiration
        _, deadline = self._cache[key]
        self._cache[key] = (_COUNTER_TRANSCODER.encode(value), deadline)

    async def flush(self) -> None:
        """Clear all entries from cache."""
        async with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.info(f"Flushed {size} entries from memory cache")

    async def shutdown(self) -> None:
        """Memory client has nothing to release."""
        logger.debug("Memory cache client closed")

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        async with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": "memory",
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "deletes": self._deletes,
                "evictions": self._evictions,
            }
