"""
cachewise — Transport Client Interface

Defines the abstract memcached-class client the cache facade talks to.

Expiration follows memcached: 0 means no client-imposed expiration, values up to
30 days (2_592_000 seconds) are offsets from now, larger values are absolute
Unix timestamps. Clients receive the site's value unchanged.

Every operation may raise CacheTimeoutError or CacheTransportError.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from ..errors import CacheTransportError
from ..serialization import CachedData, Transcoder

# Largest expiration treated as a relative offset (30 days)
MAX_RELATIVE_EXPIRATION = 60 * 60 * 24 * 30


def expiration_deadline(expiration: int, now: float | None = None) -> float | None:
    """
    Absolute deadline for a memcached expiration value.

    Args:
        expiration: Expiration as passed by the site
        now: Current time (defaults to time.time())

    Returns:
        Unix timestamp after which the entry is gone, None for no expiration
    """
    if expiration == 0:
        return None

    now = time.time() if now is None else now
    if expiration < 0:
        # Already expired
        return now - 1
    if expiration <= MAX_RELATIVE_EXPIRATION:
        return now + expiration
    return float(expiration)


def decode_payload(transcoder: Transcoder, payload: CachedData, key: str) -> Any:
    """Decode a stored payload; undecodable payloads surface as CacheTransportError."""
    try:
        return transcoder.decode(payload)
    except CacheTransportError:
        raise
    except Exception as e:
        raise CacheTransportError("decode", f"cannot decode value: {e}", details={"key": key}) from e


def encode_payload(transcoder: Transcoder, value: Any, key: str) -> CachedData:
    """Encode a value for storage; values the transcoder rejects surface as CacheTransportError."""
    try:
        return transcoder.encode(value)
    except CacheTransportError:
        raise
    except Exception as e:
        raise CacheTransportError("encode", f"cannot encode value: {e}", details={"key": key}) from e


class CacheClient(ABC):
    """
    Abstract base class for cache transports.

    Passing ``transcoder=None`` selects the client's native transcoder.
    Keys are opaque strings that the caller already validated.
    """

    @property
    @abstractmethod
    def native_transcoder(self) -> Transcoder:
        """Transcoder used when none is passed."""
        pass

    @abstractmethod
    async def get(self, key: str, transcoder: Transcoder | None = None) -> Any | None:
        """
        Retrieve a value.

        Args:
            key: Cache key
            transcoder: Transcoder for the stored payload

        Returns:
            Decoded value, None when absent or expired
        """
        pass

    @abstractmethod
    async def get_bulk(self, keys: Iterable[str], transcoder: Transcoder | None = None) -> dict[str, Any]:
        """
        Retrieve many values in one round-trip.

        Args:
            keys: Cache keys
            transcoder: Transcoder for the stored payloads

        Returns:
            Dictionary mapping keys to values (absent keys are omitted)
        """
        pass

    @abstractmethod
    async def set(self, key: str, expiration: int, value: Any, transcoder: Transcoder | None = None) -> bool:
        """
        Store a value unconditionally.

        Args:
            key: Cache key
            expiration: memcached expiration
            value: Value to store
            transcoder: Transcoder for the payload

        Returns:
            True if stored
        """
        pass

    @abstractmethod
    async def add(self, key: str, expiration: int, value: Any, transcoder: Transcoder | None = None) -> bool:
        """
        Store a value only if the key is absent.

        Returns:
            True if stored, False if the key already existed
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key was deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    async def delete_many(self, keys: Iterable[str]) -> None:
        """Delete many keys."""
        pass

    @abstractmethod
    async def incr(self, key: str, by: int, default: int, expiration: int = 0) -> int:
        """
        Increment a counter.

        When the key is absent it is created with ``default`` (not ``default + by``).

        Returns:
            New counter value
        """
        pass

    @abstractmethod
    async def decr(self, key: str, by: int) -> int:
        """
        Decrement a counter, never below zero.

        Returns:
            New counter value, -1 when the key is absent
        """
        pass

    @abstractmethod
    async def flush(self) -> None:
        """Remove every entry."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Close the client and release resources.

        Should be called during graceful shutdown.
        """
        pass

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """
        Get client statistics.

        Returns:
            Dictionary with statistics (hits, misses, size, etc.)
        """
        pass
