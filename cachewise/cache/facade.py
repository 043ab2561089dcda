"""
cachewise — Cache Facade

Uniform read/write/delete/bulk/counter operations over a transport client,
parameterised by the serialization strategy of the calling site.

The *_silently variants are the best-effort writes used after a method has
already produced its result: transport failures are logged and swallowed.
"""

import logging
from collections.abc import Iterable
from typing import Any

from ..config import SerializationType
from ..errors import CacheError
from ..serialization import LongToStringTranscoder, SerializationDispatcher
from ..transport import CacheClient

logger = logging.getLogger(__name__)

_COUNTER_TRANSCODER = LongToStringTranscoder()

Serialization = SerializationType | str | None


class Cache:
    """
    Named cache bound to one transport client.

    Example:
        cache = Cache("default", MemoryCacheClient(), SerializationDispatcher())
        await cache.set("user:1", 60, {"name": "a"})
        value = await cache.get("user:1")
    """

    def __init__(
        self,
        name: str,
        client: CacheClient,
        transcoders: SerializationDispatcher | None = None,
        aliases: Iterable[str] = (),
    ):
        if not name or not name.strip():
            raise ValueError("Cache name must not be empty")

        self.name = name
        self.aliases = tuple(aliases)
        self.transcoders = transcoders or SerializationDispatcher()
        self._client = client

    @property
    def client(self) -> CacheClient:
        return self._client

    # ------------ Reads ------------

    async def get(self, key: str, serialization: Serialization = None) -> Any | None:
        """Value stored under key, None when absent."""
        return await self._client.get(key, self.transcoders.resolve(serialization))

    async def get_bulk(self, keys: Iterable[str], serialization: Serialization = None) -> dict[str, Any]:
        """Values for the keys that are present."""
        return await self._client.get_bulk(keys, self.transcoders.resolve(serialization))

    async def get_counter(self, key: str) -> int | None:
        """Counter value stored under key, None when absent."""
        return await self._client.get(key, _COUNTER_TRANSCODER)

    # ------------ Writes ------------

    async def set(self, key: str, expiration: int, value: Any, serialization: Serialization = None) -> bool:
        return await self._client.set(key, expiration, value, self.transcoders.resolve(serialization))

    async def set_silently(self, key: str, expiration: int, value: Any, serialization: Serialization = None) -> bool:
        """Best-effort set; returns False when the transport failed."""
        try:
            return await self.set(key, expiration, value, serialization)
        except CacheError as e:
            self._warn(e, "set", key)
            return False

    async def add(self, key: str, expiration: int, value: Any, serialization: Serialization = None) -> bool:
        return await self._client.add(key, expiration, value, self.transcoders.resolve(serialization))

    async def add_silently(self, key: str, expiration: int, value: Any, serialization: Serialization = None) -> bool:
        """Best-effort add; returns False when the key existed or the transport failed."""
        try:
            return await self.add(key, expiration, value, serialization)
        except CacheError as e:
            self._warn(e, "add", key)
            return False

    async def set_counter(self, key: str, expiration: int, value: int) -> bool:
        return await self._client.set(key, expiration, int(value), _COUNTER_TRANSCODER)

    async def set_counter_silently(self, key: str, expiration: int, value: int) -> bool:
        try:
            return await self.set_counter(key, expiration, value)
        except CacheError as e:
            self._warn(e, "set_counter", key)
            return False

    async def incr(self, key: str, by: int, default: int, expiration: int = 0) -> int:
        return await self._client.incr(key, by, default, expiration)

    async def incr_silently(self, key: str, by: int, default: int, expiration: int = 0) -> int | None:
        try:
            return await self.incr(key, by, default, expiration)
        except CacheError as e:
            self._warn(e, "incr", key)
            return None

    async def decr(self, key: str, by: int) -> int:
        return await self._client.decr(key, by)

    # ------------ Deletes ------------

    async def delete(self, key: str) -> bool:
        return await self._client.delete(key)

    async def delete_silently(self, key: str) -> bool:
        try:
            return await self.delete(key)
        except CacheError as e:
            self._warn(e, "delete", key)
            return False

    async def delete_many(self, keys: Iterable[str]) -> None:
        await self._client.delete_many(keys)

    async def delete_many_silently(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        try:
            await self.delete_many(keys)
        except CacheError as e:
            self._warn(e, "delete_many", ", ".join(keys))

    # ------------ Lifecycle ------------

    async def flush(self) -> None:
        await self._client.flush()

    async def shutdown(self) -> None:
        await self._client.shutdown()

    async def change_client(self, new_client: CacheClient | None) -> None:
        """Swap the transport; the previous client is shut down."""
        if new_client is None:
            return

        logger.info(f"Replacing the cache client of '{self.name}'")
        old_client = self._client
        self._client = new_client
        logger.info(f"Closing old cache client of '{self.name}'")
        await old_client.shutdown()

    async def get_stats(self) -> dict[str, Any]:
        stats = await self._client.get_stats()
        return {"cache": self.name, **stats}

    def _warn(self, error: CacheError, operation: str, key: str) -> None:
        logger.warning(
            f"Cannot {operation} on key {key}: {error.message}",
            extra={"cache": self.name, "key": key, "operation": operation, "error_code": error.code.value},
        )
