"""
cachewise — Redis Transport Client

Asynchronous Redis client exposing memcached semantics:
- memcached expirations mapped to EX (relative) or EXAT (absolute)
- add implemented as SET NX
- incr/decr implemented as Lua scripts (absent key seeds the default on incr,
  decr floors at zero and reports -1 for an absent key)
- redis timeouts surface as CacheTimeoutError, other redis errors as CacheTransportError

Redis has no per-item flags; payloads come back with flags 0.

Requires: redis>=5.0 with asyncio support

Example:
    client = RedisCacheClient(redis_url="redis://localhost:6379/0")
    await client.set("user:1", 60, {"name": "a"})
    value = await client.get("user:1")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..errors import CacheTimeoutError, CacheTransportError
from ..serialization import CachedData, JsonTranscoder, Transcoder
from .interface import MAX_RELATIVE_EXPIRATION, CacheClient, decode_payload, encode_payload

logger = logging.getLogger(__name__)

# KEYS[1] key; ARGV: by, default, expiration, "at" | "in"
_INCR_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
    redis.call('SET', KEYS[1], ARGV[2])
    local exp = tonumber(ARGV[3])
    if exp > 0 then
        if ARGV[4] == 'at' then
            redis.call('EXPIREAT', KEYS[1], exp)
        else
            redis.call('EXPIRE', KEYS[1], exp)
        end
    end
    return tonumber(ARGV[2])
end
if not tonumber(current) then
    return redis.error_reply('cannot increment or decrement non-numeric value')
end
return redis.call('INCRBY', KEYS[1], ARGV[1])
"""

# KEYS[1] key; ARGV: by
_DECR_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
    return -1
end
local value = tonumber(current)
if not value then
    return redis.error_reply('cannot increment or decrement non-numeric value')
end
value = value - tonumber(ARGV[1])
if value < 0 then
    value = 0
end
redis.call('SET', KEYS[1], value, 'KEEPTTL')
return value
"""


class RedisCacheClient(CacheClient):
    """
    Redis transport with memcached semantics.

    Notes:
    - Keys are used as given; sites already namespace them.
    - Values are stored as the transcoder's bytes.
    - Batch deletes are chunked to keep single DEL calls reasonable.
    """

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 10,
        socket_timeout: float = 1.0,
        native_transcoder: Transcoder | None = None,
    ) -> None:
        """
        Initialize Redis client.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            native_transcoder: Transcoder used when none is passed (JSON by default)
        """
        if not redis_url:
            raise ValueError("redis_url is required")

        self._native = native_transcoder or JsonTranscoder()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        # Lazy connection; connects on first command
        self._client = Redis.from_url(  # type: ignore[call-overload]
            url=redis_url,
            decode_responses=False,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )
        self._incr_script = self._client.register_script(_INCR_SCRIPT)
        self._decr_script = self._client.register_script(_DECR_SCRIPT)

    @property
    def native_transcoder(self) -> Transcoder:
        return self._native

    # ------------ Helpers ------------

    @asynccontextmanager
    async def _translate_errors(self, operation: str, **details: Any) -> AsyncIterator[None]:
        """Turn redis-py errors into cachewise transport errors."""
        try:
            yield
        except RedisTimeoutError as e:
            raise CacheTimeoutError(operation, details=details) from e
        except RedisError as e:
            raise CacheTransportError(operation, str(e), details=details) from e

    @staticmethod
    def _expiry_kwargs(expiration: int) -> dict[str, int]:
        """SET keyword arguments for a memcached expiration."""
        if expiration <= 0:
            return {}
        if expiration <= MAX_RELATIVE_EXPIRATION:
            return {"ex": expiration}
        return {"exat": expiration}

    # ------------ Core Interface ------------

    async def get(self, key: str, transcoder: Transcoder | None = None) -> Any | None:
        """Retrieve a value by key."""
        async with self._translate_errors("get", key=key):
            raw = await self._client.get(key)

        if raw is None:
            self._misses += 1
            return None

        self._hits += 1
        return decode_payload(transcoder or self._native, CachedData(raw), key)

    async def get_bulk(self, keys: Iterable[str], transcoder: Transcoder | None = None) -> dict[str, Any]:
        """
        Retrieve multiple values in one round-trip using MGET.
        Missing keys are omitted from the result.
        """
        keys = list(keys)
        if not keys:
            return {}

        async with self._translate_errors("get_bulk", key_count=len(keys)):
            values = await self._client.mget(keys)

        transcoder = transcoder or self._native
        result: dict[str, Any] = {}
        # mget preserves order
        for key, raw in zip(keys, values, strict=True):
            if raw is None:
                self._misses += 1
                continue
            self._hits += 1
            result[key] = decode_payload(transcoder, CachedData(raw), key)

        return result

    async def set(self, key: str, expiration: int, value: Any, transcoder: Transcoder | None = None) -> bool:
        """Store a value."""
        payload = encode_payload(transcoder or self._native, value, key)

        async with self._translate_errors("set", key=key, expiration=expiration):
            res = await self._client.set(key, payload.data, **self._expiry_kwargs(expiration))

        success = bool(res)
        if success:
            self._sets += 1
        return success

    async def add(self, key: str, expiration: int, value: Any, transcoder: Transcoder | None = None) -> bool:
        """Store a value only if the key is absent (SET NX)."""
        payload = encode_payload(transcoder or self._native, value, key)

        async with self._translate_errors("add", key=key, expiration=expiration):
            res = await self._client.set(key, payload.data, nx=True, **self._expiry_kwargs(expiration))

        added = bool(res)
        if added:
            self._sets += 1
        return added

    async def delete(self, key: str) -> bool:
        """Delete a single key."""
        async with self._translate_errors("delete", key=key):
            deleted = await self._client.delete(key)

        if deleted:
            self._deletes += 1
        return bool(deleted)

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Delete multiple keys in chunks."""
        keys = list(keys)
        chunk_size = 1000

        async with self._translate_errors("delete_many", key_count=len(keys)):
            for i in range(0, len(keys), chunk_size):
                chunk = keys[i : i + chunk_size]
                self._deletes += int(await self._client.delete(*chunk))

    async def incr(self, key: str, by: int, default: int, expiration: int = 0) -> int:
        """Increment a counter; an absent key is created with the default."""
        mode = "at" if expiration > MAX_RELATIVE_EXPIRATION else "in"

        async with self._translate_errors("incr", key=key, by=by):
            value = await self._incr_script(keys=[key], args=[by, default, max(0, expiration), mode])

        return int(value)

    async def decr(self, key: str, by: int) -> int:
        """Decrement a counter, flooring at zero; -1 when absent."""
        async with self._translate_errors("decr", key=key, by=by):
            value = await self._decr_script(keys=[key], args=[by])

        return int(value)

    async def flush(self) -> None:
        """Flush the selected Redis database."""
        async with self._translate_errors("flush"):
            await self._client.flushdb()
        logger.info("Flushed Redis cache database")

    async def shutdown(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info("Closed Redis cache client")
        except Exception as e:
            logger.error(f"Error closing Redis client: {e}", extra={"error": str(e)}, exc_info=True)
        finally:
            try:
                await self._client.connection_pool.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting Redis connection pool: {e}", extra={"error": str(e)})

    async def get_stats(self) -> dict[str, Any]:
        """Return client statistics and basic Redis info."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": "redis",
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        try:
            stats["connected"] = bool(await self._client.ping())
            info = await self._client.info(section="server")
            stats["redis_version"] = info.get("redis_version")
            stats["redis_mode"] = info.get("redis_mode")
        except RedisError as e:
            # INFO may be restricted; keep minimal stats
            logger.warning(f"Failed to get Redis INFO (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats
