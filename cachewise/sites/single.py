"""
cachewise — Single-Operation Executor

Runs the scalar site kinds against the cache facade:

- read-through (single and assigned keys): GET, tombstone means None, miss
  computes and stores
- invalidate: compute, then delete
- update: compute, then store the return value or an argument
- counters: read with seeding, increment, decrement, overwrite

Writes after the method ran are best-effort. Reads that fail at the
transport fall back to calling the method.
"""

import logging
from decimal import Decimal
from typing import Any

from ..cache import Cache
from ..errors import CacheError, InvalidSiteError
from ..observability import ObservabilityAdapter, get_observability
from ..serialization import from_cached, is_tombstone, to_submission
from .descriptor import OperationDescriptor, ParamUpdate, ReturnValueUpdate
from .invocation import Invocation
from .keys import KeyBuilder

logger = logging.getLogger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def update_data(descriptor: OperationDescriptor, invocation: Invocation, result: Any) -> Any:
    """Value an update site stores: the return value or one argument."""
    source = descriptor.update_source
    if isinstance(source, ReturnValueUpdate):
        return result
    if isinstance(source, ParamUpdate):
        return invocation.argument(source.position)
    raise InvalidSiteError(f"Site {descriptor.method} has no update source", details={"site": descriptor.method})


def as_counter(value: Any) -> int | None:
    """Coerce a numeric value to a 64-bit counter, None when it is not one."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    try:
        counter = int(value)
    except (ValueError, OverflowError):
        return None
    if not INT64_MIN <= counter <= INT64_MAX:
        return None
    return counter


class SingleCacheExecutor:
    """Executes scalar and counter sites."""

    def __init__(self, cache: Cache, keys: KeyBuilder, observability: ObservabilityAdapter | None = None):
        self.cache = cache
        self.keys = keys
        self.obs = observability or get_observability()

    def _tags(self, descriptor: OperationDescriptor) -> dict[str, str]:
        return {"namespace": descriptor.namespace, "kind": descriptor.kind.value}

    def _degraded(self, descriptor: OperationDescriptor, key: str, error: CacheError) -> None:
        logger.warning(
            f"Cache read failed for {key}, calling {descriptor.method} directly: {error.message}",
            extra={"key": key, "site": descriptor.method, "error_code": error.code.value},
        )
        self.obs.increment("site.degraded", tags=self._tags(descriptor))

    # ------------ Scalar sites ------------

    async def read(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """READ_SINGLE and READ_ASSIGN."""
        key = self.keys.cache_key(descriptor, invocation)

        try:
            cached = await self.cache.get(key, descriptor.serialization)
        except CacheError as e:
            self._degraded(descriptor, key, e)
            return await invocation.proceed()

        if cached is not None:
            if is_tombstone(cached):
                self.obs.increment("site.tombstone", tags=self._tags(descriptor))
                logger.debug(f"Tombstone hit for {key}")
            else:
                self.obs.increment("site.hit", tags=self._tags(descriptor))
            return from_cached(cached)

        self.obs.increment("site.miss", tags=self._tags(descriptor))
        result = await invocation.proceed()
        await self.cache.set_silently(key, descriptor.expiration, to_submission(result), descriptor.serialization)
        return result

    async def invalidate(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """INVALIDATE_SINGLE and INVALIDATE_ASSIGN."""
        result = await invocation.proceed()
        key = self.keys.cache_key(descriptor, invocation, result)
        await self.cache.delete_silently(key)
        return result

    async def update(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """UPDATE_SINGLE and UPDATE_ASSIGN."""
        result = await invocation.proceed()
        key = self.keys.cache_key(descriptor, invocation, result)
        data = update_data(descriptor, invocation, result)
        await self.cache.set_silently(key, descriptor.expiration, to_submission(data), descriptor.serialization)
        return result

    # ------------ Counters ------------

    async def read_counter(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """Counter GET; on a miss compute the value and seed the counter with it."""
        key = self.keys.cache_key(descriptor, invocation)

        try:
            counter = await self.cache.get_counter(key)
        except CacheError as e:
            self._degraded(descriptor, key, e)
            return await invocation.proceed()

        if counter is not None:
            self.obs.increment("site.hit", tags=self._tags(descriptor))
            return int(counter)

        self.obs.increment("site.miss", tags=self._tags(descriptor))
        result = await invocation.proceed()

        seed = as_counter(result)
        if seed is None:
            logger.warning(
                f"{descriptor.method} returned a non-numeric value, counter {key} not seeded",
                extra={"key": key, "site": descriptor.method},
            )
            return result

        await self.cache.incr_silently(key, 0, seed, descriptor.expiration)
        return seed

    async def increment(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """INCR by the site delta; an absent counter starts at the delta."""
        key = self.keys.cache_key(descriptor, invocation)
        try:
            return await self.cache.incr(key, descriptor.delta, descriptor.delta, descriptor.expiration)
        except CacheError as e:
            self._degraded(descriptor, key, e)
            return await invocation.proceed()

    async def decrement(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """DECR by the site delta; -1 when the counter is absent."""
        key = self.keys.cache_key(descriptor, invocation)
        try:
            return await self.cache.decr(key, descriptor.delta)
        except CacheError as e:
            self._degraded(descriptor, key, e)
            return await invocation.proceed()

    async def update_counter(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        """Compute, then overwrite the counter with the update value."""
        result = await invocation.proceed()
        key = self.keys.cache_key(descriptor, invocation, result)

        counter = as_counter(update_data(descriptor, invocation, result))
        if counter is None:
            logger.warning(
                f"Update value of {descriptor.method} is not numeric, counter {key} left unchanged",
                extra={"key": key, "site": descriptor.method},
            )
            return result

        await self.cache.set_counter_silently(key, descriptor.expiration, counter)
        return result
