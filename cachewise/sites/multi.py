"""
cachewise — Multi-Cache Coordinator

Bulk sites fan one list argument out into one key per element.

Read-through:
1. build a key per element (elements without a valid key are skipped or fail the call)
2. one bulk GET for the distinct keys
3. call the method once, with only the missed elements (first occurrence of each key)
4. pair missed elements with the produced values in order, store them best-effort
5. assemble a result list in the caller's order, duplicates sharing one value

With add_nulls_to_cache, values the method produced as None are stored as
tombstones with SET. Missed elements the method returned no value for (a
shorter result list) get tombstones too: SET when overwrite_no_nulls is on, ADD
otherwise. Without add_nulls_to_cache no tombstone is written.
"""

import logging
from collections.abc import Sequence
from typing import Any

from ..cache import Cache
from ..errors import CacheError, InvalidAnnotationError, InvalidKeyError, InvalidSiteError
from ..observability import ObservabilityAdapter, get_observability
from ..serialization import TOMBSTONE, is_tombstone
from .descriptor import MultiSettings, OperationDescriptor
from .invocation import Invocation
from .keys import KeyBuilder
from .single import update_data

logger = logging.getLogger(__name__)


class MultiCacheCoordinator:
    """Executes READ_MULTI, UPDATE_MULTI and INVALIDATE_MULTI sites."""

    def __init__(self, cache: Cache, keys: KeyBuilder, observability: ObservabilityAdapter | None = None):
        self.cache = cache
        self.keys = keys
        self.obs = observability or get_observability()

    def _tags(self, descriptor: OperationDescriptor) -> dict[str, str]:
        return {"namespace": descriptor.namespace, "kind": descriptor.kind.value}

    # ------------ Read-through ------------

    async def read(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        options = _options(descriptor)
        fan = descriptor.fan_component
        elements = _fan_elements(descriptor, invocation)

        if not elements:
            return await invocation.proceed()

        keys = self.keys.fan_out_keys_lenient(descriptor, invocation, elements, options.skip_null_arguments)
        distinct = sorted({key for key in keys if key is not None})
        if not distinct:
            return [None] * len(elements)

        try:
            found = await self.cache.get_bulk(distinct, descriptor.serialization)
        except CacheError as e:
            logger.warning(
                f"Bulk read failed for {descriptor.method}, computing all {len(elements)} elements: {e.message}",
                extra={"site": descriptor.method, "key_count": len(distinct), "error_code": e.code.value},
            )
            self.obs.increment("site.degraded", tags=self._tags(descriptor))
            return await invocation.proceed()

        missed_elements: list[Any] = []
        missed_keys: list[str] = []
        seen: set[str] = set()
        for element, key in zip(elements, keys, strict=True):
            if key is None or key in found or key in seen:
                continue
            seen.add(key)
            missed_elements.append(element)
            missed_keys.append(key)

        tombstones = sum(1 for value in found.values() if is_tombstone(value))
        tags = self._tags(descriptor)
        self.obs.increment("site.hit", len(found) - tombstones, tags=tags)
        self.obs.increment("site.tombstone", tombstones, tags=tags)
        self.obs.increment("site.miss", len(missed_keys), tags=tags)

        produced: dict[str, Any] = {}
        if missed_keys:
            values = await invocation.proceed({fan.position: missed_elements})
            values = _as_list(descriptor, values, "result")
            if len(values) > len(missed_keys):
                raise InvalidAnnotationError(
                    f"{descriptor.method} returned {len(values)} values for {len(missed_keys)} requested elements",
                    details={"site": descriptor.method, "requested": len(missed_keys), "returned": len(values)},
                )
            produced = dict(zip(missed_keys[: len(values)], values, strict=True))
            unproduced = missed_keys[len(values) :]
            if unproduced:
                logger.debug(
                    f"{descriptor.method} returned no value for {len(unproduced)} of {len(missed_keys)} requested elements",
                    extra={"site": descriptor.method, "unproduced": len(unproduced)},
                )

            await self._store_values(descriptor, produced, nulls_as_tombstones=options.add_nulls_to_cache)
            await self._store_tombstones(descriptor, options, unproduced)
        else:
            logger.debug(f"All {len(distinct)} keys of {descriptor.method} served from cache")

        result = []
        for key in keys:
            if key is None:
                result.append(None)
            elif key in found:
                value = found[key]
                result.append(None if is_tombstone(value) else value)
            else:
                result.append(produced.get(key))
        return result

    # ------------ Update / invalidate ------------

    async def update(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        options = _options(descriptor)
        result = await invocation.proceed()

        keys = self._target_keys(descriptor, invocation, options, result)
        data = _as_list(descriptor, update_data(descriptor, invocation, result), "update data")
        if len(keys) != len(data):
            raise InvalidAnnotationError(
                f"{descriptor.method} has {len(keys)} keys but {len(data)} values to store",
                details={"site": descriptor.method, "keys": len(keys), "values": len(data)},
            )

        pairs: dict[str, Any] = {}
        for key, value in zip(keys, data, strict=True):
            if key is not None:
                pairs[key] = value

        if options.generate_keys_from_return:
            pairs = {key: value for key, value in pairs.items() if value is not None}
        await self._store_values(descriptor, pairs)
        await self._store_tombstones(descriptor, options, [key for key, value in pairs.items() if value is None])
        return result

    async def invalidate(self, descriptor: OperationDescriptor, invocation: Invocation) -> Any:
        options = _options(descriptor)
        result = await invocation.proceed()

        keys = self._target_keys(descriptor, invocation, options, result)
        for key in dict.fromkeys(key for key in keys if key is not None):
            await self.cache.delete_silently(key)
        return result

    # ------------ Helpers ------------

    def _target_keys(
        self,
        descriptor: OperationDescriptor,
        invocation: Invocation,
        options: MultiSettings,
        result: Any,
    ) -> list[str | None]:
        if options.generate_keys_from_return:
            return self.keys.return_list_keys(descriptor, _as_list(descriptor, result, "result"))
        elements = _fan_elements(descriptor, invocation)
        return self.keys.fan_out_keys_lenient(descriptor, invocation, elements, options.skip_null_arguments)

    async def _store_values(self, descriptor: OperationDescriptor, pairs: dict[str, Any], nulls_as_tombstones: bool = False) -> None:
        for key, value in pairs.items():
            if value is None:
                if not nulls_as_tombstones:
                    continue
                value = TOMBSTONE
            await self.cache.set_silently(key, descriptor.expiration, value, descriptor.serialization)

    async def _store_tombstones(self, descriptor: OperationDescriptor, options: MultiSettings, keys: list[str]) -> None:
        """Tombstones for keys left without a value: SET with overwrite_no_nulls, ADD otherwise."""
        if not options.add_nulls_to_cache:
            return

        for key in keys:
            if options.overwrite_no_nulls:
                await self.cache.set_silently(key, descriptor.expiration, TOMBSTONE, descriptor.serialization)
            else:
                await self.cache.add_silently(key, descriptor.expiration, TOMBSTONE, descriptor.serialization)


def _options(descriptor: OperationDescriptor) -> MultiSettings:
    if descriptor.multi_options is None:
        raise InvalidSiteError(f"Site {descriptor.method} is not a multi site", details={"site": descriptor.method})
    return descriptor.multi_options


def _fan_elements(descriptor: OperationDescriptor, invocation: Invocation) -> list[Any]:
    fan = descriptor.fan_component
    if fan is None:
        raise InvalidKeyError(f"Site {descriptor.method} has no fan-out parameter", details={"site": descriptor.method})

    elements = invocation.argument(fan.position)
    if elements is None:
        raise InvalidKeyError(f"Fan-out argument '{fan.name}' of {descriptor.method} is None", details={"site": descriptor.method})
    return _as_list(descriptor, elements, f"argument '{fan.name}'")


def _as_list(descriptor: OperationDescriptor, value: Any, what: str) -> list[Any]:
    if value is None or isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise InvalidAnnotationError(
            f"{what.capitalize()} of {descriptor.method} must be a list, got {type(value).__name__}",
            details={"site": descriptor.method},
        )
    return list(value)
