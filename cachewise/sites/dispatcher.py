"""
cachewise — Site Dispatcher

Entry point of the caching layer. Decorators attach a CacheSite to a method;
every call goes through SiteDispatcher.invoke, which:

1. short-circuits to the method when caching is disabled
2. looks up (or builds once) the descriptor of the site
3. hands the call to the single executor or the multi coordinator

Descriptors are memoised per (method, kind). A site that fails validation
memoises its failure and raises it on every later call.

Usage:
    dispatcher = SiteDispatcher(create_cache(config), config)

    class UserRepository:
        @dispatcher.read_through_single("user", key="user_id", expiration=3600)
        async def get_user(self, user_id: int) -> User | None:
            ...

        @dispatcher.read_through_multi("user", key="user_ids", expiration=3600)
        async def get_users(self, user_ids: list[int]) -> list[User | None]:
            ...
"""

import functools
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from ..cache import Cache
from ..config import CachewiseConfig, SerializationType, get_config
from ..errors import InvalidSiteError
from ..observability import ObservabilityAdapter, get_observability, site_context
from .builder import DescriptorBuilder, method_identity
from .declarations import CacheSite, KeyParam, MultiOptions, OperationKind, ReturnKey, normalize_key_params
from .descriptor import OperationDescriptor
from .invocation import Invocation
from .keys import KeyBuilder
from .multi import MultiCacheCoordinator
from .single import SingleCacheExecutor

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)

KeySpec = str | int | KeyParam | list[str | int | KeyParam] | tuple[str | int | KeyParam, ...] | None

# Attribute carrying the site on decorated callables
SITE_ATTRIBUTE = "__cache_site__"


class SiteDispatcher:
    """Routes intercepted calls to the executor of their site."""

    def __init__(
        self,
        cache: Cache,
        config: CachewiseConfig | None = None,
        key_builder: KeyBuilder | None = None,
        observability: ObservabilityAdapter | None = None,
    ):
        self.cache = cache
        self._config = config
        self.keys = key_builder or KeyBuilder(max_key_length=self.config.max_key_length)
        self.builder = DescriptorBuilder(cache.transcoders)
        self.obs = observability or get_observability()
        self.single = SingleCacheExecutor(cache, self.keys, self.obs)
        self.multi = MultiCacheCoordinator(cache, self.keys, self.obs)

        self._descriptors: dict[tuple[str, OperationKind], OperationDescriptor | InvalidSiteError] = {}
        self._handlers: dict[OperationKind, Callable[[OperationDescriptor, Invocation], Awaitable[Any]]] = {
            OperationKind.READ_SINGLE: self.single.read,
            OperationKind.READ_ASSIGN: self.single.read,
            OperationKind.INVALIDATE_SINGLE: self.single.invalidate,
            OperationKind.INVALIDATE_ASSIGN: self.single.invalidate,
            OperationKind.UPDATE_SINGLE: self.single.update,
            OperationKind.UPDATE_ASSIGN: self.single.update,
            OperationKind.READ_COUNTER: self.single.read_counter,
            OperationKind.INCR_COUNTER: self.single.increment,
            OperationKind.DECR_COUNTER: self.single.decrement,
            OperationKind.UPDATE_COUNTER: self.single.update_counter,
            OperationKind.READ_MULTI: self.multi.read,
            OperationKind.UPDATE_MULTI: self.multi.update,
            OperationKind.INVALIDATE_MULTI: self.multi.invalidate,
        }

    @property
    def config(self) -> CachewiseConfig:
        """Settings in effect; read on every call so disable_cache applies immediately."""
        return self._config if self._config is not None else get_config()

    # ------------ Dispatch ------------

    def descriptor_for(self, site: CacheSite, func: Callable[..., Any]) -> OperationDescriptor:
        """
        Descriptor of a site, built on first use.

        Raises:
            InvalidSiteError: If the site is malformed (now or on its first use)
        """
        memo_key = (method_identity(func), site.kind)
        entry = self._descriptors.get(memo_key)

        if entry is None:
            try:
                entry = self.builder.build(site, func)
                logger.debug(f"Built {site.describe()} site for {memo_key[0]}")
            except InvalidSiteError as e:
                logger.error(e.message, extra={"error_code": e.code.value, "details": e.details})
                self.obs.increment("site.invalid", tags={"kind": site.kind.value})
                entry = e
            self._descriptors[memo_key] = entry

        if isinstance(entry, InvalidSiteError):
            raise entry.with_traceback(None)
        return entry

    async def invoke(
        self,
        site: CacheSite,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        """
        Run one intercepted call.

        Args:
            site: Site attached to the method
            func: The undecorated method
            args: Positional arguments, including self for methods
            kwargs: Keyword arguments

        Returns:
            What the caller observes: cached or computed value
        """
        if self.config.disable_cache:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result

        descriptor = self.descriptor_for(site, func)
        invocation = Invocation(func, descriptor.signature, args, kwargs)
        handler = self._handlers[descriptor.kind]

        with site_context(descriptor.method):
            return await handler(descriptor, invocation)

    def clear_descriptors(self) -> None:
        """Forget memoised descriptors and failures."""
        self._descriptors.clear()

    # ------------ Decorators ------------

    def decorate(self, site: CacheSite) -> Callable[[F], F]:
        """Attach a site to a callable; the wrapper is always a coroutine function."""

        def decorator(func: F) -> F:
            @functools.wraps(func)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                return await self.invoke(site, func, args, kwargs)

            setattr(wrapper, SITE_ATTRIBUTE, site)
            return wrapper  # type: ignore[return-value]

        return decorator

    def read_through_single(
        self,
        namespace: str,
        key: KeySpec,
        expiration: int = 0,
        serialization: SerializationType | None = None,
    ) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.READ_SINGLE,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
                serialization=serialization,
            )
        )

    def read_through_multi(
        self,
        namespace: str,
        key: KeySpec,
        expiration: int = 0,
        fan_out: str | int | None = None,
        add_nulls_to_cache: bool = False,
        overwrite_no_nulls: bool = False,
        skip_null_arguments: bool = False,
        serialization: SerializationType | None = None,
    ) -> Callable[[F], F]:
        """
        Bulk read-through over one list argument.

        Args:
            namespace: Key namespace
            key: Key parameters; the list parameter contributes one element per key
            expiration: memcached expiration of stored values
            fan_out: The list parameter, required when several key parameters are declared
            add_nulls_to_cache: Store tombstones for elements the method produced None for
            overwrite_no_nulls: Store those tombstones with set rather than add
            skip_null_arguments: Elements without a valid key yield None instead of failing
            serialization: Serialization strategy, the cache default when None
        """
        return self.decorate(
            CacheSite(
                kind=OperationKind.READ_MULTI,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
                fan_out=fan_out,
                options=MultiOptions(add_nulls_to_cache, overwrite_no_nulls, skip_null_arguments),
                serialization=serialization,
            )
        )

    def read_through_assign(
        self,
        namespace: str,
        assigned_key: str,
        expiration: int = 0,
        serialization: SerializationType | None = None,
    ) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.READ_ASSIGN,
                namespace=namespace,
                expiration=expiration,
                assigned_key=assigned_key,
                serialization=serialization,
            )
        )

    def invalidate_single(
        self,
        namespace: str,
        key: KeySpec = None,
        return_key: ReturnKey | None = None,
    ) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.INVALIDATE_SINGLE,
                namespace=namespace,
                key_params=normalize_key_params(key),
                return_key=return_key,
            )
        )

    def invalidate_multi(
        self,
        namespace: str,
        key: KeySpec = None,
        fan_out: str | int | None = None,
        keys_from_return: bool = False,
        return_key: ReturnKey | None = None,
        skip_null_arguments: bool = False,
    ) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.INVALIDATE_MULTI,
                namespace=namespace,
                key_params=normalize_key_params(key),
                fan_out=fan_out,
                keys_from_return=keys_from_return,
                return_key=return_key,
                options=MultiOptions(skip_null_arguments=skip_null_arguments),
            )
        )

    def invalidate_assign(self, namespace: str, assigned_key: str) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(kind=OperationKind.INVALIDATE_ASSIGN, namespace=namespace, assigned_key=assigned_key)
        )

    def update_single(
        self,
        namespace: str,
        key: KeySpec = None,
        return_key: ReturnKey | None = None,
        expiration: int = 0,
        data_param: str | int | None = None,
        serialization: SerializationType | None = None,
    ) -> Callable[[F], F]:
        """Store the return value (or data_param, when given) after the method ran."""
        return self.decorate(
            CacheSite(
                kind=OperationKind.UPDATE_SINGLE,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
                return_key=return_key,
                data_from_return=data_param is None,
                data_param=data_param,
                serialization=serialization,
            )
        )

    def update_multi(
        self,
        namespace: str,
        key: KeySpec = None,
        expiration: int = 0,
        fan_out: str | int | None = None,
        keys_from_return: bool = False,
        return_key: ReturnKey | None = None,
        data_param: str | int | None = None,
        add_nulls_to_cache: bool = False,
        overwrite_no_nulls: bool = False,
        skip_null_arguments: bool = False,
        serialization: SerializationType | None = None,
    ) -> Callable[[F], F]:
        """
        Store one value per key after the method ran.

        Keys come from the list parameter or, with keys_from_return, from the
        returned list itself. Values come from the returned list or data_param.
        """
        return self.decorate(
            CacheSite(
                kind=OperationKind.UPDATE_MULTI,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
                fan_out=fan_out,
                keys_from_return=keys_from_return,
                return_key=return_key,
                data_from_return=data_param is None,
                data_param=data_param,
                options=MultiOptions(add_nulls_to_cache, overwrite_no_nulls, skip_null_arguments),
                serialization=serialization,
            )
        )

    def update_assign(
        self,
        namespace: str,
        assigned_key: str,
        expiration: int = 0,
        data_param: str | int | None = None,
        serialization: SerializationType | None = None,
    ) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.UPDATE_ASSIGN,
                namespace=namespace,
                expiration=expiration,
                assigned_key=assigned_key,
                data_from_return=data_param is None,
                data_param=data_param,
                serialization=serialization,
            )
        )

    def read_counter(self, namespace: str, key: KeySpec, expiration: int = 0) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.READ_COUNTER,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
            )
        )

    def increment_counter(self, namespace: str, key: KeySpec, expiration: int = 0, by: int = 1) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.INCR_COUNTER,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
                delta=by,
            )
        )

    def decrement_counter(self, namespace: str, key: KeySpec, by: int = 1) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.DECR_COUNTER,
                namespace=namespace,
                key_params=normalize_key_params(key),
                delta=by,
            )
        )

    def update_counter(
        self,
        namespace: str,
        key: KeySpec,
        expiration: int = 0,
        data_param: str | int | None = None,
    ) -> Callable[[F], F]:
        return self.decorate(
            CacheSite(
                kind=OperationKind.UPDATE_COUNTER,
                namespace=namespace,
                expiration=expiration,
                key_params=normalize_key_params(key),
                data_from_return=data_param is None,
                data_param=data_param,
            )
        )

    # ------------ Interface sites ------------

    def inherit_sites(self, mappings: Mapping[str, str] | None = None) -> Callable[[C], C]:
        """
        Class decorator applying sites declared on base-class methods to their overrides.

        Key positions and names are resolved against the override's own
        signature. ``mappings`` maps a base method name to the name of the
        implementing method when they differ.

        Only active when enable_sites_in_interface is set.
        """
        mappings = dict(mappings or {})

        def decorator(cls: C) -> C:
            if not self.config.enable_sites_in_interface:
                logger.debug(f"Sites in interfaces are disabled, {cls.__qualname__} left as is")
                return cls

            for base in cls.__mro__[1:]:
                for name, attr in vars(base).items():
                    site = getattr(attr, SITE_ATTRIBUTE, None)
                    if site is None:
                        continue

                    target = mappings.get(name, name)
                    impl = cls.__dict__.get(target)
                    if impl is None or not callable(impl) or hasattr(impl, SITE_ATTRIBUTE):
                        continue

                    logger.debug(f"{cls.__qualname__}.{target} inherits {site.describe()} from {base.__qualname__}.{name}")
                    setattr(cls, target, self.decorate(site)(impl))

            return cls

        return decorator

