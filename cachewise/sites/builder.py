"""
cachewise — Descriptor Builder

Validates a CacheSite against the method it decorates and produces the
immutable OperationDescriptor the executors run on.

Checks performed:
- namespace is a non-empty string without whitespace, expiration a non-negative int
- the key source fits the operation kind (parameters, return value, returned
  list of ids, or an assigned literal)
- key component orders are unique and every parameter reference resolves
- multi sites have exactly one list source
- update sites have a data source; the return value wins over a parameter
- return annotations, when present, fit the kind (no None for reads,
  list for multi, int for counters)
- the requested serialization has a transcoder
"""

import collections.abc
import inspect
import types
import typing
from typing import Any

from ..errors import InvalidSiteError
from ..serialization import SerializationDispatcher
from .declarations import CacheSite, OperationKind
from .descriptor import (
    Assigned,
    KeyComponent,
    KeySource,
    MultiSettings,
    NoUpdate,
    OperationDescriptor,
    ParamUpdate,
    ParamValues,
    ReturnListOfIds,
    ReturnValue,
    ReturnValueUpdate,
    UpdateSource,
)

_EMPTY = inspect.Signature.empty
_LIST_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def method_identity(func: Any) -> str:
    """Stable name of a callable used to key the descriptor memo."""
    return f"{getattr(func, '__module__', '?')}.{getattr(func, '__qualname__', repr(func))}"


class DescriptorBuilder:
    """Turns (site, method) pairs into descriptors."""

    def __init__(self, transcoders: SerializationDispatcher):
        self.transcoders = transcoders

    def build(self, site: CacheSite, func: Any) -> OperationDescriptor:
        """
        Build the descriptor of a site.

        Raises:
            InvalidSiteError: If the declaration does not fit the method
        """
        method = method_identity(func)
        context = _SiteContext(site, method)

        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError) as e:
            raise context.error(f"cannot inspect signature: {e}") from e

        hints = _type_hints(func)
        return_annotation = hints.get("return", _EMPTY)

        self._check_basics(context)
        key_source, fan_index = self._key_source(context, signature)
        update_source = self._update_source(context, signature)
        self._check_return(context, return_annotation, key_source, update_source)
        if fan_index is not None:
            self._check_fan_param(context, signature, hints, fan_index)
        if isinstance(update_source, ParamUpdate) and site.kind == OperationKind.UPDATE_COUNTER:
            annotation = hints.get(update_source.name, _EMPTY)
            if not _fits(annotation, _is_int):
                raise context.error(f"counter data parameter '{update_source.name}' must be an int")

        serialization = None
        if not site.kind.is_counter:
            if not self.transcoders.is_available(site.serialization):
                raise context.error(
                    f"serialization {self.transcoders.effective(site.serialization).value} has no transcoder configured"
                )
            serialization = site.serialization

        multi = None
        if site.kind.is_multi:
            multi = MultiSettings(
                fan_param_index=fan_index,
                generate_keys_from_return=isinstance(key_source, ReturnListOfIds),
                add_nulls_to_cache=site.options.add_nulls_to_cache,
                overwrite_no_nulls=site.options.overwrite_no_nulls,
                skip_null_arguments=site.options.skip_null_arguments,
            )

        return OperationDescriptor(
            kind=site.kind,
            namespace=site.namespace,
            expiration=site.expiration,
            key_source=key_source,
            update_source=update_source,
            serialization=serialization,
            multi_options=multi,
            delta=site.delta,
            method=method,
            signature=signature,
        )

    # ------------ Checks ------------

    def _check_basics(self, context: "_SiteContext") -> None:
        site = context.site

        if not isinstance(site.namespace, str) or not site.namespace:
            raise context.error("namespace must be defined")
        if any(ch.isspace() for ch in site.namespace):
            raise context.error("namespace must not contain whitespace")

        if isinstance(site.expiration, bool) or not isinstance(site.expiration, int) or site.expiration < 0:
            raise context.error(f"expiration must be a non-negative int, got {site.expiration!r}")

        if site.kind in (OperationKind.INCR_COUNTER, OperationKind.DECR_COUNTER):
            if isinstance(site.delta, bool) or not isinstance(site.delta, int) or site.delta <= 0:
                raise context.error(f"counter delta must be a positive int, got {site.delta!r}")

    def _key_source(self, context: "_SiteContext", signature: inspect.Signature) -> tuple[KeySource, int | None]:
        site = context.site
        kind = site.kind
        has_params = bool(site.key_params)
        keys_from_return = site.return_key is not None or site.keys_from_return

        if kind.is_assign:
            if has_params or keys_from_return:
                raise context.error("assigned-key sites take no key parameters or return keys")
            if not isinstance(site.assigned_key, str) or not site.assigned_key:
                raise context.error("assigned key must be a non-empty string")
            return Assigned(site.assigned_key), None

        if site.assigned_key is not None:
            raise context.error("assigned key is only valid for assign sites")

        if site.fan_out is not None and not kind.is_multi:
            raise context.error("fan_out is only valid for multi sites")

        path = site.return_key.path if site.return_key is not None else None

        if kind in (OperationKind.READ_SINGLE, OperationKind.READ_MULTI) or kind.is_counter:
            if keys_from_return:
                raise context.error("keys cannot be derived from the return value here")
            if not has_params:
                raise context.error("at least one key parameter is required")
        elif has_params == keys_from_return:
            raise context.error("declare exactly one key source: key parameters or the return value")

        if keys_from_return:
            if kind.is_multi:
                return ReturnListOfIds(path), None
            return ReturnValue(path), None

        source = ParamValues(self._components(context, signature))
        fan_index = None
        if kind.is_multi:
            fan_index = self._fan_index(context, signature, source)
        return source, fan_index

    def _components(self, context: "_SiteContext", signature: inspect.Signature) -> tuple[KeyComponent, ...]:
        components = []
        seen_orders: set[int] = set()

        for key_param in context.site.key_params:
            if key_param.order in seen_orders:
                raise context.error(f"two key parameters share order {key_param.order}")
            seen_orders.add(key_param.order)

            position, name = _resolve_param(context, signature, key_param.param)
            components.append(KeyComponent(position=position, name=name, order=key_param.order, path=key_param.path))

        return tuple(sorted(components, key=lambda c: c.order))

    def _fan_index(self, context: "_SiteContext", signature: inspect.Signature, source: ParamValues) -> int:
        fan_out = context.site.fan_out
        if fan_out is None:
            positions = {c.position for c in source.components}
            if len(positions) != 1:
                raise context.error("fan_out must name the list parameter when several key parameters are declared")
            return positions.pop()

        position, name = _resolve_param(context, signature, fan_out)
        if position not in {c.position for c in source.components}:
            raise context.error(f"fan_out parameter '{name}' is not a key parameter")
        return position

    def _update_source(self, context: "_SiteContext", signature: inspect.Signature) -> UpdateSource:
        site = context.site

        if not site.kind.is_update:
            if site.data_from_return or site.data_param is not None:
                raise context.error("only update sites take a data source")
            return NoUpdate()

        if site.data_from_return:
            # Return value wins over a parameter
            return ReturnValueUpdate()

        if site.data_param is not None:
            position, name = _resolve_param(context, signature, site.data_param)
            return ParamUpdate(position=position, name=name)

        raise context.error("update sites need data_from_return or data_param")

    def _check_return(
        self,
        context: "_SiteContext",
        annotation: Any,
        key_source: KeySource,
        update_source: UpdateSource,
    ) -> None:
        kind = context.site.kind
        returns_data = isinstance(update_source, ReturnValueUpdate)
        returns_key = isinstance(key_source, (ReturnValue, ReturnListOfIds))

        if kind in (OperationKind.READ_SINGLE, OperationKind.READ_ASSIGN) or returns_data or returns_key:
            if _is_void(annotation):
                raise context.error("method must return a value")

        if kind == OperationKind.READ_MULTI or (kind == OperationKind.UPDATE_MULTI and returns_data) or (
            kind.is_multi and returns_key
        ):
            if _is_void(annotation) or not _fits(annotation, _is_list):
                raise context.error("multi site method must return a list")

        if kind == OperationKind.READ_COUNTER or (kind == OperationKind.UPDATE_COUNTER and returns_data):
            if _is_void(annotation) or not _fits(annotation, _is_int):
                raise context.error("counter method must return an int")

        if kind in (OperationKind.INCR_COUNTER, OperationKind.DECR_COUNTER):
            if _is_void(annotation) or not _fits(annotation, _is_int):
                raise context.error("counter method must return an int")

    def _check_fan_param(
        self,
        context: "_SiteContext",
        signature: inspect.Signature,
        hints: dict[str, Any],
        fan_index: int,
    ) -> None:
        name = list(signature.parameters)[fan_index]
        if not _fits(hints.get(name, _EMPTY), _is_list):
            raise context.error(f"fan-out parameter '{name}' must be a list")


class _SiteContext:
    """Site being built plus the method it belongs to, for error messages."""

    def __init__(self, site: CacheSite, method: str):
        self.site = site
        self.method = method

    def error(self, reason: str) -> InvalidSiteError:
        return InvalidSiteError(
            f"Invalid {self.site.kind.value} site on {self.method}: {reason}",
            details={"site": self.method, "kind": self.site.kind.value, "namespace": self.site.namespace},
        )


def _resolve_param(context: _SiteContext, signature: inspect.Signature, ref: str | int) -> tuple[int, str]:
    names = list(signature.parameters)

    if isinstance(ref, bool) or not isinstance(ref, (str, int)):
        raise context.error(f"parameter reference must be a name or position, got {ref!r}")

    if isinstance(ref, int):
        if not 0 <= ref < len(names):
            raise context.error(f"parameter position {ref} is out of range")
        position, name = ref, names[ref]
    else:
        if ref not in signature.parameters:
            raise context.error(f"no parameter named '{ref}'")
        position, name = names.index(ref), ref

    if signature.parameters[name].kind in _VARIADIC:
        raise context.error(f"parameter '{name}' is variadic and cannot be referenced")

    return position, name


def _type_hints(func: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func)
    except Exception:
        # Unresolvable forward references: skip annotation checks
        return {}


def _is_void(annotation: Any) -> bool:
    return annotation is None or annotation is type(None)


def _fits(annotation: Any, predicate: Any) -> bool:
    """True when the annotation is absent, Any, or (every non-None member of a union) satisfies predicate."""
    if annotation is _EMPTY or annotation is typing.Any:
        return True

    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        return bool(members) and all(_fits(arg, predicate) for arg in members)

    if origin is typing.Annotated:
        return _fits(typing.get_args(annotation)[0], predicate)

    return predicate(annotation)


def _is_list(annotation: Any) -> bool:
    origin = typing.get_origin(annotation) or annotation
    return origin in _LIST_ORIGINS


def _is_int(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, int) and annotation is not bool
