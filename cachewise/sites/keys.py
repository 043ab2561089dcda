"""
cachewise — Cache Key Builder

Builds ``"<namespace>:<component_0>[/<component_1>...]"`` keys.

Rendering rules per component:
- None, or an empty string, is an invalid key
- str renders as itself, bool/int/float/Decimal in their natural form
- anything else needs a stringifier: one registered for its type, or a
  ``cache_key()`` method on the object returning a non-empty string
- a dotted path is resolved (attributes, or items of mappings) before rendering

Rendering is a pure function of its input, so equal inputs give equal keys.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from typing import Any

from ..errors import InvalidKeyError
from .descriptor import Assigned, OperationDescriptor, ParamValues, ReturnListOfIds, ReturnValue
from .invocation import Invocation

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "/"
NAMESPACE_SEPARATOR = ":"

_MISSING = object()


class KeyBuilder:
    """Deterministic key construction for cache sites."""

    def __init__(
        self,
        max_key_length: int = 250,
        stringifiers: dict[type, Callable[[Any], str]] | None = None,
    ):
        self.max_key_length = max_key_length
        self._stringifiers: dict[type, Callable[[Any], str]] = dict(stringifiers or {})

    def register_stringifier(self, cls: type, stringifier: Callable[[Any], str]) -> None:
        """Render instances of cls (and subclasses) with the given function."""
        self._stringifiers[cls] = stringifier

    # ------------ Components ------------

    def render(self, value: Any) -> str:
        """
        Render one key component.

        Raises:
            InvalidKeyError: If the value is None, empty, or has no stringifier
        """
        if value is None:
            raise InvalidKeyError("Key component is None")

        if isinstance(value, str):
            text = str.__str__(value)
            if not text:
                raise InvalidKeyError("Key component is an empty string")
            return text

        if isinstance(value, (bool, int, float, Decimal)):
            return str(value)

        stringifier = self._stringifier_for(type(value))
        if stringifier is not None:
            return self._checked(stringifier(value), value)

        cache_key = getattr(value, "cache_key", None)
        if callable(cache_key):
            return self._checked(cache_key(), value)

        raise InvalidKeyError(
            f"No key stringifier for {type(value).__qualname__}; define cache_key() or register one",
            details={"type": type(value).__qualname__},
        )

    def resolve_path(self, value: Any, path: str | None) -> Any:
        """
        Follow a dotted path into a value.

        Raises:
            InvalidKeyError: If an intermediate value is None or lacks the property
        """
        if not path:
            return value

        current = value
        for part in path.split("."):
            if current is None:
                raise InvalidKeyError(f"Cannot resolve '{path}': '{part}' reached through None", details={"path": path})
            try:
                if isinstance(current, Mapping):
                    current = current[part]
                else:
                    current = getattr(current, part)
            except (KeyError, AttributeError) as e:
                raise InvalidKeyError(
                    f"Cannot resolve '{path}' on {type(value).__qualname__}: missing '{part}'",
                    details={"path": path, "missing": part},
                ) from e
        return current

    def component(self, value: Any, path: str | None = None) -> str:
        return self.render(self.resolve_path(value, path))

    # ------------ Keys ------------

    def build(self, namespace: str, components: Sequence[str]) -> str:
        """Join rendered components under a namespace and validate the result."""
        return self._validated(namespace + NAMESPACE_SEPARATOR + KEY_SEPARATOR.join(components))

    def assigned(self, namespace: str, literal: str) -> str:
        return self._validated(namespace + NAMESPACE_SEPARATOR + literal)

    def key_for_object(self, namespace: str, value: Any, path: str | None = None) -> str:
        """Key for a single key object (return value, or one element of a returned list)."""
        return self.build(namespace, [self.component(value, path)])

    def cache_key(self, descriptor: OperationDescriptor, invocation: Invocation, result: Any = _MISSING) -> str:
        """
        Key of a scalar site.

        Args:
            descriptor: Site descriptor
            invocation: Current call
            result: Return value, required for return-keyed sites

        Raises:
            InvalidKeyError: If any component cannot be rendered
        """
        source = descriptor.key_source

        if isinstance(source, Assigned):
            return self.assigned(descriptor.namespace, source.literal)

        if isinstance(source, ParamValues):
            parts = [self.component(invocation.argument(c.position), c.path) for c in source.components]
            return self.build(descriptor.namespace, parts)

        if isinstance(source, ReturnValue):
            if result is _MISSING:
                raise InvalidKeyError("Return-keyed site has no return value yet", details={"site": descriptor.method})
            return self.key_for_object(descriptor.namespace, result, source.path)

        raise InvalidKeyError(f"Site {descriptor.method} does not have a scalar key", details={"site": descriptor.method})

    def fan_out_keys(self, descriptor: OperationDescriptor, invocation: Invocation, elements: Sequence[Any]) -> list[str]:
        """
        One key per element of the fanned-out list, in input order.

        Components other than the list are rendered once and shared.

        Raises:
            InvalidKeyError: If an element (or a shared component) cannot be rendered
        """
        keys = self.fan_out_keys_lenient(descriptor, invocation, elements, skip_invalid=False)
        return [key for key in keys if key is not None]

    def fan_out_keys_lenient(
        self,
        descriptor: OperationDescriptor,
        invocation: Invocation,
        elements: Sequence[Any],
        skip_invalid: bool,
    ) -> list[str | None]:
        """Like fan_out_keys, but elements with invalid keys map to None when skip_invalid is set."""
        source = descriptor.key_source
        fan = descriptor.fan_component
        if not isinstance(source, ParamValues) or fan is None:
            raise InvalidKeyError(f"Site {descriptor.method} has no fan-out parameter", details={"site": descriptor.method})

        shared = {
            c.position: self.component(invocation.argument(c.position), c.path)
            for c in source.components
            if c.position != fan.position
        }

        keys: list[str | None] = []
        for element in elements:
            try:
                parts = [
                    self.component(element, c.path) if c.position == fan.position else shared[c.position]
                    for c in source.components
                ]
                keys.append(self.build(descriptor.namespace, parts))
            except InvalidKeyError:
                if not skip_invalid:
                    raise
                logger.debug(f"Skipping element without a valid key at {descriptor.method}")
                keys.append(None)
        return keys

    def return_list_keys(self, descriptor: OperationDescriptor, elements: Sequence[Any]) -> list[str | None]:
        """One key per element of a returned list of ids; None elements have no key."""
        source = descriptor.key_source
        path = source.path if isinstance(source, ReturnListOfIds) else None
        return [None if element is None else self.key_for_object(descriptor.namespace, element, path) for element in elements]

    # ------------ Helpers ------------

    def _stringifier_for(self, cls: type) -> Callable[[Any], str] | None:
        for base in cls.__mro__:
            stringifier = self._stringifiers.get(base)
            if stringifier is not None:
                return stringifier
        return None

    @staticmethod
    def _checked(text: Any, value: Any) -> str:
        if not isinstance(text, str) or not text:
            raise InvalidKeyError(
                f"Stringifier for {type(value).__qualname__} returned {text!r}, expected a non-empty string",
                details={"type": type(value).__qualname__},
            )
        return text

    def _validated(self, key: str) -> str:
        for ch in key:
            if ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F:
                raise InvalidKeyError(
                    f"Cache key contains whitespace or control characters: {key!r}",
                    details={"key": key},
                )

        if len(key.encode("utf-8")) > self.max_key_length:
            raise InvalidKeyError(
                f"Cache key exceeds {self.max_key_length} bytes",
                details={"key": key[:100], "max_key_length": self.max_key_length},
            )

        return key
