"""
cachewise — Operation Descriptors

The resolved, validated form of a CacheSite for one concrete method.
Key and update sources are small tagged variants; executors branch on them
with isinstance.
"""

import inspect
from dataclasses import dataclass

from ..config import SerializationType
from .declarations import OperationKind


@dataclass(frozen=True)
class KeyComponent:
    """One parameter contributing to the key."""

    position: int
    name: str
    order: int
    path: str | None = None


@dataclass(frozen=True)
class ParamValues:
    """Key built from parameter values, components sorted by order."""

    components: tuple[KeyComponent, ...]


@dataclass(frozen=True)
class ReturnValue:
    """Key built from the return value."""

    path: str | None = None


@dataclass(frozen=True)
class ReturnListOfIds:
    """Keys built from each element of the returned list."""

    path: str | None = None


@dataclass(frozen=True)
class Assigned:
    """Literal key."""

    literal: str


KeySource = ParamValues | ReturnValue | ReturnListOfIds | Assigned


@dataclass(frozen=True)
class ReturnValueUpdate:
    """Cached data is the return value."""


@dataclass(frozen=True)
class ParamUpdate:
    """Cached data is one argument."""

    position: int
    name: str


@dataclass(frozen=True)
class NoUpdate:
    """Site stores no data."""


UpdateSource = ReturnValueUpdate | ParamUpdate | NoUpdate


@dataclass(frozen=True)
class MultiSettings:
    """Resolved options of a multi site."""

    fan_param_index: int | None
    generate_keys_from_return: bool
    add_nulls_to_cache: bool
    overwrite_no_nulls: bool
    skip_null_arguments: bool


@dataclass(frozen=True)
class OperationDescriptor:
    """Immutable description of one cache site bound to one method."""

    kind: OperationKind
    namespace: str
    expiration: int
    key_source: KeySource
    update_source: UpdateSource
    serialization: SerializationType | None
    multi_options: MultiSettings | None
    delta: int
    method: str
    signature: inspect.Signature

    @property
    def fan_component(self) -> KeyComponent | None:
        """Key component holding the fanned-out list, if any."""
        if self.multi_options is None or self.multi_options.fan_param_index is None:
            return None
        if not isinstance(self.key_source, ParamValues):
            return None
        for component in self.key_source.components:
            if component.position == self.multi_options.fan_param_index:
                return component
        return None
