"""
cachewise — Site Declarations

A CacheSite is the declarative description attached to one method: which
operation to perform, under which namespace, and where the key and the data
come from. It is deliberately loose; the descriptor builder validates it
against the method's signature on first use.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..config import SerializationType


class OperationKind(str, Enum):
    """Operation performed at a cache site."""

    READ_SINGLE = "read_single"
    READ_MULTI = "read_multi"
    READ_ASSIGN = "read_assign"
    INVALIDATE_SINGLE = "invalidate_single"
    INVALIDATE_MULTI = "invalidate_multi"
    INVALIDATE_ASSIGN = "invalidate_assign"
    UPDATE_SINGLE = "update_single"
    UPDATE_MULTI = "update_multi"
    UPDATE_ASSIGN = "update_assign"
    READ_COUNTER = "read_counter"
    INCR_COUNTER = "incr_counter"
    DECR_COUNTER = "decr_counter"
    UPDATE_COUNTER = "update_counter"

    @property
    def is_multi(self) -> bool:
        return self in _MULTI_KINDS

    @property
    def is_assign(self) -> bool:
        return self in _ASSIGN_KINDS

    @property
    def is_counter(self) -> bool:
        return self in _COUNTER_KINDS

    @property
    def is_update(self) -> bool:
        return self in _UPDATE_KINDS


_MULTI_KINDS = frozenset((OperationKind.READ_MULTI, OperationKind.INVALIDATE_MULTI, OperationKind.UPDATE_MULTI))
_ASSIGN_KINDS = frozenset((OperationKind.READ_ASSIGN, OperationKind.INVALIDATE_ASSIGN, OperationKind.UPDATE_ASSIGN))
_COUNTER_KINDS = frozenset(
    (
        OperationKind.READ_COUNTER,
        OperationKind.INCR_COUNTER,
        OperationKind.DECR_COUNTER,
        OperationKind.UPDATE_COUNTER,
    )
)
_UPDATE_KINDS = frozenset(
    (
        OperationKind.UPDATE_SINGLE,
        OperationKind.UPDATE_MULTI,
        OperationKind.UPDATE_ASSIGN,
        OperationKind.UPDATE_COUNTER,
    )
)


@dataclass(frozen=True)
class KeyParam:
    """
    Marks a parameter as a key component.

    Args:
        param: Parameter name, or position in the signature (``self`` counts)
        order: Position of the component in the key; unique per site
        path: Dotted attribute/item path selecting a nested value
    """

    param: str | int
    order: int = 0
    path: str | None = None


@dataclass(frozen=True)
class ReturnKey:
    """Marks the return value (or a nested value of it) as the key source."""

    path: str | None = None


@dataclass(frozen=True)
class MultiOptions:
    """
    Options of multi sites.

    Args:
        add_nulls_to_cache: Write tombstones for inputs that produced no value
        overwrite_no_nulls: Write those tombstones with set instead of add
        skip_null_arguments: Inputs without a valid key get None instead of failing the call
    """

    add_nulls_to_cache: bool = False
    overwrite_no_nulls: bool = False
    skip_null_arguments: bool = False


@dataclass(frozen=True)
class CacheSite:
    """One declarative cache operation attached to one method."""

    kind: OperationKind
    namespace: str
    expiration: int = 0
    key_params: tuple[KeyParam, ...] = ()
    return_key: ReturnKey | None = None
    assigned_key: str | None = None
    fan_out: str | int | None = None
    keys_from_return: bool = False
    data_from_return: bool = False
    data_param: str | int | None = None
    options: MultiOptions = field(default_factory=MultiOptions)
    serialization: SerializationType | None = None
    delta: int = 1

    def describe(self) -> str:
        return f"{self.kind.value}[{self.namespace}]"


def normalize_key_params(key: "str | int | KeyParam | list[str | int | KeyParam] | tuple | None") -> tuple[KeyParam, ...]:
    """
    Accept the shorthand forms used by the decorators.

    A bare name or position becomes one KeyParam; in a list, bare entries take
    their list index as order.
    """
    if key is None:
        return ()
    if isinstance(key, (str, int, KeyParam)):
        key = [key]

    params = []
    for index, item in enumerate(key):
        if isinstance(item, KeyParam):
            params.append(item)
        else:
            params.append(KeyParam(item, order=index))
    return tuple(params)
