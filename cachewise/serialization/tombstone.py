"""
cachewise — Tombstone

The tombstone is the in-cache marker for "computed, and there was no value".
It is distinct from absence: a tombstone hit returns None without calling the
underlying method, an absent key is a miss.

Executors test for it with identity (``value is TOMBSTONE``), so every
transcoder has to hand back this exact instance.
"""

from typing import Any

# Type alias used by the JSON transcoder
TOMBSTONE_ALIAS = "N"


class Tombstone:
    """Singleton negative marker."""

    _instance: "Tombstone | None" = None

    __slots__ = ()

    def __new__(cls) -> "Tombstone":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __reduce__(self) -> str:
        # Pickle by reference to the module-level name
        return "TOMBSTONE"

    def __copy__(self) -> "Tombstone":
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> "Tombstone":
        return self

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "TOMBSTONE"


TOMBSTONE = Tombstone()


def is_tombstone(value: Any) -> bool:
    """True when the value is the tombstone."""
    return value is TOMBSTONE


def to_submission(value: Any) -> Any:
    """Value to store for a result: None becomes the tombstone."""
    return TOMBSTONE if value is None else value


def from_cached(value: Any) -> Any:
    """Value to hand back to the caller for a cached entry: the tombstone becomes None."""
    return None if value is TOMBSTONE else value
