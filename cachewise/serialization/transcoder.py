"""
cachewise — Transcoder Interface

A transcoder turns a Python value into the bytes stored by the transport and back.
Transports call encode() on writes and decode() on reads; passing no transcoder
to a transport selects its native one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class CachedData:
    """Encoded payload as handed to the transport."""

    data: bytes
    flags: int = 0


class Transcoder(ABC):
    """
    Abstract base class for serialization strategies.

    Implementations must be pure: encoding the same value twice yields the
    same bytes and decode(encode(v)) reproduces v. The tombstone must survive
    a round trip as the very same object.
    """

    flags: int = 0

    @abstractmethod
    def encode(self, value: Any) -> CachedData:
        """
        Encode a value.

        Args:
            value: Value to store

        Returns:
            Encoded payload
        """
        pass

    @abstractmethod
    def decode(self, cached: CachedData) -> Any:
        """
        Decode a stored payload.

        Args:
            cached: Payload read from the transport

        Returns:
            The original value
        """
        pass


class LongToStringTranscoder(Transcoder):
    """Counters are stored as ASCII decimals so the transport can incr/decr them in place."""

    def encode(self, value: Any) -> CachedData:
        return CachedData(str(int(value)).encode("ascii"), self.flags)

    def decode(self, cached: CachedData) -> int:
        return int(cached.data.decode("ascii").strip())
