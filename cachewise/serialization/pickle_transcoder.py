"""
cachewise — Pickle Transcoder

Binary serialization for arbitrary Python objects. The tombstone pickles by
reference, so it unpickles to the same singleton.
"""

import pickle
from typing import Any

from .transcoder import CachedData, Transcoder


class PickleTranscoder(Transcoder):
    """Binary serialization using pickle."""

    flags = 0x01

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        self.protocol = protocol

    def encode(self, value: Any) -> CachedData:
        return CachedData(pickle.dumps(value, protocol=self.protocol), self.flags)

    def decode(self, cached: CachedData) -> Any:
        return pickle.loads(cached.data)
