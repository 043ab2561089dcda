"""
cachewise — Serialization Module

Transcoders, the tombstone marker and the per-site serialization dispatcher.
"""

from .dispatcher import SerializationDispatcher
from .json_transcoder import JsonTranscoder
from .pickle_transcoder import PickleTranscoder
from .tombstone import TOMBSTONE, TOMBSTONE_ALIAS, Tombstone, from_cached, is_tombstone, to_submission
from .transcoder import CachedData, LongToStringTranscoder, Transcoder

__all__ = [
    "CachedData",
    "Transcoder",
    "LongToStringTranscoder",
    "JsonTranscoder",
    "PickleTranscoder",
    "SerializationDispatcher",
    "Tombstone",
    "TOMBSTONE",
    "TOMBSTONE_ALIAS",
    "is_tombstone",
    "to_submission",
    "from_cached",
]
