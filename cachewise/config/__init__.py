"""
cachewise — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import (
    CachewiseConfig,
    Environment,
    LogLevel,
    SerializationType,
    TransportBackend,
    TransportConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Main config
    "CachewiseConfig",
    # Enums
    "Environment",
    "LogLevel",
    "SerializationType",
    "TransportBackend",
    # Config sections
    "TransportConfig",
]
