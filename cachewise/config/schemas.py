"""
cachewise — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration must be defined here and validated at startup.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class TransportBackend(str, Enum):
    """Supported cache transports."""

    MEMORY = "memory"
    REDIS = "redis"


class SerializationType(str, Enum):
    """Serialization strategies a cache site can ask for."""

    BINARY = "binary"
    TEXT = "text"
    PROVIDER = "provider"  # transport-native, no transcoder passed
    CUSTOM = "custom"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TransportConfig(BaseModel):
    """Cache transport configuration."""

    backend: TransportBackend = Field(default=TransportBackend.MEMORY, description="Transport to use")
    max_size: int = Field(default=10000, ge=1, description="Max cache entries (memory transport)")

    # Redis-specific settings (only used when backend=redis)
    redis_url: str | None = Field(default=None, validate_default=True, description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: float = Field(default=1.0, gt=0, description="Redis socket timeout in seconds")

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str | None, info: Any) -> str | None:
        """Ensure redis_url is provided when backend is redis."""
        backend = info.data.get("backend")
        if backend == TransportBackend.REDIS and not v:
            raise ValueError("redis_url is required when transport backend is 'redis'")
        return v


class CachewiseConfig(BaseModel):
    """Root configuration for cachewise."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    disable_cache: bool = Field(default=False, description="Bypass the cache layer and call methods directly")
    default_serialization: SerializationType = Field(
        default=SerializationType.PROVIDER,
        description="Serialization used by sites that do not choose one",
    )
    enable_sites_in_interface: bool = Field(
        default=False,
        description="Allow sites declared on base-class methods to apply to overriding implementations",
    )
    max_key_length: int = Field(default=250, ge=1, description="Maximum cache key length in bytes")

    transport: TransportConfig = Field(default_factory=TransportConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
