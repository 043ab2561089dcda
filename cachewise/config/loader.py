"""
cachewise — Configuration Loader

Builds CachewiseConfig from the process environment, optionally seeded from a
.env file, and keeps one validated instance for the process.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import CachewiseConfig

logger = logging.getLogger(__name__)

_config_instance: CachewiseConfig | None = None


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> CachewiseConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in the working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated CachewiseConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path.cwd() / ".env"

    if env_path.exists():
        logger.info(f"Reading settings from {env_path}")
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                f"Cannot read {env_path}: {e}",
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Cannot read environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug(f"{env_path} not found, reading settings from the environment")

    # Redis is picked automatically when REDIS_URL is set
    redis_url = os.getenv("REDIS_URL")
    backend = "redis" if redis_url else "memory"

    try:
        config_dict = {
            "environment": os.getenv("ENVIRONMENT", "development"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "disable_cache": _env_flag("CACHE_DISABLE"),
            "default_serialization": os.getenv("CACHE_DEFAULT_SERIALIZATION", "provider").lower(),
            "enable_sites_in_interface": _env_flag("CACHE_ENABLE_SITES_IN_INTERFACE"),
            "max_key_length": int(os.getenv("CACHE_MAX_KEY_LENGTH", "250")),
            "transport": {
                "backend": os.getenv("CACHE_BACKEND", backend),
                "max_size": int(os.getenv("CACHE_MAX_SIZE", "10000")),
                "redis_url": redis_url,
                "redis_max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", "10")),
                "redis_socket_timeout": float(os.getenv("REDIS_SOCKET_TIMEOUT", "1.0")),
            },
        }
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid numeric value in environment: {e}",
            details={"error": str(e)},
        ) from e

    try:
        _config_instance = CachewiseConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            f"cachewise settings loaded ({_config_instance.environment}, transport {_config_instance.transport.backend})",
            extra={
                "environment": _config_instance.environment,
                "transport": _config_instance.transport.backend,
                "disable_cache": _config_instance.disable_cache,
            },
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            f"Invalid cachewise settings: {e}",
            extra={"validation_errors": e.errors(), "config_dict_keys": list(config_dict.keys())},
        )
        raise ConfigurationError(
            "Invalid cachewise settings; check the CACHE_* and REDIS_* environment variables",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> CachewiseConfig:
    """
    Get the current configuration instance, loading it on first access.

    Returns:
        Current CachewiseConfig instance
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> CachewiseConfig:
    """
    Re-read settings, ignoring the loaded instance.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded CachewiseConfig instance
    """
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Drop the cached configuration instance. Used by tests."""
    global _config_instance
    _config_instance = None
