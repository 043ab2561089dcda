"""
cachewise — Serialization Dispatcher

Resolves the serialization preference of a cache site to the transcoder
handed to the transport. PROVIDER resolves to None, which tells the transport
to use its native transcoder.
"""

from ..config import SerializationType
from ..errors import ConfigurationError, InvalidSiteError
from .transcoder import Transcoder


class SerializationDispatcher:
    """
    Per-strategy transcoder table.

    Only the default strategy must be configured up front; asking for any other
    unconfigured strategy fails when a site first resolves it.
    """

    def __init__(
        self,
        default: SerializationType | str = SerializationType.PROVIDER,
        text: Transcoder | None = None,
        binary: Transcoder | None = None,
        custom: Transcoder | None = None,
    ):
        self.default = SerializationType(default)
        self._transcoders: dict[SerializationType, Transcoder | None] = {
            SerializationType.TEXT: text,
            SerializationType.BINARY: binary,
            SerializationType.CUSTOM: custom,
        }

        if self.default != SerializationType.PROVIDER and self._transcoders[self.default] is None:
            raise ConfigurationError(
                f"Transcoder for default serialization {self.default.value} is not configured",
                details={"default_serialization": self.default.value},
            )

    def effective(self, preference: SerializationType | str | None) -> SerializationType:
        """Serialization type used for a site preference (None means the default)."""
        if preference is None:
            return self.default
        try:
            return SerializationType(preference)
        except ValueError as e:
            raise InvalidSiteError(f"Unknown serialization {preference!r}", details={"serialization": str(preference)}) from e

    def is_available(self, preference: SerializationType | str | None) -> bool:
        """True when the preference can be resolved."""
        serialization = self.effective(preference)
        return serialization == SerializationType.PROVIDER or self._transcoders[serialization] is not None

    def resolve(self, preference: SerializationType | str | None) -> Transcoder | None:
        """
        Transcoder for a site preference.

        Args:
            preference: Serialization requested by the site, None for the default

        Returns:
            Transcoder to pass to the transport, None for transport-native

        Raises:
            InvalidSiteError: If the requested strategy has no transcoder
        """
        serialization = self.effective(preference)
        if serialization == SerializationType.PROVIDER:
            return None

        transcoder = self._transcoders[serialization]
        if transcoder is None:
            raise InvalidSiteError(
                f"Cannot use {serialization.value} serialization because its transcoder is not configured",
                details={"serialization": serialization.value},
            )

        return transcoder
