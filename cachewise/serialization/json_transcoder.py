"""
cachewise — JSON Transcoder

Text serialization. Every payload is a two-element JSON array ``[type_id, body]``:

- ``"J"``: body is a plain JSON value (None, bool, numbers, str, list, dict)
- ``"N"``: the tombstone
- a registered alias: body is the dumped pydantic model or dataclass
- ``"module:QualName"``: unregistered pydantic model or dataclass, re-imported on decode

Aliases keep payloads short; each alias maps to exactly one class and each class
to exactly one alias.

Example:
    transcoder = JsonTranscoder()
    transcoder.register_alias(User, "U")
    data = transcoder.encode(User(id=1, name="a"))   # b'["U",{"id":1,"name":"a"}]'
"""

import dataclasses
import importlib
import json
import logging
from typing import Any

from pydantic import BaseModel, TypeAdapter

from ..errors import ConfigurationError
from .tombstone import TOMBSTONE, TOMBSTONE_ALIAS
from .transcoder import CachedData, Transcoder

logger = logging.getLogger(__name__)

PLAIN_ALIAS = "J"
RESERVED_ALIASES = frozenset((TOMBSTONE_ALIAS, PLAIN_ALIAS))


class JsonTranscoder(Transcoder):
    """JSON serialization with class aliases and tombstone support."""

    flags = 0x20

    def __init__(self, aliases: dict[type, str] | None = None):
        self._class_to_alias: dict[type, str] = {}
        self._alias_to_class: dict[str, type] = {}
        self._adapters: dict[type, TypeAdapter[Any]] = {}

        for cls, alias in (aliases or {}).items():
            self.register_alias(cls, alias)

    def register_alias(self, cls: type, alias: str) -> None:
        """
        Register a short type id for a class.

        Args:
            cls: pydantic model or dataclass
            alias: Unique, non-blank type id

        Raises:
            ConfigurationError: If the alias is blank, reserved, or either side is already mapped
        """
        if not alias or not alias.strip():
            raise ConfigurationError("Alias cannot be empty or blank", details={"class": cls.__qualname__})

        if alias in RESERVED_ALIASES:
            raise ConfigurationError(f"Alias {alias!r} is reserved", details={"class": cls.__qualname__})

        if cls in self._class_to_alias:
            raise ConfigurationError(
                f"Class {cls.__qualname__} already has alias {self._class_to_alias[cls]!r}, cannot set {alias!r}",
                details={"class": cls.__qualname__, "alias": alias},
            )

        if alias in self._alias_to_class:
            raise ConfigurationError(
                f"Alias {alias!r} is used by {self._alias_to_class[alias].__qualname__}",
                details={"class": cls.__qualname__, "alias": alias},
            )

        self._class_to_alias[cls] = alias
        self._alias_to_class[alias] = cls
        logger.debug(f"Registered JSON alias {alias!r} for {cls.__qualname__}")

    def encode(self, value: Any) -> CachedData:
        if value is TOMBSTONE:
            envelope: list[Any] = [TOMBSTONE_ALIAS, {}]
        elif isinstance(value, BaseModel):
            envelope = [self._type_id(type(value)), value.model_dump(mode="json")]
        elif dataclasses.is_dataclass(value) and not isinstance(value, type):
            envelope = [self._type_id(type(value)), self._adapter(type(value)).dump_python(value, mode="json")]
        else:
            envelope = [PLAIN_ALIAS, value]

        payload = json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))
        return CachedData(payload.encode("utf-8"), self.flags)

    def decode(self, cached: CachedData) -> Any:
        envelope = json.loads(cached.data.decode("utf-8"))
        if not isinstance(envelope, list) or len(envelope) != 2:
            raise ValueError(f"Not a typed JSON payload: {cached.data[:100]!r}")

        type_id, body = envelope
        if type_id == PLAIN_ALIAS:
            return body
        if type_id == TOMBSTONE_ALIAS:
            return TOMBSTONE

        cls = self._class_for(type_id)
        if issubclass(cls, BaseModel):
            return cls.model_validate(body)
        return self._adapter(cls).validate_python(body)

    def _adapter(self, cls: type) -> TypeAdapter[Any]:
        adapter = self._adapters.get(cls)
        if adapter is None:
            adapter = self._adapters[cls] = TypeAdapter(cls)
        return adapter

    def _type_id(self, cls: type) -> str:
        alias = self._class_to_alias.get(cls)
        if alias is not None:
            return alias
        return f"{cls.__module__}:{cls.__qualname__}"

    def _class_for(self, type_id: str) -> type:
        cls = self._alias_to_class.get(type_id)
        if cls is not None:
            return cls

        module_name, _, qualname = type_id.partition(":")
        if not qualname:
            raise ValueError(f"Unknown type id in JSON payload: {type_id!r}")

        target: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)

        if not isinstance(target, type) or not (issubclass(target, BaseModel) or dataclasses.is_dataclass(target)):
            raise ValueError(f"Type id {type_id!r} does not name a model or dataclass")

        return target
