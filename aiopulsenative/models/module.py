"""Loaded module records."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro.mixins.orjson import DataClassORJSONMixin

from .tagstruct import TagStructReader


@dataclass(frozen=True)
class Module(DataClassORJSONMixin):
    """Reply entry of GET_MODULE_INFO_LIST."""

    index: int
    name: str
    """Module name, e.g. "module-null-sink"."""
    argument: str
    """Argument string the module was loaded with."""
    n_used: int
    """Usage counter, 0xFFFFFFFF when the server does not track it."""
    properties: dict[str, str]
    """Property list, decoded per record and never shared; treat it as read-only."""

    @classmethod
    def read_from(cls, reader: TagStructReader) -> Module:
        """Decode a module record."""
        return cls(
            index=reader.read_u32(),
            name=reader.read_string(),
            argument=reader.read_string(),
            n_used=reader.read_u32(),
            properties=reader.read_proplist(),
        )
