"""
Sink and source records.

Sinks and sources share one wire layout. The only difference is the meaning of the
monitor fields: a sink names the source monitoring it, a source names the sink it
monitors (or INVALID_INDEX when it is a real capture device).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro.mixins.orjson import DataClassORJSONMixin

from .core import INVALID_INDEX, PROPLIST_DEVICE_DESCRIPTION, FormatInfo, SampleSpec
from .tagstruct import TagStructReader
from .types import SinkFlags, SourceFlags


@dataclass(frozen=True)
class DevicePort(DataClassORJSONMixin):
    """Port of a sink or source (e.g. headphones vs. speakers)."""

    name: str
    description: str
    priority: int
    available: int
    """Raw availability, see PortAvailable."""

    @classmethod
    def read_from(cls, reader: TagStructReader) -> DevicePort:
        """Decode a device port."""
        return cls(
            name=reader.read_string(),
            description=reader.read_string(),
            priority=reader.read_u32(),
            available=reader.read_u32(),
        )


def _read_device_fields(reader: TagStructReader) -> dict[str, Any]:
    """Decode the layout shared by sinks and sources.

    The monitor fields are returned under the neutral keys monitor_index and monitor_name.
    """
    fields: dict[str, Any] = {
        "index": reader.read_u32(),
        "name": reader.read_string(),
        "description": reader.read_string(),
        "sample_spec": reader.read_sample_spec(),
        "channel_map": reader.read_channel_map(),
        "owner_module": reader.read_u32(),
        "volume": reader.read_cvolume(),
        "muted": reader.read_bool(),
        "monitor_index": reader.read_u32(),
        "monitor_name": reader.read_string(),
        "latency": reader.read_usec(),
        "driver": reader.read_string(),
        "flags": reader.read_u32(),
        "properties": reader.read_proplist(),
        "configured_latency": reader.read_usec(),
        "base_volume": reader.read_volume(),
        "state": reader.read_u32(),
        "n_volume_steps": reader.read_u32(),
        "card_index": reader.read_u32(),
    }
    port_count = reader.read_u32()
    fields["ports"] = tuple(DevicePort.read_from(reader) for _ in range(port_count))
    if port_count == 0:
        reader.read_null()
        fields["active_port_name"] = ""
    else:
        fields["active_port_name"] = reader.read_string()
    format_count = reader.read_u8()
    fields["formats"] = tuple(reader.read_format_info() for _ in range(format_count))
    return fields


@dataclass(frozen=True)
class _Device(DataClassORJSONMixin):
    """Fields common to sinks and sources.

    Frozen, but not hashable: properties is a plain dict.
    """

    index: int
    name: str
    description: str
    sample_spec: SampleSpec
    channel_map: tuple[int, ...]
    owner_module: int
    """Index of the module that created the device, INVALID_INDEX if none."""
    volume: tuple[int, ...]
    """Per-channel volumes, VOLUME_NORM meaning 100 %."""
    muted: bool
    latency: int
    """Current latency in microseconds."""
    driver: str
    flags: int
    properties: dict[str, str]
    """Property list, decoded per record and never shared; treat it as read-only."""
    configured_latency: int
    """Requested latency in microseconds."""
    base_volume: int
    state: int
    """Raw run state, see DeviceState."""
    n_volume_steps: int
    card_index: int
    ports: tuple[DevicePort, ...] = ()
    active_port_name: str = ""
    """Name of the active port, empty when the device has no ports."""
    formats: tuple[FormatInfo, ...] = field(default=())

    @property
    def display_name(self) -> str:
        """Return the device.description property, falling back to the description."""
        return self.properties.get(PROPLIST_DEVICE_DESCRIPTION) or self.description

    @property
    def active_port(self) -> DevicePort | None:
        """Return the active port record, if any."""
        for port in self.ports:
            if port.name == self.active_port_name:
                return port
        return None


@dataclass(frozen=True)
class Sink(_Device):
    """Reply entry of GET_SINK_INFO_LIST."""

    monitor_source_index: int = INVALID_INDEX
    monitor_source_name: str = ""

    @property
    def sink_flags(self) -> SinkFlags:
        """Return the flags as SinkFlags."""
        return SinkFlags(self.flags)

    @property
    def dynamic_latency(self) -> bool:
        """Return True if the sink supports dynamic latency."""
        return bool(self.flags & SinkFlags.DYNAMIC_LATENCY)

    @classmethod
    def read_from(cls, reader: TagStructReader) -> Sink:
        """Decode a sink record."""
        fields = _read_device_fields(reader)
        fields["monitor_source_index"] = fields.pop("monitor_index")
        fields["monitor_source_name"] = fields.pop("monitor_name")
        return cls(**fields)


@dataclass(frozen=True)
class Source(_Device):
    """Reply entry of GET_SOURCE_INFO_LIST."""

    monitor_of_sink_index: int = INVALID_INDEX
    monitor_of_sink_name: str = ""

    @property
    def source_flags(self) -> SourceFlags:
        """Return the flags as SourceFlags."""
        return SourceFlags(self.flags)

    @property
    def dynamic_latency(self) -> bool:
        """Return True if the source supports dynamic latency."""
        return bool(self.flags & SourceFlags.DYNAMIC_LATENCY)

    @property
    def is_monitor(self) -> bool:
        """Return True if this source monitors a sink."""
        return self.monitor_of_sink_index != INVALID_INDEX

    @classmethod
    def read_from(cls, reader: TagStructReader) -> Source:
        """Decode a source record."""
        fields = _read_device_fields(reader)
        fields["monitor_of_sink_index"] = fields.pop("monitor_index")
        fields["monitor_of_sink_name"] = fields.pop("monitor_name")
        return cls(**fields)
