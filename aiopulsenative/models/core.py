"""
Core value types of the PulseAudio native protocol.

These are the structured values that appear inside tagged payloads (sample specs,
format infos, wallclock times) and the protocol-wide constants the record types
and the client share.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from mashumaro.mixins.orjson import DataClassORJSONMixin

INVALID_INDEX = 0xFFFFFFFF
"""Index value meaning "no object" (e.g. a sink without an owning module)."""

VOLUME_MUTED = 0
VOLUME_NORM = 0x10000
"""Volume value for 100 % (0 dB)."""
VOLUME_MAX = 0x7FFFFFFF

CHANNELS_MAX = 32
"""Upper bound for the number of channels in a channel map or cvolume."""

PROPLIST_APPLICATION_NAME = "application.name"
PROPLIST_APPLICATION_LANGUAGE = "application.language"
PROPLIST_APPLICATION_PROCESS_ID = "application.process.id"
PROPLIST_APPLICATION_PROCESS_BINARY = "application.process.binary"
PROPLIST_APPLICATION_PROCESS_USER = "application.process.user"
PROPLIST_APPLICATION_PROCESS_HOST = "application.process.host"
PROPLIST_WINDOW_X11_DISPLAY = "window.x11.display"
PROPLIST_DEVICE_DESCRIPTION = "device.description"


@dataclass(frozen=True)
class SampleSpec(DataClassORJSONMixin):
    """Sample format, channel count and rate of a device or server."""

    format: int
    """Raw sample format code, see SampleFormat."""
    channels: int
    """Number of channels."""
    rate: int
    """Sample rate in Hz."""


@dataclass(frozen=True)
class FormatInfo(DataClassORJSONMixin):
    """Stream format announced by a sink or source.

    The encoding is kept as the raw code; interpreting it is up to the consumer.
    """

    encoding: int
    """Raw encoding code, see FormatEncoding."""
    properties: dict[str, str] = field(default_factory=dict)
    """Format properties (e.g. format.rate, format.channels)."""


@dataclass(frozen=True)
class Timeval(DataClassORJSONMixin):
    """Wallclock time as transmitted on the wire."""

    seconds: int
    microseconds: int
