"""Server-level records: server information and subscription events."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro.mixins.orjson import DataClassORJSONMixin

from .core import SampleSpec
from .tagstruct import TagStructReader
from .types import (
    SUBSCRIPTION_FACILITY_MASK,
    SUBSCRIPTION_TYPE_MASK,
    SubscriptionEventType,
    SubscriptionFacility,
)


@dataclass(frozen=True)
class ServerInfo(DataClassORJSONMixin):
    """Reply to GET_SERVER_INFO."""

    package_name: str
    """Server package name, e.g. "pulseaudio" or "PulseAudio (on PipeWire 0.3.40)"."""
    package_version: str
    user_name: str
    """User the server runs as."""
    host_name: str
    sample_spec: SampleSpec
    """Default sample spec."""
    default_sink_name: str
    default_source_name: str
    cookie: int
    """Random cookie identifying this server instance."""
    channel_map: tuple[int, ...]
    """Default channel map."""

    @property
    def is_pipewire(self) -> bool:
        """Return True if the socket is served by pipewire-pulse."""
        return "PipeWire" in self.package_name

    @classmethod
    def read_from(cls, reader: TagStructReader) -> ServerInfo:
        """Decode a server info record."""
        return cls(
            package_name=reader.read_string(),
            package_version=reader.read_string(),
            user_name=reader.read_string(),
            host_name=reader.read_string(),
            sample_spec=reader.read_sample_spec(),
            default_sink_name=reader.read_string(),
            default_source_name=reader.read_string(),
            cookie=reader.read_u32(),
            channel_map=reader.read_channel_map(),
        )


@dataclass(frozen=True)
class SubscriptionEvent(DataClassORJSONMixin):
    """Body of a SUBSCRIBE_EVENT packet."""

    event: int
    """Raw event word (facility | event type)."""
    index: int
    """Index of the object the event refers to."""

    @property
    def facility(self) -> SubscriptionFacility | None:
        """Return the facility of the event, or None for an unknown facility."""
        try:
            return SubscriptionFacility(self.event & SUBSCRIPTION_FACILITY_MASK)
        except ValueError:
            return None

    @property
    def event_type(self) -> SubscriptionEventType | None:
        """Return the kind of change, or None for an unknown event type."""
        try:
            return SubscriptionEventType(self.event & SUBSCRIPTION_TYPE_MASK)
        except ValueError:
            return None

    @classmethod
    def read_from(cls, reader: TagStructReader) -> SubscriptionEvent:
        """Decode the event word and object index."""
        return cls(event=reader.read_u32(), index=reader.read_u32())
