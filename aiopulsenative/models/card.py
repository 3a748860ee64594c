"""
Card records.

A card owns a list of profiles and a list of ports. Ports refer to the profiles they
belong to and the card refers to its active profile. Those references are stored as
positions into Card.profiles so that the record stays a plain, immutable value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mashumaro.mixins.orjson import DataClassORJSONMixin

from .tagstruct import TagStructReader
from .types import PortDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CardProfile(DataClassORJSONMixin):
    """Profile of a card (e.g. "output:analog-stereo+input:analog-stereo")."""

    name: str
    description: str
    n_sinks: int
    n_sources: int
    priority: int
    available: int
    """Non-zero when the profile can currently be activated."""

    @classmethod
    def read_from(cls, reader: TagStructReader) -> CardProfile:
        """Decode a card profile."""
        return cls(
            name=reader.read_string(),
            description=reader.read_string(),
            n_sinks=reader.read_u32(),
            n_sources=reader.read_u32(),
            priority=reader.read_u32(),
            available=reader.read_u32(),
        )


@dataclass(frozen=True)
class CardPort(DataClassORJSONMixin):
    """Port of a card."""

    name: str
    description: str
    priority: int
    available: int
    """Raw availability, see PortAvailable."""
    direction: int
    """Raw direction bits, see PortDirection."""
    properties: dict[str, str]
    """Property list, decoded per record and never shared; treat it as read-only."""
    profile_indices: tuple[int, ...]
    """Positions in Card.profiles of the profiles this port belongs to."""
    latency_offset: int
    """Latency offset in microseconds."""

    @property
    def is_output(self) -> bool:
        """Return True if the port plays audio."""
        return bool(self.direction & PortDirection.OUTPUT)

    @property
    def is_input(self) -> bool:
        """Return True if the port captures audio."""
        return bool(self.direction & PortDirection.INPUT)


@dataclass(frozen=True)
class Card(DataClassORJSONMixin):
    """Reply entry of GET_CARD_INFO_LIST."""

    index: int
    name: str
    owner_module: int
    driver: str
    profiles: tuple[CardProfile, ...]
    active_profile_index: int | None
    """Position of the active profile in profiles, None if the server named an unknown one."""
    properties: dict[str, str]
    """Property list, decoded per record and never shared; treat it as read-only."""
    ports: tuple[CardPort, ...]

    @property
    def active_profile(self) -> CardProfile | None:
        """Return the active profile, if known."""
        if self.active_profile_index is None:
            return None
        return self.profiles[self.active_profile_index]

    def profile(self, name: str) -> CardProfile | None:
        """Return the profile with the given name, if any."""
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None

    def port_profiles(self, port: CardPort) -> list[CardProfile]:
        """Return the profiles a port of this card belongs to."""
        return [self.profiles[i] for i in port.profile_indices]

    @classmethod
    def read_from(cls, reader: TagStructReader) -> Card:
        """Decode a card record, resolving profile names to positions."""
        index = reader.read_u32()
        name = reader.read_string()
        owner_module = reader.read_u32()
        driver = reader.read_string()

        profile_count = reader.read_u32()
        profiles = tuple(CardProfile.read_from(reader) for _ in range(profile_count))
        positions = {profile.name: i for i, profile in enumerate(profiles)}

        active_name = reader.read_string()
        active_profile_index = positions.get(active_name)
        if active_profile_index is None and active_name:
            logger.debug("Card %s reports unknown active profile %r", name, active_name)

        properties = reader.read_proplist()

        port_count = reader.read_u32()
        ports = []
        for _ in range(port_count):
            port_name = reader.read_string()
            description = reader.read_string()
            priority = reader.read_u32()
            available = reader.read_u32()
            direction = reader.read_u8()
            port_properties = reader.read_proplist()
            port_profile_count = reader.read_u32()
            profile_indices = []
            for _ in range(port_profile_count):
                profile_name = reader.read_string()
                position = positions.get(profile_name)
                if position is None:
                    logger.debug(
                        "Port %s of card %s refers to unknown profile %r",
                        port_name,
                        name,
                        profile_name,
                    )
                    continue
                profile_indices.append(position)
            latency_offset = reader.read_s64()
            ports.append(
                CardPort(
                    name=port_name,
                    description=description,
                    priority=priority,
                    available=available,
                    direction=direction,
                    properties=port_properties,
                    profile_indices=tuple(profile_indices),
                    latency_offset=latency_offset,
                )
            )

        return cls(
            index=index,
            name=name,
            owner_module=owner_module,
            driver=driver,
            profiles=profiles,
            active_profile_index=active_profile_index,
            properties=properties,
            ports=tuple(ports),
        )
