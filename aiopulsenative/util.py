"""Utility functions for aiopulsenative."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from mashumaro.mixins.orjson import DataClassORJSONMixin

from aiopulsenative.models.server import ServerInfo
from aiopulsenative.models.types import AudioServerType

logger = logging.getLogger(__name__)

_PIPEWIRE_VERSION = re.compile(r".*?on PipeWire (\d+)\.(\d+)\.(\d+).*?")
_PULSEAUDIO_VERSION = re.compile(r".*?(\d+)\.(\d+)\.?(\d+)?.*?")

# pipewire-pulse releases before this one lack features filter chains rely on
PIPEWIRE_MIN_VERSION = (0, 3, 28)


@dataclass(frozen=True)
class AudioServerInfo(DataClassORJSONMixin):
    """Which audio server answers on the PulseAudio socket, and its version."""

    server_type: AudioServerType
    major: int = 0
    minor: int = 0
    patch: int = 0
    version_known: bool = False
    """False if the version string could not be parsed."""
    outdated_pipewire: bool = False
    """True for pipewire-pulse older than 0.3.28."""

    @property
    def name(self) -> str:
        """Return "PulseAudio" or "PipeWire"."""
        return self.server_type.value

    @property
    def version(self) -> str:
        """Return the version as "major.minor.patch"."""
        return f"{self.major}.{self.minor}.{self.patch}"


def detect_audio_server(info: ServerInfo) -> AudioServerInfo:
    """Tell PulseAudio from pipewire-pulse and parse the server version.

    pipewire-pulse reports its own version inside the package name
    ("PulseAudio (on PipeWire 0.3.40)"); PulseAudio reports it as package version.
    """
    logger.debug(
        "Audio server package name %r, version %r", info.package_name, info.package_version
    )
    if info.is_pipewire:
        server_type = AudioServerType.PIPEWIRE
        match = _PIPEWIRE_VERSION.match(info.package_name)
    else:
        server_type = AudioServerType.PULSEAUDIO
        match = _PULSEAUDIO_VERSION.match(info.package_version)

    if match is None:
        logger.warning("Could not parse %s version", server_type.value)
        return AudioServerInfo(server_type=server_type)

    major, minor = int(match.group(1)), int(match.group(2))
    # Versions like "16.1" have no patch component
    patch = int(match.group(3) or 0)
    outdated = server_type is AudioServerType.PIPEWIRE and (major, minor, patch) < (
        PIPEWIRE_MIN_VERSION
    )
    if outdated:
        logger.warning("PipeWire version %d.%d.%d is too old", major, minor, patch)
    return AudioServerInfo(
        server_type=server_type,
        major=major,
        minor=minor,
        patch=patch,
        version_known=True,
        outdated_pipewire=outdated,
    )
