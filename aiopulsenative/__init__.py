"""Async client for the PulseAudio native protocol."""

from .client import PulseClient, UpdateChannel
from .config import ClientConfig, runtime_path
from .errors import (
    BadCookie,
    ConnectionClosed,
    MalformedFrame,
    ProtocolViolation,
    PulseAudioError,
    PulseError,
    RequestTimeout,
    RequestTooLarge,
    TransportError,
    VersionUnsupported,
)
from .util import AudioServerInfo, detect_audio_server

__all__ = [
    "AudioServerInfo",
    "BadCookie",
    "ClientConfig",
    "ConnectionClosed",
    "MalformedFrame",
    "ProtocolViolation",
    "PulseAudioError",
    "PulseClient",
    "PulseError",
    "RequestTimeout",
    "RequestTooLarge",
    "TransportError",
    "UpdateChannel",
    "VersionUnsupported",
    "detect_audio_server",
    "runtime_path",
]
