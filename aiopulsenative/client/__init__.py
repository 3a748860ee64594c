"""Public interface for the PulseAudio client package."""

from .client import DisconnectCallback, PulseClient
from .dispatcher import Dispatcher, UpdateChannel
from .session import PROTOCOL_VERSION, client_properties, load_cookie
from .transport import Transport

__all__ = [
    "PROTOCOL_VERSION",
    "DisconnectCallback",
    "Dispatcher",
    "PulseClient",
    "Transport",
    "UpdateChannel",
    "client_properties",
    "load_cookie",
]
