"""Models for the PulseAudio native protocol."""

from __future__ import annotations

__all__ = [
    "CONTROL_CHANNEL",
    "FRAME_DESCRIPTOR_FORMAT",
    "FRAME_DESCRIPTOR_SIZE",
    "FRAME_SIZE_MAX",
    "INVALID_INDEX",
    "SUBSCRIPTION_TAG",
    "VOLUME_NORM",
    "AudioServerType",
    "Card",
    "CardPort",
    "CardProfile",
    "Command",
    "DevicePort",
    "DeviceState",
    "ErrorCode",
    "FormatEncoding",
    "FormatInfo",
    "FrameDescriptor",
    "Module",
    "PortAvailable",
    "PortDirection",
    "SampleFormat",
    "SampleSpec",
    "ServerInfo",
    "Sink",
    "SinkFlags",
    "Source",
    "SourceFlags",
    "SubscriptionEvent",
    "SubscriptionEventType",
    "SubscriptionFacility",
    "SubscriptionMask",
    "TagStructReader",
    "TagStructWriter",
    "TagType",
    "Timeval",
    "card",
    "core",
    "device",
    "module",
    "pack_frame",
    "pack_frame_descriptor",
    "server",
    "tagstruct",
    "types",
    "unpack_frame_descriptor",
]
import struct
from typing import NamedTuple

from aiopulsenative.errors import RequestTooLarge

from . import card, core, device, module, server, tagstruct, types
from .card import Card, CardPort, CardProfile
from .core import INVALID_INDEX, VOLUME_NORM, FormatInfo, SampleSpec, Timeval
from .device import DevicePort, Sink, Source
from .module import Module
from .server import ServerInfo, SubscriptionEvent
from .tagstruct import TagStructReader, TagStructWriter
from .types import (
    AudioServerType,
    Command,
    DeviceState,
    ErrorCode,
    FormatEncoding,
    PortAvailable,
    PortDirection,
    SampleFormat,
    SinkFlags,
    SourceFlags,
    SubscriptionEventType,
    SubscriptionFacility,
    SubscriptionMask,
    TagType,
)

# Frame descriptor (big-endian): length(4) + channel(4) + offset_hi(4) + offset_lo(4) + flags(4)
FRAME_DESCRIPTOR_FORMAT = ">IIIII"
FRAME_DESCRIPTOR_SIZE = struct.calcsize(FRAME_DESCRIPTOR_FORMAT)

FRAME_SIZE_MAX = 16 * 1024 * 1024
"""Largest payload accepted in either direction."""

CONTROL_CHANNEL = 0xFFFFFFFF
"""Channel of packets carrying commands (anything else is a memblock stream)."""

SUBSCRIPTION_TAG = 0xFFFFFFFF
"""Request tag reserved for server-initiated packets."""


class FrameDescriptor(NamedTuple):
    """Descriptor preceding every frame on the wire."""

    length: int  # payload bytes following the descriptor
    channel: int
    offset_hi: int
    offset_lo: int
    flags: int


def unpack_frame_descriptor(data: bytes) -> FrameDescriptor:
    """
    Unpack a frame descriptor from bytes.

    Args:
        data: At least the first 20 bytes of a frame

    Returns:
        FrameDescriptor with typed fields

    Raises:
        ValueError: If data is shorter than a descriptor
    """
    if len(data) < FRAME_DESCRIPTOR_SIZE:
        raise ValueError(f"Expected at least {FRAME_DESCRIPTOR_SIZE} bytes, got {len(data)}")

    return FrameDescriptor._make(
        struct.unpack(FRAME_DESCRIPTOR_FORMAT, data[:FRAME_DESCRIPTOR_SIZE])
    )


def pack_frame_descriptor(descriptor: FrameDescriptor) -> bytes:
    """
    Pack a frame descriptor into bytes.

    Args:
        descriptor: FrameDescriptor to pack

    Returns:
        20-byte packed descriptor
    """
    return struct.pack(FRAME_DESCRIPTOR_FORMAT, *descriptor)


def pack_frame(command: int, tag: int, body: TagStructWriter | bytes | None = None) -> bytes:
    """
    Build a complete control frame for a command.

    Args:
        command: Command code written as the first tagged value
        tag: Request tag written as the second tagged value
        body: Remaining tagged values of the payload

    Returns:
        Descriptor followed by the payload

    Raises:
        RequestTooLarge: If the payload exceeds FRAME_SIZE_MAX
    """
    payload = TagStructWriter().put_u32(command).put_u32(tag).getvalue()
    if isinstance(body, TagStructWriter):
        payload += body.getvalue()
    elif body:
        payload += body
    if len(payload) > FRAME_SIZE_MAX:
        raise RequestTooLarge(
            f"Request size {len(payload)} is too long (only {FRAME_SIZE_MAX} allowed)"
        )
    descriptor = FrameDescriptor(
        length=len(payload), channel=CONTROL_CHANNEL, offset_hi=0, offset_lo=0, flags=0
    )
    return pack_frame_descriptor(descriptor) + payload
