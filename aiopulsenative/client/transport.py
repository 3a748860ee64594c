"""Framed stream transport over the PulseAudio UNIX socket."""

from __future__ import annotations

import asyncio
import logging
import struct
from contextlib import suppress

from aiopulsenative.errors import ConnectionClosed, MalformedFrame, TransportError
from aiopulsenative.models import CONTROL_CHANNEL, FRAME_DESCRIPTOR_SIZE, FRAME_SIZE_MAX

logger = logging.getLogger(__name__)

_LENGTH = struct.Struct(">I")
_DESCRIPTOR_REST = struct.Struct(">IIII")


class Transport:
    """
    Owner of one stream connection to a PulseAudio server.

    The transport moves whole frames: read_frame() returns the payload of the next
    control frame and write_frame() sends a frame built by pack_frame(). It knows
    nothing about commands or tags.
    """

    _reader: asyncio.StreamReader
    _writer: asyncio.StreamWriter
    _closed: bool = False

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Wrap an already connected stream pair."""
        self._reader = reader
        self._writer = writer

    @classmethod
    async def open(cls, path: str) -> Transport:
        """
        Connect to the server socket at path.

        Raises:
            OSError: If the socket cannot be opened (surfaced unchanged)
        """
        logger.debug("Opening PulseAudio socket %s", path)
        reader, writer = await asyncio.open_unix_connection(path)
        return cls(reader, writer)

    @property
    def closed(self) -> bool:
        """Return True once the transport has been closed."""
        return self._closed

    async def read_frame(self) -> bytes:
        """
        Read the next frame and return its payload.

        Raises:
            ConnectionClosed: If the stream ended or failed
            MalformedFrame: If the frame is too large or not on the control channel
        """
        try:
            header = await self._reader.readexactly(_LENGTH.size)
            (length,) = _LENGTH.unpack(header)
            if length > FRAME_SIZE_MAX:
                raise MalformedFrame(
                    f"Frame size {length} is too long (only {FRAME_SIZE_MAX} allowed)"
                )
            data = await self._reader.readexactly(length + _DESCRIPTOR_REST.size)
        except asyncio.IncompleteReadError as err:
            raise ConnectionClosed("PulseAudio server closed the connection") from err
        except OSError as err:
            raise ConnectionClosed(f"Error reading from PulseAudio socket: {err}") from err

        channel, _offset_hi, _offset_lo, _flags = _DESCRIPTOR_REST.unpack_from(data)
        if channel != CONTROL_CHANNEL:
            raise MalformedFrame(f"Unexpected frame on channel {channel:#x}")
        return data[_DESCRIPTOR_REST.size :]

    async def write_frame(self, frame: bytes) -> None:
        """
        Write a complete frame (descriptor and payload) and wait until it is flushed.

        Raises:
            TransportError: If the socket write fails
        """
        if len(frame) < FRAME_DESCRIPTOR_SIZE:
            raise ValueError(f"Frame must hold at least {FRAME_DESCRIPTOR_SIZE} bytes")
        if self._closed:
            raise TransportError("PulseAudio socket is closed")
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (OSError, RuntimeError) as err:
            raise TransportError(f"Error writing to PulseAudio socket: {err}") from err

    async def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        with suppress(OSError):
            await self._writer.wait_closed()
        logger.debug("PulseAudio socket closed")
