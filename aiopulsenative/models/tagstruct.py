"""
Tagged value encoding of the PulseAudio native protocol.

Every value in a packet payload is preceded by a single type byte (see TagType), which
makes payloads self-describing. TagStructWriter appends tagged values to a buffer and
TagStructReader consumes them positionally, failing with MalformedFrame as soon as a
type byte does not match what the caller asked for or the payload ends mid-value.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from aiopulsenative.errors import MalformedFrame

from .core import CHANNELS_MAX, FormatInfo, SampleSpec, Timeval
from .types import TagType

_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")
_S64 = struct.Struct(">q")
_SAMPLE_SPEC = struct.Struct(">BBI")
_TIMEVAL = struct.Struct(">II")

_TAG_BYTES = {tag.value: tag for tag in TagType}


class TagStructWriter:
    """Builds a tagged payload.

    All put_* methods return the writer so calls can be chained.
    """

    __slots__ = ("_buffer",)

    def __init__(self) -> None:
        """Create an empty payload."""
        self._buffer = bytearray()

    def __len__(self) -> int:
        """Return the number of bytes written so far."""
        return len(self._buffer)

    def getvalue(self) -> bytes:
        """Return the encoded payload."""
        return bytes(self._buffer)

    def _pack(self, fmt: struct.Struct, *values: int) -> None:
        try:
            self._buffer += fmt.pack(*values)
        except struct.error as err:
            raise ValueError(f"value out of range for {fmt.format!r}: {values}") from err

    def _tag(self, tag: TagType) -> None:
        self._buffer.append(tag.value)

    def put_u32(self, value: int) -> TagStructWriter:
        """Append an unsigned 32-bit integer."""
        self._tag(TagType.U32)
        self._pack(_U32, value)
        return self

    def put_u8(self, value: int) -> TagStructWriter:
        """Append an unsigned 8-bit integer."""
        self._tag(TagType.U8)
        self._pack(_U8, value)
        return self

    def put_u64(self, value: int) -> TagStructWriter:
        """Append an unsigned 64-bit integer."""
        self._tag(TagType.U64)
        self._pack(_U64, value)
        return self

    def put_s64(self, value: int) -> TagStructWriter:
        """Append a signed 64-bit integer."""
        self._tag(TagType.S64)
        self._pack(_S64, value)
        return self

    def put_string(self, value: str | None) -> TagStructWriter:
        """Append a NUL-terminated UTF-8 string, or the null string for None."""
        if value is None:
            return self.put_null()
        data = value.encode("utf-8")
        if b"\0" in data:
            raise ValueError("strings must not contain NUL characters")
        self._tag(TagType.STRING)
        self._buffer += data
        self._buffer.append(0)
        return self

    def put_null(self) -> TagStructWriter:
        """Append the null string."""
        self._tag(TagType.STRING_NULL)
        return self

    def put_arbitrary(self, data: bytes) -> TagStructWriter:
        """Append a length-prefixed byte string."""
        self._tag(TagType.ARBITRARY)
        self._pack(_U32, len(data))
        self._buffer += data
        return self

    def put_bool(self, value: bool) -> TagStructWriter:
        """Append a boolean."""
        self._tag(TagType.BOOLEAN_TRUE if value else TagType.BOOLEAN_FALSE)
        return self

    def put_timeval(self, value: Timeval) -> TagStructWriter:
        """Append a wallclock time."""
        self._tag(TagType.TIMEVAL)
        self._pack(_TIMEVAL, value.seconds, value.microseconds)
        return self

    def put_usec(self, value: int) -> TagStructWriter:
        """Append a duration in microseconds."""
        self._tag(TagType.USEC)
        self._pack(_U64, value)
        return self

    def put_sample_spec(self, value: SampleSpec) -> TagStructWriter:
        """Append a sample spec."""
        self._tag(TagType.SAMPLE_SPEC)
        self._pack(_SAMPLE_SPEC, value.format, value.channels, value.rate)
        return self

    def put_channel_map(self, positions: Sequence[int]) -> TagStructWriter:
        """Append a channel map."""
        if len(positions) > CHANNELS_MAX:
            raise ValueError(f"channel map has {len(positions)} channels, max is {CHANNELS_MAX}")
        self._tag(TagType.CHANNEL_MAP)
        self._pack(_U8, len(positions))
        for position in positions:
            self._pack(_U8, position)
        return self

    def put_cvolume(self, volumes: Sequence[int]) -> TagStructWriter:
        """Append per-channel volumes."""
        if len(volumes) > CHANNELS_MAX:
            raise ValueError(f"cvolume has {len(volumes)} channels, max is {CHANNELS_MAX}")
        self._tag(TagType.CVOLUME)
        self._pack(_U8, len(volumes))
        for volume in volumes:
            self._pack(_U32, volume)
        return self

    def put_volume(self, value: int) -> TagStructWriter:
        """Append a scalar volume."""
        self._tag(TagType.VOLUME)
        self._pack(_U32, value)
        return self

    def put_proplist(self, properties: Mapping[str, str]) -> TagStructWriter:
        """Append a property list.

        Entries with an empty value are omitted.
        """
        self._tag(TagType.PROPLIST)
        for key, value in properties.items():
            if not value:
                continue
            if not key:
                raise ValueError("property keys must not be empty")
            data = value.encode("utf-8")
            length = len(data) + 1
            self.put_string(key)
            self.put_u32(length)
            self._tag(TagType.ARBITRARY)
            self._pack(_U32, length)
            self._buffer += data
            self._buffer.append(0)
        return self.put_null()

    def put_format_info(self, value: FormatInfo) -> TagStructWriter:
        """Append a format info."""
        self._tag(TagType.FORMAT_INFO)
        self.put_u8(value.encoding)
        return self.put_proplist(value.properties)


class TagStructReader:
    """Consumes tagged values from a payload, front to back."""

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes, offset: int = 0) -> None:
        """Start reading data at offset."""
        self._data = data
        self._pos = offset

    @property
    def remaining(self) -> int:
        """Return the number of unread bytes."""
        return len(self._data) - self._pos

    @property
    def at_end(self) -> bool:
        """Return True when the whole payload has been consumed."""
        return self._pos >= len(self._data)

    def _take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise MalformedFrame(
                f"unexpected end of payload: need {size} bytes at offset {self._pos}, "
                f"only {self.remaining} left"
            )
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def _unpack(self, fmt: struct.Struct) -> tuple[Any, ...]:
        return fmt.unpack(self._take(fmt.size))

    def _tag(self) -> TagType:
        (byte,) = self._take(1)
        try:
            return _TAG_BYTES[byte]
        except KeyError:
            raise MalformedFrame(f"unknown tag byte {byte:#04x}") from None

    def _expect(self, expected: TagType) -> None:
        tag = self._tag()
        if tag is not expected:
            raise MalformedFrame(f"got {tag.name} but expected {expected.name}")

    def _cstring(self) -> str:
        end = self._data.find(b"\0", self._pos)
        if end < 0:
            raise MalformedFrame(f"unterminated string at offset {self._pos}")
        raw = self._data[self._pos : end]
        self._pos = end + 1
        return raw.decode("utf-8", errors="replace")

    def read_u32(self) -> int:
        """Read an unsigned 32-bit integer."""
        self._expect(TagType.U32)
        return self._unpack(_U32)[0]

    def read_u8(self) -> int:
        """Read an unsigned 8-bit integer."""
        self._expect(TagType.U8)
        return self._unpack(_U8)[0]

    def read_u64(self) -> int:
        """Read an unsigned 64-bit integer."""
        self._expect(TagType.U64)
        return self._unpack(_U64)[0]

    def read_s64(self) -> int:
        """Read a signed 64-bit integer."""
        self._expect(TagType.S64)
        return self._unpack(_S64)[0]

    def read_string(self) -> str:
        """Read a string; the null string reads as the empty string."""
        tag = self._tag()
        if tag is TagType.STRING_NULL:
            return ""
        if tag is not TagType.STRING:
            raise MalformedFrame(f"got {tag.name} but expected {TagType.STRING.name}")
        return self._cstring()

    def read_null(self) -> None:
        """Read the null string marker."""
        self._expect(TagType.STRING_NULL)

    def read_arbitrary(self) -> bytes:
        """Read a length-prefixed byte string."""
        self._expect(TagType.ARBITRARY)
        (length,) = self._unpack(_U32)
        return self._take(length)

    def read_bool(self) -> bool:
        """Read a boolean."""
        tag = self._tag()
        if tag is TagType.BOOLEAN_TRUE:
            return True
        if tag is TagType.BOOLEAN_FALSE:
            return False
        raise MalformedFrame(f"got {tag.name} but expected a boolean")

    def read_timeval(self) -> Timeval:
        """Read a wallclock time."""
        self._expect(TagType.TIMEVAL)
        seconds, microseconds = self._unpack(_TIMEVAL)
        return Timeval(seconds=seconds, microseconds=microseconds)

    def read_usec(self) -> int:
        """Read a duration in microseconds."""
        self._expect(TagType.USEC)
        return self._unpack(_U64)[0]

    def read_sample_spec(self) -> SampleSpec:
        """Read a sample spec."""
        self._expect(TagType.SAMPLE_SPEC)
        sample_format, channels, rate = self._unpack(_SAMPLE_SPEC)
        return SampleSpec(format=sample_format, channels=channels, rate=rate)

    def read_channel_map(self) -> tuple[int, ...]:
        """Read a channel map as a tuple of channel positions."""
        self._expect(TagType.CHANNEL_MAP)
        (count,) = self._unpack(_U8)
        return tuple(self._take(count))

    def read_cvolume(self) -> tuple[int, ...]:
        """Read per-channel volumes."""
        self._expect(TagType.CVOLUME)
        (count,) = self._unpack(_U8)
        return struct.unpack(f">{count}I", self._take(4 * count))

    def read_volume(self) -> int:
        """Read a scalar volume."""
        self._expect(TagType.VOLUME)
        return self._unpack(_U32)[0]

    def read_proplist(self) -> dict[str, str]:
        """Read a property list."""
        self._expect(TagType.PROPLIST)
        properties: dict[str, str] = {}
        while True:
            tag = self._tag()
            if tag is TagType.STRING_NULL:
                return properties
            if tag is not TagType.STRING:
                raise MalformedFrame(f"got {tag.name} inside property list")
            key = self._cstring()
            declared = self.read_u32()
            value = self.read_arbitrary()
            if declared != len(value) or not value or value.find(b"\0") != len(value) - 1:
                raise MalformedFrame(
                    f"property {key!r} value length mismatch "
                    f"(len {declared}, arbitrary len {len(value)})"
                )
            properties[key] = value[:-1].decode("utf-8", errors="replace")

    def read_format_info(self) -> FormatInfo:
        """Read a format info."""
        self._expect(TagType.FORMAT_INFO)
        encoding = self.read_u8()
        return FormatInfo(encoding=encoding, properties=self.read_proplist())

    def read(self, *pattern: TagType) -> tuple[Any, ...]:
        """Read one value per pattern element and return them in order.

        A STRING element also accepts the null string, a STRING_NULL element yields None
        and either boolean element accepts both boolean tags.
        """
        return tuple(_PATTERN_READERS[tag](self) for tag in pattern)


_PATTERN_READERS: dict[TagType, Callable[[TagStructReader], Any]] = {
    TagType.STRING: TagStructReader.read_string,
    TagType.STRING_NULL: TagStructReader.read_null,
    TagType.U32: TagStructReader.read_u32,
    TagType.U8: TagStructReader.read_u8,
    TagType.U64: TagStructReader.read_u64,
    TagType.S64: TagStructReader.read_s64,
    TagType.SAMPLE_SPEC: TagStructReader.read_sample_spec,
    TagType.ARBITRARY: TagStructReader.read_arbitrary,
    TagType.BOOLEAN_TRUE: TagStructReader.read_bool,
    TagType.BOOLEAN_FALSE: TagStructReader.read_bool,
    TagType.TIMEVAL: TagStructReader.read_timeval,
    TagType.USEC: TagStructReader.read_usec,
    TagType.CHANNEL_MAP: TagStructReader.read_channel_map,
    TagType.CVOLUME: TagStructReader.read_cvolume,
    TagType.PROPLIST: TagStructReader.read_proplist,
    TagType.VOLUME: TagStructReader.read_volume,
    TagType.FORMAT_INFO: TagStructReader.read_format_info,
}
