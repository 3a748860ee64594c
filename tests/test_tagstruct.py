from __future__ import annotations

import pytest

from aiopulsenative.errors import MalformedFrame
from aiopulsenative.models.core import FormatInfo, SampleSpec, Timeval
from aiopulsenative.models.tagstruct import TagStructReader, TagStructWriter
from aiopulsenative.models.types import TagType


def test_scalar_encoding_is_tagged_big_endian() -> None:
    data = TagStructWriter().put_u32(0x01020304).put_u8(7).put_bool(True).getvalue()
    assert data == b"L\x01\x02\x03\x04B\x07" + b"1"


def test_string_encoding() -> None:
    assert TagStructWriter().put_string("abc").getvalue() == b"tabc\0"
    assert TagStructWriter().put_string("").getvalue() == b"t\0"
    assert TagStructWriter().put_string(None).getvalue() == b"N"


def test_string_rejects_nul() -> None:
    with pytest.raises(ValueError):
        TagStructWriter().put_string("a\0b")


def test_u32_out_of_range() -> None:
    with pytest.raises(ValueError):
        TagStructWriter().put_u32(1 << 32)


def test_values_read_back() -> None:
    spec = SampleSpec(format=3, channels=2, rate=48000)
    data = (
        TagStructWriter()
        .put_u32(0xFFFFFFFF)
        .put_u8(255)
        .put_u64(1 << 40)
        .put_s64(-5)
        .put_string("héllo")
        .put_string(None)
        .put_arbitrary(b"")
        .put_bool(False)
        .put_timeval(Timeval(seconds=10, microseconds=20))
        .put_usec(123456)
        .put_sample_spec(spec)
        .put_channel_map([1, 2])
        .put_cvolume([0x10000, 0x8000])
        .put_volume(0x10000)
        .put_format_info(FormatInfo(encoding=1, properties={"format.rate": "48000"}))
        .getvalue()
    )
    reader = TagStructReader(data)
    assert reader.read_u32() == 0xFFFFFFFF
    assert reader.read_u8() == 255
    assert reader.read_u64() == 1 << 40
    assert reader.read_s64() == -5
    assert reader.read_string() == "héllo"
    assert reader.read_string() == ""
    assert reader.read_arbitrary() == b""
    assert reader.read_bool() is False
    assert reader.read_timeval() == Timeval(seconds=10, microseconds=20)
    assert reader.read_usec() == 123456
    assert reader.read_sample_spec() == spec
    assert reader.read_channel_map() == (1, 2)
    assert reader.read_cvolume() == (0x10000, 0x8000)
    assert reader.read_volume() == 0x10000
    assert reader.read_format_info() == FormatInfo(
        encoding=1, properties={"format.rate": "48000"}
    )
    assert reader.at_end


def test_read_pattern() -> None:
    data = TagStructWriter().put_u32(42).put_string("name").put_null().put_bool(True).getvalue()
    values = TagStructReader(data).read(
        TagType.U32, TagType.STRING, TagType.STRING_NULL, TagType.BOOLEAN_TRUE
    )
    assert values == (42, "name", None, True)


def test_proplist_layout() -> None:
    data = TagStructWriter().put_proplist({"a": "b"}).getvalue()
    assert data == b"P" + b"ta\0" + b"L\0\0\0\x02" + b"x\0\0\0\x02b\0" + b"N"


def test_proplist_omits_empty_values() -> None:
    data = TagStructWriter().put_proplist({"keep": "1", "drop": ""}).getvalue()
    assert TagStructReader(data).read_proplist() == {"keep": "1"}


def test_proplist_reader_accepts_empty_value() -> None:
    # Written by hand since the writer never emits empty values
    data = b"P" + b"tk\0" + b"L\0\0\0\x01" + b"x\0\0\0\x01\0" + b"N"
    assert TagStructReader(data).read_proplist() == {"k": ""}


def test_proplist_length_mismatch() -> None:
    data = b"P" + b"tk\0" + b"L\0\0\0\x03" + b"x\0\0\0\x02v\0" + b"N"
    with pytest.raises(MalformedFrame):
        TagStructReader(data).read_proplist()


def test_proplist_value_without_terminator() -> None:
    data = b"P" + b"tk\0" + b"L\0\0\0\x02" + b"x\0\0\0\x02vv" + b"N"
    with pytest.raises(MalformedFrame):
        TagStructReader(data).read_proplist()


def test_proplist_empty_value_is_rejected() -> None:
    data = b"P" + b"tk\0" + b"L\0\0\0\0" + b"x\0\0\0\0" + b"N"
    with pytest.raises(MalformedFrame):
        TagStructReader(data).read_proplist()


def test_bool_rejects_other_tags() -> None:
    with pytest.raises(MalformedFrame):
        TagStructReader(TagStructWriter().put_u32(1).getvalue()).read_bool()


def test_tag_mismatch() -> None:
    data = TagStructWriter().put_string("x").getvalue()
    with pytest.raises(MalformedFrame):
        TagStructReader(data).read_u32()


def test_unknown_tag_byte() -> None:
    with pytest.raises(MalformedFrame):
        TagStructReader(b"Z\0\0\0\0").read_u32()


def test_truncated_value() -> None:
    with pytest.raises(MalformedFrame):
        TagStructReader(b"L\0\0").read_u32()


def test_unterminated_string() -> None:
    with pytest.raises(MalformedFrame):
        TagStructReader(b"tabc").read_string()


def test_null_string_is_not_a_u32() -> None:
    with pytest.raises(MalformedFrame):
        TagStructReader(b"N").read_u32()


def test_read_null_requires_null_tag() -> None:
    with pytest.raises(MalformedFrame):
        TagStructReader(b"t\0").read_null()
