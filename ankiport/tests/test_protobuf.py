# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import pytest

from ..errors import TruncatedInput, UnknownWireType
from ..protobuf import (
    WIRE_I32,
    WIRE_I64,
    WIRE_LEN,
    WIRE_VARINT,
    decode_media_manifest,
    read_varint,
    skip_field,
)
from .conftest import media_entries, pb_field, varint


@pytest.mark.parametrize(
    "data, value, pos",
    [
        (b"\x00", 0, 1),
        (b"\x01", 1, 1),
        (b"\x7f", 127, 1),
        (b"\x80\x01", 128, 2),
        (b"\xac\x02", 300, 2),
        (b"\xff\xff\xff\xff\x0f", 0xFFFFFFFF, 5),
    ],
)
def test_read_varint(data, value, pos):
    assert read_varint(data, 0) == (value, pos)


def test_read_varint_from_offset():
    assert read_varint(b"\xff\xac\x02\x05", 1) == (300, 3)


def test_read_varint_truncated():
    with pytest.raises(TruncatedInput):
        read_varint(b"\x80\x80", 0)
    with pytest.raises(TruncatedInput):
        read_varint(b"", 0)


@pytest.mark.parametrize("value", [0, 1, 300, 2**32 + 5, 2**63])
def test_read_varint_matches_encoder(value):
    data = varint(value)
    assert read_varint(data + b"tail", 0) == (value, len(data))


def test_skip_field_each_wire_type():
    assert skip_field(b"\xac\x02rest", 0, WIRE_VARINT) == 2
    assert skip_field(bytes(8) + b"x", 0, WIRE_I64) == 8
    assert skip_field(b"\x03abcx", 0, WIRE_LEN) == 4
    assert skip_field(bytes(4), 0, WIRE_I32) == 4


def test_skip_field_past_end_is_truncated():
    with pytest.raises(TruncatedInput):
        skip_field(b"\x05ab", 0, WIRE_LEN)
    with pytest.raises(TruncatedInput):
        skip_field(bytes(3), 0, WIRE_I32)


@pytest.mark.parametrize("wire_type", [3, 4, 6, 7])
def test_skip_field_unknown_wire_type(wire_type):
    with pytest.raises(UnknownWireType) as e:
        skip_field(b"\x00\x00", 0, wire_type)
    assert e.value.wire_type == wire_type


def test_decode_manifest_uses_entry_index():
    data = media_entries(("a.jpg", 10, b"\x01" * 20), ("b.png", 20, b"\x02" * 20))
    assert decode_media_manifest(data) == {"0": "a.jpg", "1": "b.png"}


def test_decode_manifest_entry_without_name_keeps_index():
    data = (
        pb_field(1, WIRE_LEN, pb_field(2, WIRE_VARINT, 5))
        + pb_field(1, WIRE_LEN, pb_field(1, WIRE_LEN, "second.png"))
    )
    assert decode_media_manifest(data) == {"1": "second.png"}


def test_decode_manifest_skips_unknown_fields():
    entry = (
        pb_field(1, WIRE_LEN, "cat.png")
        + pb_field(2, WIRE_VARINT, 99)
        + pb_field(4, WIRE_I32, bytes(4))
        + pb_field(5, WIRE_I64, bytes(8))
        + pb_field(9, WIRE_LEN, "future field")
    )
    data = pb_field(7, WIRE_VARINT, 1) + pb_field(1, WIRE_LEN, entry)
    assert decode_media_manifest(data) == {"0": "cat.png"}


def test_decode_manifest_unicode_name():
    data = media_entries(("猫 photo.png", 1, b""))
    assert decode_media_manifest(data) == {"0": "猫 photo.png"}


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"{not protobuf",
        pb_field(1, WIRE_LEN, pb_field(1, WIRE_LEN, "x"))[:-1],
        b"\x0b\x00",  # wire type 3
        pb_field(1, WIRE_LEN, pb_field(1, WIRE_LEN, b"\xff\xfe")),  # name is not utf-8
    ],
)
def test_decode_manifest_failures_return_none(data):
    assert decode_media_manifest(data) is None
