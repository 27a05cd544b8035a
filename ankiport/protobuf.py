# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Minimal protobuf wire-format reader, enough for the modern media manifest.

The anki21b ``media`` entry is a ``MediaEntries`` message::

    message MediaEntries { repeated MediaEntry entries = 1; }
    message MediaEntry {
        string name = 1;
        uint32 size = 2;
        bytes sha1 = 3;
    }

The position of an entry in the list is its numeric filename inside the
package archive.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import ProtobufError, TruncatedInput, UnknownWireType

logger = logging.getLogger(__name__)

WIRE_VARINT = 0
WIRE_I64 = 1
WIRE_LEN = 2
WIRE_I32 = 5


def read_varint(data: bytes, pos: int) -> tuple[int, int]:
    """Read a varint from bytes, return (value, new_position)."""
    result = 0
    shift = 0
    while pos < len(data):
        b = data[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if not (b & 0x80):
            return result, pos
        shift += 7
    raise TruncatedInput(pos, len(data))


def _advance(data: bytes, pos: int, count: int) -> int:
    end = pos + count
    if end > len(data):
        raise TruncatedInput(end, len(data))
    return end


def skip_field(data: bytes, pos: int, wire_type: int) -> int:
    """Skip one value of the given wire type, return the new position."""
    if wire_type == WIRE_VARINT:
        _, pos = read_varint(data, pos)
        return pos
    if wire_type == WIRE_I64:
        return _advance(data, pos, 8)
    if wire_type == WIRE_LEN:
        length, pos = read_varint(data, pos)
        return _advance(data, pos, length)
    if wire_type == WIRE_I32:
        return _advance(data, pos, 4)
    raise UnknownWireType(wire_type, pos)


def read_tag(data: bytes, pos: int) -> tuple[int, int, int]:
    """Read a field tag, return (field_number, wire_type, new_position)."""
    tag, pos = read_varint(data, pos)
    return tag >> 3, tag & 0x07, pos


def read_length_delimited(data: bytes, pos: int) -> tuple[bytes, int]:
    length, pos = read_varint(data, pos)
    end = _advance(data, pos, length)
    return data[pos:end], end


def _decode_media_entry(entry: bytes) -> Optional[str]:
    name: Optional[str] = None
    pos = 0
    while pos < len(entry):
        field_num, wire_type, pos = read_tag(entry, pos)
        if field_num == 1 and wire_type == WIRE_LEN:
            raw, pos = read_length_delimited(entry, pos)
            name = raw.decode("utf-8")
        else:
            # 2 = size, 3 = sha1, anything newer is skipped by wire type
            pos = skip_field(entry, pos, wire_type)
    return name


def decode_media_manifest(data: bytes) -> Optional[dict[str, str]]:
    """
    Decode a MediaEntries message into {"0": "name.jpg", ...}.

    Returns None when the data does not parse or names no files, so the
    caller can move on to its next strategy.
    """
    mapping: dict[str, str] = {}
    index = 0
    pos = 0
    try:
        while pos < len(data):
            field_num, wire_type, pos = read_tag(data, pos)
            if field_num != 1 or wire_type != WIRE_LEN:
                pos = skip_field(data, pos, wire_type)
                continue
            entry, pos = read_length_delimited(data, pos)
            name = _decode_media_entry(entry)
            if name:
                mapping[str(index)] = name
            index += 1
    except (ProtobufError, UnicodeDecodeError) as e:
        logger.debug("Media manifest is not protobuf: %s", e)
        return None
    return mapping or None
