#!/usr/bin/env python3
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Shared test utilities: builders for legacy and modern .apkg packages.

Packages are generated at test time; nothing binary is checked in.
"""

import hashlib
import io
import json
import sqlite3
import time
import zipfile
import zlib
from pathlib import Path
from typing import Optional

import pytest

from ..collection import connect_db
from ..compression import compress
from ..media import MediaStore
from ..protobuf import WIRE_LEN, WIRE_VARINT
from ..store import DeckStore

NOTETYPE_ID = 1600000000000
DECK_ID = 1700000000000

# Smallest byte strings that still look like the formats they claim
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + bytes(range(32))
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"JFIF\x00" + bytes(range(64, 96))


def varint(value: int) -> bytes:
    out = bytearray()
    while True:
        low, value = value & 0x7F, value >> 7
        if not value:
            out.append(low)
            return bytes(out)
        out.append(low | 0x80)


def pb_field(field_num: int, wire_type: int, payload) -> bytes:
    """One tagged field; varint payloads are ints, LEN payloads str or bytes."""
    key = varint(field_num << 3 | wire_type)
    if wire_type == WIRE_VARINT:
        return key + varint(payload)
    if wire_type == WIRE_LEN:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return key + varint(len(payload)) + payload
    return key + payload


def media_entries(*entries: tuple[str, int, bytes]) -> bytes:
    """A MediaEntries message from (name, size, sha1) tuples."""
    out = b""
    for name, size, sha1 in entries:
        entry = pb_field(1, WIRE_LEN, name) + pb_field(2, WIRE_VARINT, size)
        if sha1:
            entry += pb_field(3, WIRE_LEN, sha1)
        out += pb_field(1, WIRE_LEN, entry)
    return out


def add_note(
    db: sqlite3.Connection, fields: list[str], guid: str, mid: int = NOTETYPE_ID
) -> int:
    """Add a note to a fixture collection. Returns note id."""
    row = db.execute("SELECT COALESCE(MAX(id), 0) FROM notes").fetchone()
    note_id = max(int(time.time() * 1000), row[0] + 1)
    flds = "\x1f".join(fields)
    csum = zlib.crc32(fields[0].encode()) & 0xFFFFFFFF if fields else 0
    db.execute(
        "INSERT INTO notes (id,guid,mid,mod,usn,tags,flds,sfld,csum,flags,data) VALUES (?,?,?,?,-1,'',?,?,?,0,'')",
        (note_id, guid, mid, int(time.time()), flds, fields[0] if fields else "", csum),
    )
    return note_id


def _create_notes_table(db: sqlite3.Connection):
    db.execute(
        """CREATE TABLE notes (
            id integer primary key, guid text not null, mid integer not null,
            mod integer not null, usn integer not null, tags text not null,
            flds text not null, sfld integer not null, csum integer not null,
            flags integer not null, data text not null)"""
    )


def build_legacy_collection(
    path: Path,
    notes: list[tuple[str, list[str]]],
    deck_name: Optional[str] = "Legacy Deck",
    field_names: Optional[list[str]] = None,
    models_json: Optional[str] = None,
) -> bytes:
    """A schema 11 collection: deck and notetype metadata as JSON in col."""
    field_names = field_names if field_names is not None else ["Front", "Back"]
    decks = {"1": {"id": 1, "name": "Default"}}
    if deck_name:
        decks[str(DECK_ID)] = {"id": DECK_ID, "name": deck_name}
    if models_json is None:
        models_json = json.dumps(
            {
                str(NOTETYPE_ID): {
                    "id": NOTETYPE_ID,
                    "name": "Basic",
                    "flds": [{"name": n, "ord": i} for i, n in enumerate(field_names)],
                }
            }
        )

    db = sqlite3.connect(str(path))
    db.execute(
        """CREATE TABLE col (
            id integer primary key, crt integer not null, mod integer not null,
            scm integer not null, ver integer not null, models text not null,
            decks text not null)"""
    )
    db.execute(
        "INSERT INTO col VALUES (1, 0, 0, 0, 11, ?, ?)",
        (models_json, json.dumps(decks)),
    )
    _create_notes_table(db)
    for guid, fields in notes:
        add_note(db, fields, guid)
    db.commit()
    db.close()
    return path.read_bytes()


def build_modern_collection(
    path: Path,
    notes: list[tuple[str, list[str]]],
    deck_name: Optional[str] = "Modern Deck",
    field_names: Optional[list[str]] = None,
) -> bytes:
    """A schema 18 collection: decks, notetypes and fields tables."""
    field_names = field_names if field_names is not None else ["Front", "Back"]
    db = connect_db(path)
    db.execute(
        """CREATE TABLE col (
            id integer primary key, crt integer not null, mod integer not null,
            scm integer not null, ver integer not null, models text not null,
            decks text not null)"""
    )
    db.execute("INSERT INTO col VALUES (1, 0, 0, 0, 18, '', '')")
    db.execute(
        "CREATE TABLE decks (id integer primary key not null, name text not null collate unicase)"
    )
    db.execute("INSERT INTO decks VALUES (1, 'Default')")
    if deck_name:
        db.execute("INSERT INTO decks VALUES (?, ?)", (DECK_ID, deck_name))
    db.execute(
        "CREATE TABLE notetypes (id integer not null primary key, name text not null collate unicase)"
    )
    db.execute("INSERT INTO notetypes VALUES (?, 'Basic')", (NOTETYPE_ID,))
    db.execute(
        """CREATE TABLE fields (
            ntid integer not null, ord integer not null,
            name text not null collate unicase, config blob not null,
            primary key (ntid, ord))"""
    )
    for ord_, name in enumerate(field_names):
        db.execute("INSERT INTO fields VALUES (?, ?, ?, x'')", (NOTETYPE_ID, ord_, name))
    _create_notes_table(db)
    for guid, fields in notes:
        add_note(db, fields, guid)
    db.commit()
    db.close()
    return path.read_bytes()


def build_apkg(
    collection_name: Optional[str],
    collection: bytes = b"",
    manifest: Optional[bytes] = None,
    media: Optional[dict[str, bytes]] = None,
) -> bytes:
    """Zip the given entries into .apkg bytes."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        if collection_name:
            zf.writestr(collection_name, collection)
        if manifest is not None:
            zf.writestr("media", manifest)
        for name, data in (media or {}).items():
            zf.writestr(name, data)
    return buf.getvalue()


def legacy_package(path: Path, notes: list[tuple[str, list[str]]], **kwargs) -> bytes:
    """collection.anki2 with a JSON manifest naming cat.png and dog.jpg."""
    collection = build_legacy_collection(path, notes, **kwargs)
    return build_apkg(
        "collection.anki2",
        collection,
        json.dumps({"0": "cat.png", "1": "dog.jpg"}).encode(),
        {"0": PNG_BYTES, "1": JPEG_BYTES},
    )


def modern_package(path: Path, notes: list[tuple[str, list[str]]], **kwargs) -> bytes:
    """collection.anki21b with a compressed protobuf manifest and media."""
    collection = build_modern_collection(path, notes, **kwargs)
    entries = [
        (name, len(data), hashlib.sha1(data).digest())
        for name, data in (("cat.png", PNG_BYTES), ("dog.jpg", JPEG_BYTES))
    ]
    return build_apkg(
        "collection.anki21b",
        compress(collection),
        compress(media_entries(*entries)),
        {"0": compress(PNG_BYTES), "1": compress(JPEG_BYTES)},
    )


@pytest.fixture
def media_store(tmp_path) -> MediaStore:
    return MediaStore(tmp_path / "uploads")


@pytest.fixture
def deck_store(tmp_path):
    with DeckStore(tmp_path / "ankiport.db") as store:
        yield store


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "fixture.anki2"
