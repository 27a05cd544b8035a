# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
CollectionReader - reads decks, field names and notes out of the SQLite
collection embedded in an .apkg.

SQLite needs a real file, so the collection bytes are written to a scratch
file that only lives for the duration of load().
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from .compression import decompress, looks_compressed
from .container import COLLECTION_ANKI21B, COLLECTION_CANDIDATES, PackageContainer
from .errors import MissingCollection
from .models import FieldNameMap, FieldNameSource, LoadedCollection, RawNote

logger = logging.getLogger(__name__)

DEFAULT_DECK_ID = 1
DEFAULT_DECK_NAME = "Imported Deck"
FIELD_SEPARATOR = "\x1f"

# Unicase collation for Anki compatibility
_unicase = lambda x, y: (x.lower() > y.lower()) - (x.lower() < y.lower())

ConnectionFactory = Callable[[Path], sqlite3.Connection]


def connect_db(path: Path) -> sqlite3.Connection:
    """Connect to collection DB with required collation."""
    db = sqlite3.connect(str(path))
    db.row_factory = sqlite3.Row
    db.create_collation("unicase", _unicase)
    return db


@contextmanager
def scratch_database(data: bytes) -> Iterator[Path]:
    """Write data to a temporary file and remove it (and any journal) on exit."""
    fd, name = tempfile.mkstemp(prefix="ankiport-", suffix=".anki2")
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield path
    finally:
        for suffix in ("", "-journal", "-wal", "-shm"):
            try:
                Path(f"{path}{suffix}").unlink()
            except FileNotFoundError:
                pass


def _has_table(db: sqlite3.Connection, table: str) -> bool:
    row = db.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None


def _col_value(db: sqlite3.Connection, column: str) -> Optional[str]:
    """Read one JSON column of the legacy col row, None if absent."""
    try:
        row = db.execute(f"SELECT {column} FROM col LIMIT 1").fetchone()
    except sqlite3.OperationalError:
        return None
    if not row or row[0] is None:
        return None
    value = row[0]
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value


class CollectionReader:
    """
    Extract what the importer needs from a package's collection database.

    Usage:
        reader = CollectionReader()
        loaded = reader.load(container)
        loaded.deck_name, loaded.field_names, loaded.notes

    The database handle factory is injectable; the default registers the
    unicase collation used by modern collection schemas.
    """

    def __init__(self, connect: ConnectionFactory = connect_db):
        self.connect = connect

    def load(self, container: PackageContainer) -> LoadedCollection:
        data = self.collection_bytes(container)
        with scratch_database(data) as path:
            db = self.connect(path)
            try:
                return LoadedCollection(
                    deck_name=self.deck_name(db),
                    field_names=self.field_names(db),
                    notes=self.notes(db),
                )
            finally:
                db.close()

    def collection_bytes(self, container: PackageContainer) -> bytes:
        """Read the newest collection entry, decompressing anki21b."""
        entry = container.find_entry(COLLECTION_CANDIDATES)
        if entry is None:
            raise MissingCollection(COLLECTION_CANDIDATES)
        data = container.read(entry)
        if entry == COLLECTION_ANKI21B or looks_compressed(data):
            data = decompress(data, strict=True)
        logger.debug("Using %s (%d bytes)", entry, len(data))
        return data

    # -------------------------------------------------------------------------
    # Deck name
    # -------------------------------------------------------------------------

    def deck_name(self, db: sqlite3.Connection) -> str:
        return (
            self._deck_name_from_col(db)
            or self._deck_name_from_table(db)
            or DEFAULT_DECK_NAME
        )

    def _deck_name_from_col(self, db: sqlite3.Connection) -> Optional[str]:
        blob = _col_value(db, "decks")
        if not blob or len(blob) <= 2:
            return None
        try:
            decks = json.loads(blob)
        except ValueError as e:
            logger.warning("Could not parse col.decks: %s", e)
            return None
        if not isinstance(decks, dict):
            return None
        for did, deck in decks.items():
            if str(did) == str(DEFAULT_DECK_ID) or not isinstance(deck, dict):
                continue
            name = deck.get("name")
            if name:
                return str(name)
        return None

    def _deck_name_from_table(self, db: sqlite3.Connection) -> Optional[str]:
        if not _has_table(db, "decks"):
            return None
        row = db.execute(
            "SELECT name FROM decks WHERE id != ? ORDER BY id LIMIT 1",
            (DEFAULT_DECK_ID,),
        ).fetchone()
        if not row or not row[0]:
            return None
        # Modern schema separates nested deck names with 0x1f
        return str(row[0]).replace(FIELD_SEPARATOR, "::")

    # -------------------------------------------------------------------------
    # Field names
    # -------------------------------------------------------------------------

    def field_names(self, db: sqlite3.Connection) -> FieldNameMap:
        if _has_table(db, "fields"):
            names: dict[int, list[str]] = {}
            for row in db.execute("SELECT ntid, ord, name FROM fields ORDER BY ntid, ord"):
                names.setdefault(int(row[0]), []).append(str(row[2]))
            return FieldNameMap(FieldNameSource.TABLE, names)

        blob = _col_value(db, "models")
        if not blob:
            return FieldNameMap()
        try:
            models = json.loads(blob)
            names = self._names_from_models(models)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not parse col.models, using field positions: %s", e)
            return FieldNameMap()
        if not names:
            return FieldNameMap()
        return FieldNameMap(FieldNameSource.LEGACY_JSON, names)

    @staticmethod
    def _names_from_models(models: dict) -> dict[int, list[str]]:
        names: dict[int, list[str]] = {}
        for mid, model in models.items():
            flds = model.get("flds") or []
            ordered = sorted(
                enumerate(flds), key=lambda item: (item[1].get("ord", item[0]), item[0])
            )
            names[int(mid)] = [str(fld.get("name", "")) for _, fld in ordered]
        return names

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def notes(self, db: sqlite3.Connection) -> list[RawNote]:
        notes = []
        for row in db.execute("SELECT id, guid, flds, mid FROM notes ORDER BY id"):
            flds = row[2]
            if isinstance(flds, bytes):
                flds = flds.decode("utf-8", errors="replace")
            notes.append(
                RawNote(
                    id=int(row[0]),
                    guid=str(row[1] or ""),
                    fields=(flds or "").split(FIELD_SEPARATOR),
                    notetype_id=int(row[3]),
                )
            )
        return notes
