# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
DeckStore - SQLite persistence for decks and cards.

Cards within a deck are ordered by a sparse real-valued sort key:
appending uses last + SORT_KEY_STEP, inserting between two cards uses the
mean of their keys, so reordering never renumbers existing rows.
"""

from __future__ import annotations

import logging
import secrets
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from .errors import CardNotFound, DeckNotFound
from .models import Card, Deck, ImportedCard, ImportedDeck

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
SORT_KEY_STEP = 1000.0
GUID_BYTES = 32  # 64 hex characters

SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS decks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    deck_id INTEGER NOT NULL,
    guid TEXT NOT NULL UNIQUE,
    front_text TEXT,
    front_image TEXT,
    back_text TEXT,
    back_image TEXT,
    sort_key REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (deck_id) REFERENCES decks(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_cards_deck_sort ON cards (deck_id, sort_key);
"""

CARD_COLUMNS = (
    "id, deck_id, guid, front_text, front_image, back_text, back_image, "
    "created_at, updated_at, sort_key"
)

CARD_ORDERS = {
    "custom": "ORDER BY sort_key ASC, created_at ASC, id ASC",
    "created": "ORDER BY created_at DESC, id DESC",
    "updated": "ORDER BY updated_at DESC, id DESC",
}

_UNSET = object()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def generate_guid() -> str:
    return secrets.token_hex(GUID_BYTES)


def _card_from_row(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        deck_id=row["deck_id"],
        guid=row["guid"],
        front_text=row["front_text"],
        front_image=row["front_image"],
        back_text=row["back_text"],
        back_image=row["back_image"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        sort_key=row["sort_key"],
    )


def _deck_from_row(row: sqlite3.Row) -> Deck:
    keys = row.keys()
    return Deck(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        card_count=row["card_count"] if "card_count" in keys else None,
    )


class DeckStore:
    """
    Decks and cards in one SQLite database.

    Usage:
        store = DeckStore("data/ankiport.db")
        deck = store.create_deck("Spanish")
        store.create_card(deck.id, front_text="hola", back_text="hello")
        store.list_cards(deck.id)
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db = sqlite3.connect(str(db_path))
        self.db.row_factory = sqlite3.Row
        self.db.execute("PRAGMA foreign_keys = ON")
        self._init_db()

    def _init_db(self):
        self.db.executescript(SCHEMA)
        self.db.execute(
            "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self.db.commit()

    def close(self):
        """Close the database connection."""
        try:
            self.db.close()
        except sqlite3.Error:
            pass

    def __enter__(self) -> DeckStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Decks
    # -------------------------------------------------------------------------

    def create_deck(self, name: str, description: Optional[str] = None) -> Deck:
        name = (name or "").strip()
        if not name:
            raise ValueError("Deck name must not be empty")
        now = _now()
        cur = self.db.execute(
            """INSERT INTO decks (name, description, created_at, updated_at)
               VALUES (?, ?, ?, ?)""",
            (name, description or None, now, now),
        )
        self.db.commit()
        return Deck(cur.lastrowid, name, description or None, now, now)

    def get_deck(self, deck_id: int) -> Optional[Deck]:
        row = self.db.execute(
            """SELECT d.*, (SELECT COUNT(*) FROM cards c WHERE c.deck_id = d.id)
                      AS card_count
               FROM decks d WHERE d.id = ?""",
            (deck_id,),
        ).fetchone()
        return _deck_from_row(row) if row else None

    def list_decks(self) -> list[Deck]:
        """All decks with card counts, newest first."""
        rows = self.db.execute(
            """SELECT d.*, COUNT(c.id) AS card_count
               FROM decks d LEFT JOIN cards c ON c.deck_id = d.id
               GROUP BY d.id
               ORDER BY d.created_at DESC, d.id DESC"""
        ).fetchall()
        return [_deck_from_row(row) for row in rows]

    def update_deck(
        self, deck_id: int, name: Optional[str] = None, description: object = _UNSET
    ) -> Deck:
        deck = self.get_deck(deck_id)
        if deck is None:
            raise DeckNotFound(deck_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValueError("Deck name must not be empty")
            deck.name = name
        if description is not _UNSET:
            deck.description = description or None
        deck.updated_at = _now()
        self.db.execute(
            "UPDATE decks SET name = ?, description = ?, updated_at = ? WHERE id = ?",
            (deck.name, deck.description, deck.updated_at, deck_id),
        )
        self.db.commit()
        return deck

    def delete_deck(self, deck_id: int) -> None:
        """Delete a deck and, through the foreign key, its cards."""
        cur = self.db.execute("DELETE FROM decks WHERE id = ?", (deck_id,))
        self.db.commit()
        if cur.rowcount == 0:
            raise DeckNotFound(deck_id)

    def _require_deck(self, deck_id: int) -> None:
        if not self.db.execute("SELECT 1 FROM decks WHERE id = ?", (deck_id,)).fetchone():
            raise DeckNotFound(deck_id)

    # -------------------------------------------------------------------------
    # Guids and sort keys
    # -------------------------------------------------------------------------

    def _guid_taken(self, guid: str) -> bool:
        row = self.db.execute("SELECT 1 FROM cards WHERE guid = ?", (guid,)).fetchone()
        return row is not None

    def _unique_guid(self, wanted: Optional[str], reserved: set[str]) -> str:
        """Keep the wanted guid if it is free, otherwise generate a new one."""
        guid = wanted
        while not guid or guid in reserved or self._guid_taken(guid):
            if guid:
                logger.debug("Guid %s already in use, generating a new one", guid)
            guid = generate_guid()
        reserved.add(guid)
        return guid

    def _last_sort_key(self, deck_id: int) -> Optional[float]:
        row = self.db.execute(
            "SELECT MAX(sort_key) FROM cards WHERE deck_id = ?", (deck_id,)
        ).fetchone()
        return row[0] if row and row[0] is not None else None

    def _anchor_key(self, deck_id: int, anchor_id: int) -> Optional[float]:
        row = self.db.execute(
            "SELECT sort_key, deck_id FROM cards WHERE id = ?", (anchor_id,)
        ).fetchone()
        if row is None or row["deck_id"] != deck_id:
            return None
        return row["sort_key"]

    def sort_key_for(
        self,
        deck_id: int,
        insert_before_id: Optional[int] = None,
        insert_after_id: Optional[int] = None,
    ) -> float:
        """Sort key for a new card appended or placed next to an anchor."""
        if insert_before_id is not None:
            anchor = self._anchor_key(deck_id, insert_before_id)
            if anchor is not None:
                left = self.db.execute(
                    """SELECT sort_key FROM cards WHERE deck_id = ? AND sort_key < ?
                       ORDER BY sort_key DESC LIMIT 1""",
                    (deck_id, anchor),
                ).fetchone()
                return (left[0] + anchor) / 2 if left else anchor - SORT_KEY_STEP
        elif insert_after_id is not None:
            anchor = self._anchor_key(deck_id, insert_after_id)
            if anchor is not None:
                right = self.db.execute(
                    """SELECT sort_key FROM cards WHERE deck_id = ? AND sort_key > ?
                       ORDER BY sort_key ASC LIMIT 1""",
                    (deck_id, anchor),
                ).fetchone()
                return (right[0] + anchor) / 2 if right else anchor + SORT_KEY_STEP

        last = self._last_sort_key(deck_id)
        return last + SORT_KEY_STEP if last is not None else SORT_KEY_STEP

    # -------------------------------------------------------------------------
    # Cards
    # -------------------------------------------------------------------------

    def create_card(
        self,
        deck_id: int,
        front_text: Optional[str] = None,
        front_image: Optional[str] = None,
        back_text: Optional[str] = None,
        back_image: Optional[str] = None,
        guid: Optional[str] = None,
        insert_before_id: Optional[int] = None,
        insert_after_id: Optional[int] = None,
    ) -> Card:
        self._require_deck(deck_id)
        now = _now()
        card = Card(
            id=0,
            deck_id=deck_id,
            guid=self._unique_guid(guid, set()),
            front_text=front_text,
            front_image=front_image,
            back_text=back_text,
            back_image=back_image,
            created_at=now,
            updated_at=now,
            sort_key=self.sort_key_for(deck_id, insert_before_id, insert_after_id),
        )
        card.id = self._insert_card(card)
        self.db.commit()
        return card

    def _insert_card(self, card: Card) -> int:
        cur = self.db.execute(
            """INSERT INTO cards (deck_id, guid, front_text, front_image, back_text,
                                  back_image, sort_key, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                card.deck_id,
                card.guid,
                card.front_text,
                card.front_image,
                card.back_text,
                card.back_image,
                card.sort_key,
                card.created_at,
                card.updated_at,
            ),
        )
        return cur.lastrowid

    def get_card(self, card_id: int) -> Optional[Card]:
        row = self.db.execute(
            f"SELECT {CARD_COLUMNS} FROM cards WHERE id = ?", (card_id,)
        ).fetchone()
        return _card_from_row(row) if row else None

    def list_cards(self, deck_id: Optional[int] = None, order: str = "custom") -> list[Card]:
        if order not in CARD_ORDERS:
            raise ValueError(f"Unknown card order '{order}'")
        if deck_id is None:
            rows = self.db.execute(f"SELECT {CARD_COLUMNS} FROM cards {CARD_ORDERS[order]}")
        else:
            rows = self.db.execute(
                f"SELECT {CARD_COLUMNS} FROM cards WHERE deck_id = ? {CARD_ORDERS[order]}",
                (deck_id,),
            )
        return [_card_from_row(row) for row in rows]

    def update_card(self, card_id: int, **changes: Optional[str]) -> Card:
        """Update card text/image fields; only the given keyword fields change."""
        allowed = {"front_text", "front_image", "back_text", "back_image"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update card fields: {', '.join(sorted(unknown))}")
        card = self.get_card(card_id)
        if card is None:
            raise CardNotFound(card_id)
        for key, value in changes.items():
            setattr(card, key, value)
        card.updated_at = _now()
        self.db.execute(
            """UPDATE cards SET front_text = ?, front_image = ?, back_text = ?,
                                back_image = ?, updated_at = ?
               WHERE id = ?""",
            (
                card.front_text,
                card.front_image,
                card.back_text,
                card.back_image,
                card.updated_at,
                card_id,
            ),
        )
        self.db.commit()
        return card

    def delete_card(self, card_id: int) -> None:
        cur = self.db.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        self.db.commit()
        if cur.rowcount == 0:
            raise CardNotFound(card_id)

    def bulk_insert_cards(self, deck_id: int, cards: Iterable[ImportedCard]) -> int:
        """Append cards to a deck in one transaction. Returns the count."""
        self._require_deck(deck_id)
        now = _now()
        last = self._last_sort_key(deck_id) or 0.0
        reserved: set[str] = set()
        count = 0
        try:
            for imported in cards:
                last += SORT_KEY_STEP
                self._insert_card(
                    Card(
                        id=0,
                        deck_id=deck_id,
                        guid=self._unique_guid(imported.guid, reserved),
                        front_text=imported.front_text,
                        front_image=imported.front_image,
                        back_text=imported.back_text,
                        back_image=imported.back_image,
                        created_at=now,
                        updated_at=now,
                        sort_key=last,
                    )
                )
                count += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return count

    def create_deck_from_import(self, imported: ImportedDeck) -> tuple[Deck, int]:
        """Persist an imported deck and its cards."""
        deck = self.create_deck(imported.name, imported.description)
        try:
            count = self.bulk_insert_cards(deck.id, imported.cards)
        except Exception:
            self.delete_deck(deck.id)
            raise
        deck.card_count = count
        return deck, count
