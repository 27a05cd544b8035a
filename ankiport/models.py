# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Data structures shared by the codec and the deck store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# --- Application model ---


@dataclass
class Deck:
    id: int
    name: str
    description: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    card_count: Optional[int] = None


@dataclass
class Card:
    id: int
    deck_id: int
    guid: str
    front_text: Optional[str] = None
    front_image: Optional[str] = None
    back_text: Optional[str] = None
    back_image: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    sort_key: float = 0.0

    def is_empty(self) -> bool:
        return not (
            self.front_text or self.front_image or self.back_text or self.back_image
        )


# --- Import results ---


@dataclass
class ImportedCard:
    """One card produced by an import. Image fields are media store paths."""

    guid: Optional[str] = None
    front_text: Optional[str] = None
    front_image: Optional[str] = None
    back_text: Optional[str] = None
    back_image: Optional[str] = None


@dataclass
class ImportedDeck:
    name: str
    description: Optional[str] = None
    cards: list[ImportedCard] = field(default_factory=list)


# --- Embedded collection ---


@dataclass
class RawNote:
    """A row of the collection's notes table, fields split on 0x1F."""

    id: int
    guid: str
    fields: list[str]
    notetype_id: int


class FieldNameSource(Enum):
    TABLE = "table"
    LEGACY_JSON = "legacy_json"
    UNKNOWN = "unknown"


@dataclass
class FieldNameMap:
    """Ordered field names per notetype id, and where they were read from."""

    source: FieldNameSource = FieldNameSource.UNKNOWN
    names: dict[int, list[str]] = field(default_factory=dict)

    def names_for(self, notetype_id: int) -> list[str]:
        return self.names.get(notetype_id, [])


@dataclass
class LoadedCollection:
    deck_name: str
    field_names: FieldNameMap
    notes: list[RawNote] = field(default_factory=list)
