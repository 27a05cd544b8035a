# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
ankiport - read and write Anki .apkg packages.

Handles legacy (collection.anki2/anki21, JSON media manifest) and modern
(zstd-compressed collection.anki21b, protobuf media manifest) packages.

Usage:
    from ankiport import MediaStore, DeckStore, import_package, export_deck

    media = MediaStore("data/uploads")
    imported = import_package(Path("deck.apkg").read_bytes(), media)

    with DeckStore("data/ankiport.db") as store:
        deck, count = store.create_deck_from_import(imported)
        data = export_deck(deck, store.list_cards(deck.id), media)
"""

from .errors import (
    # Codec
    PackageError,
    InvalidPackage,
    MissingCollection,
    CompressionFailed,
    ManifestUnavailable,
    MediaWriteFailed,
    ImportFailed,
    ExportPrecondition,
    ProtobufError,
    # Store
    StoreError,
    DeckNotFound,
    CardNotFound,
)
from .models import Card, Deck, ImportedCard, ImportedDeck
from .media import MediaStore
from .importer import Importer, import_package
from .exporter import Exporter, export_deck
from .store import DeckStore, generate_guid

__all__ = [
    "PackageError",
    "InvalidPackage",
    "MissingCollection",
    "CompressionFailed",
    "ManifestUnavailable",
    "MediaWriteFailed",
    "ImportFailed",
    "ExportPrecondition",
    "ProtobufError",
    "StoreError",
    "DeckNotFound",
    "CardNotFound",
    "Card",
    "Deck",
    "ImportedCard",
    "ImportedDeck",
    "MediaStore",
    "Importer",
    "import_package",
    "Exporter",
    "export_deck",
    "DeckStore",
    "generate_guid",
]

__version__ = "1.0.0"
