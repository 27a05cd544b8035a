# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Import an .apkg into the application's card model.

Usage:
    media = MediaStore("uploads")
    deck = import_package(Path("deck.apkg").read_bytes(), media)
    deck.name, deck.cards
"""

from __future__ import annotations

import html
import logging
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote

from .collection import CollectionReader
from .compression import decompress
from .container import PackageContainer
from .errors import CompressionFailed, ImportFailed, InvalidPackage, MediaWriteFailed
from .fields import classify_fields
from .manifest import MediaMapping, invert_mapping, resolve_media_mapping
from .media import MediaStore
from .models import ImportedCard, ImportedDeck, RawNote

logger = logging.getLogger(__name__)


class MediaExtractor:
    """Copy images referenced by note fields out of the package."""

    def __init__(
        self, container: PackageContainer, mapping: MediaMapping, store: MediaStore
    ):
        self.container = container
        self.by_name = invert_mapping(mapping)
        self.store = store

    def _candidates(self, src: str) -> list[str]:
        names = [src, html.unescape(src), unquote(html.unescape(src))]
        return list(dict.fromkeys(names))

    def entry_for(self, src: str) -> Optional[tuple[str, str]]:
        """Find (archive entry, original name) for an <img src> reference."""
        for name in self._candidates(src):
            key = self.by_name.get(name)
            if key is not None and self.container.has(key):
                return key, name
        for name in self._candidates(src):
            if self.container.has(name):
                return name, name
        return None

    def extract(self, src: str) -> Optional[str]:
        found = self.entry_for(src)
        if found is None:
            logger.warning("Image '%s' not found in package", src)
            return None
        entry, original = found
        try:
            data = decompress(self.container.read(entry), strict=True)
            return self.store.store(data, PurePosixPath(original).suffix)
        except MediaWriteFailed as e:
            logger.warning("%s", e)
        except (InvalidPackage, CompressionFailed) as e:
            logger.warning("%s", MediaWriteFailed(src, str(e)))
        return None


class Importer:
    def __init__(
        self, media_store: MediaStore, reader: Optional[CollectionReader] = None
    ):
        self.media_store = media_store
        self.reader = reader or CollectionReader()

    def run(self, data: bytes) -> ImportedDeck:
        try:
            return self._import(data)
        except ImportFailed:
            raise
        except Exception as e:
            logger.error("Failed to import package: %s", e)
            raise ImportFailed(str(e) or type(e).__name__) from e

    def _import(self, data: bytes) -> ImportedDeck:
        with PackageContainer.open(data) as container:
            mapping = resolve_media_mapping(container)
            loaded = self.reader.load(container)
            extractor = MediaExtractor(container, mapping, self.media_store)
            cards = [
                self._card_from_note(
                    note, loaded.field_names.names_for(note.notetype_id), extractor
                )
                for note in loaded.notes
            ]
        logger.info(
            "Imported '%s': %d cards (field names from %s, %d media entries)",
            loaded.deck_name,
            len(cards),
            loaded.field_names.source.value,
            len(mapping),
        )
        return ImportedDeck(name=loaded.deck_name, cards=cards)

    @staticmethod
    def _card_from_note(
        note: RawNote, names: list[str], extractor: MediaExtractor
    ) -> ImportedCard:
        sides = classify_fields(note.fields, names, extractor.extract)
        return ImportedCard(
            guid=note.guid or None,
            front_text=sides.front_text,
            front_image=sides.front_image,
            back_text=sides.back_text,
            back_image=sides.back_image,
        )


def import_package(
    data: bytes, media_store: MediaStore, reader: Optional[CollectionReader] = None
) -> ImportedDeck:
    """Import .apkg bytes. Raises ImportFailed for any unrecovered error."""
    return Importer(media_store, reader).run(data)
