# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Export a deck and its cards as an .apkg.

Each card becomes one note of a two-field Front/Back notetype. Both sides
are rendered from Markdown to self-contained HTML (stylesheet included),
and images stored under /uploads are copied into the package media.
"""

from __future__ import annotations

import hashlib
import io
import logging
from pathlib import Path
from typing import Optional

import genanki

from .errors import ExportPrecondition
from .media import MediaStore
from .models import Card, Deck
from .render import CARD_CSS, image_sources, render_side

logger = logging.getLogger(__name__)

MODEL_ID = 1607392319
MODEL_NAME = "ankiport Basic"
EMPTY_FRONT = "(empty)"

CARD_MODEL = genanki.Model(
    MODEL_ID,
    MODEL_NAME,
    fields=[{"name": "Front"}, {"name": "Back"}],
    templates=[
        {
            "name": "Card 1",
            "qfmt": "{{Front}}",
            "afmt": '{{FrontSide}}<hr id="answer">{{Back}}',
        }
    ],
    css=".card { background: #ffffff; }\n" + CARD_CSS,
)


def deck_id_for(deck: Deck) -> int:
    """Stable Anki deck id for an application deck."""
    digest = hashlib.sha1(f"{deck.id}:{deck.name}".encode("utf-8")).hexdigest()
    # genanki wants a positive id that fits in 31 bits
    return (int(digest[:8], 16) & 0x7FFFFFFF) or 1


class _MediaCollector:
    """Tracks the local files an export references, by package filename."""

    def __init__(self, store: MediaStore):
        self.store = store
        self.files: dict[str, Path] = {}

    def register(self, reference: str) -> Optional[str]:
        """Add a stored image to the package, return its name inside it."""
        if not self.store.is_local(reference):
            return None
        try:
            path = self.store.path_for(reference)
        except ValueError as e:
            logger.warning("Skipping media: %s", e)
            return None
        if not path.is_file():
            logger.warning("Skipping missing media file %s", reference)
            return None
        self.files.setdefault(path.name, path)
        return path.name

    def image_src(self, reference: Optional[str]) -> Optional[str]:
        """src for an explicit image field; remote references pass through."""
        if not reference:
            return None
        if not self.store.is_local(reference):
            return reference
        return self.register(reference)

    def rewrite_markdown(self, markdown: str) -> str:
        """Point Markdown images at package filenames."""
        for src in image_sources(markdown):
            name = self.register(src)
            if name:
                markdown = markdown.replace(f"({src}", f"({name}")
        return markdown


class Exporter:
    def __init__(self, media_store: MediaStore):
        self.media_store = media_store

    def run(self, deck: Deck, cards: list[Card]) -> bytes:
        if not cards:
            raise ExportPrecondition(f"Deck '{deck.name}' has no cards to export")

        media = _MediaCollector(self.media_store)
        anki_deck = genanki.Deck(
            deck_id_for(deck), deck.name, description=deck.description or ""
        )

        for card in cards:
            note = self._note_for(card, media)
            if note is None:
                logger.info("Skipping empty card %s", card.id)
                continue
            anki_deck.add_note(note)

        if not anki_deck.notes:
            raise ExportPrecondition(f"Deck '{deck.name}' has no cards with content")

        package = genanki.Package(
            anki_deck, media_files=[str(p) for p in media.files.values()]
        )
        buffer = io.BytesIO()
        package.write_to_file(buffer)
        logger.info(
            "Exported '%s': %d notes, %d media files",
            deck.name,
            len(anki_deck.notes),
            len(media.files),
        )
        return buffer.getvalue()

    def _note_for(self, card: Card, media: _MediaCollector) -> Optional[genanki.Note]:
        if card.is_empty():
            return None

        front_image = media.image_src(card.front_image)
        back_image = media.image_src(card.back_image)
        front_md = media.rewrite_markdown(card.front_text or "")
        back_md = media.rewrite_markdown(card.back_text or "")

        if not front_md.strip() and not front_image:
            front_md = EMPTY_FRONT

        return genanki.Note(
            model=CARD_MODEL,
            fields=[
                render_side(front_md, front_image or ""),
                render_side(back_md, back_image or ""),
            ],
            guid=card.guid or None,
        )


def export_deck(deck: Deck, cards: list[Card], media_store: MediaStore) -> bytes:
    """Build .apkg bytes for a deck. Raises ExportPrecondition if cards is empty."""
    return Exporter(media_store).run(deck, cards)
