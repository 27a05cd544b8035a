# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Command line entry point.

Usage:
    ankiport import deck.apkg
    ankiport export 3 -o spanish.apkg
    ankiport decks
    ankiport cards 3
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from .config import Settings, load_settings
from .errors import DeckNotFound, PackageError, StoreError
from .exporter import export_deck
from .importer import import_package
from .media import MediaStore
from .store import DeckStore

logger = logging.getLogger(__name__)

UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def _safe_filename(name: str) -> str:
    return UNSAFE_FILENAME.sub("_", name).strip(" .") or "deck"


def _preview(text: Optional[str], width: int = 40) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= width else text[: width - 3] + "..."


def cmd_import(args, store: DeckStore, media: MediaStore) -> int:
    imported = import_package(args.file.read_bytes(), media)
    deck, count = store.create_deck_from_import(imported)
    print(f"Imported deck {deck.id} '{deck.name}' with {count} cards")
    return 0


def cmd_export(args, store: DeckStore, media: MediaStore) -> int:
    deck = store.get_deck(args.deck_id)
    if deck is None:
        raise DeckNotFound(args.deck_id)
    data = export_deck(deck, store.list_cards(deck.id), media)
    out = args.output or Path(f"{_safe_filename(deck.name)}.apkg")
    out.write_bytes(data)
    print(f"Wrote {out} ({len(data)} bytes)")
    return 0


def cmd_decks(args, store: DeckStore, media: MediaStore) -> int:
    decks = store.list_decks()
    if not decks:
        print("No decks")
    for deck in decks:
        print(f"{deck.id:>5}  {deck.card_count:>6} cards  {deck.name}")
    return 0


def cmd_cards(args, store: DeckStore, media: MediaStore) -> int:
    if store.get_deck(args.deck_id) is None:
        raise DeckNotFound(args.deck_id)
    for card in store.list_cards(args.deck_id):
        print(f"{card.id:>6}  {_preview(card.front_text):<40}  {_preview(card.back_text)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ankiport",
        description="Import and export Anki .apkg packages.",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Settings file read after the process environment (default: .env)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Import an .apkg into the deck store")
    p.add_argument("file", type=Path, help="Path to the .apkg file")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("export", help="Export a deck as .apkg")
    p.add_argument("deck_id", type=int)
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file (default: <deck name>.apkg)",
    )
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("decks", help="List decks")
    p.set_defaults(func=cmd_decks)

    p = sub.add_parser("cards", help="List the cards of a deck")
    p.add_argument("deck_id", type=int)
    p.set_defaults(func=cmd_cards)
    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or load_settings(args.env_file)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.debug("Database %s, uploads %s", settings.db_path, settings.uploads_dir)
    media = MediaStore(settings.uploads_dir)
    try:
        with DeckStore(settings.db_path) as store:
            return args.func(args, store, media)
    except (PackageError, StoreError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
