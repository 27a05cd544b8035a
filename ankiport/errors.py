# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Exceptions raised by the package codec and the deck store."""

from __future__ import annotations

from typing import Optional


# --- Package codec ---


class PackageError(Exception):
    pass


class InvalidPackage(PackageError):
    """The bytes are not a readable .apkg container."""


class MissingCollection(PackageError):
    def __init__(self, candidates: tuple[str, ...]):
        self.candidates = candidates
        super().__init__(
            "No collection database in package (looked for: "
            + ", ".join(candidates)
            + ")"
        )


class CompressionFailed(PackageError):
    pass


class ManifestUnavailable(PackageError):
    """No strategy could read the media manifest. Never raised to callers."""


class MediaWriteFailed(PackageError):
    def __init__(self, reference: str, reason: str = ""):
        self.reference = reference
        self.reason = reason
        msg = f"Could not store media '{reference}'"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class ImportFailed(PackageError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Import failed: {reason}")


class ExportPrecondition(PackageError, ValueError):
    pass


# --- Protobuf ---


class ProtobufError(ValueError):
    pass


class TruncatedInput(ProtobufError):
    def __init__(self, pos: int, length: int):
        self.pos, self.length = pos, length
        super().__init__(f"Buffer ended at {length} while reading at {pos}")


class UnknownWireType(ProtobufError):
    def __init__(self, wire_type: int, pos: Optional[int] = None):
        self.wire_type = wire_type
        self.pos = pos
        super().__init__(f"Unknown wire type {wire_type}")


# --- Deck store ---


class StoreError(Exception):
    pass


class DeckNotFound(StoreError):
    def __init__(self, deck_id: int):
        self.deck_id = deck_id
        super().__init__(f"Deck {deck_id} not found")


class CardNotFound(StoreError):
    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")
