# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Read-only view of an .apkg archive.

An .apkg is a ZIP archive holding:
- collection.anki21b (zstd-compressed SQLite, Anki 2.1.50+), or
  collection.anki21 / collection.anki2 (plain SQLite)
- media: JSON or (compressed) protobuf mapping numeric names to filenames
- 0, 1, 2...: media files
"""

from __future__ import annotations

import io
import zipfile
import zlib
from typing import Iterable, Optional

from .errors import InvalidPackage

COLLECTION_ANKI21B = "collection.anki21b"
COLLECTION_ANKI21 = "collection.anki21"
COLLECTION_ANKI2 = "collection.anki2"

# Newest format first
COLLECTION_CANDIDATES = (COLLECTION_ANKI21B, COLLECTION_ANKI21, COLLECTION_ANKI2)

MEDIA_ENTRY = "media"


class PackageContainer:
    """An opened .apkg archive held in memory."""

    def __init__(self, zf: zipfile.ZipFile):
        self._zf = zf
        self._names = {info.filename for info in zf.infolist() if not info.is_dir()}

    @classmethod
    def open(cls, data: bytes) -> PackageContainer:
        """Open an archive from bytes, raising InvalidPackage if unreadable."""
        if not data:
            raise InvalidPackage("Package is empty")
        try:
            zf = zipfile.ZipFile(io.BytesIO(data), "r")
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as e:
            raise InvalidPackage(f"Not a valid .apkg archive: {e}") from e
        return cls(zf)

    def close(self):
        self._zf.close()

    def __enter__(self) -> PackageContainer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def names(self) -> list[str]:
        return sorted(self._names)

    def has(self, name: str) -> bool:
        return name in self._names

    def find_entry(self, candidates: Iterable[str]) -> Optional[str]:
        """Return the first candidate present in the archive."""
        for name in candidates:
            if name in self._names:
                return name
        return None

    def read(self, name: str) -> bytes:
        """Read an entry, raising InvalidPackage if its data is corrupt."""
        try:
            return self._zf.read(name)
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as e:
            raise InvalidPackage(f"Corrupt entry '{name}': {e}") from e
