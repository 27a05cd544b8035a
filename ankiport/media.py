# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Uploaded image storage, addressed by "/uploads/<name>" references."""

from __future__ import annotations

import logging
import secrets
import time
from pathlib import Path
from typing import Optional

from .errors import MediaWriteFailed

logger = logging.getLogger(__name__)

DEFAULT_URL_PREFIX = "/uploads"


class MediaStore:
    """
    Flat directory of media files with generated, collision-resistant names.

    Usage:
        media = MediaStore("/var/lib/ankiport/uploads")
        ref = media.store(data, ".png")   # "/uploads/1700000000000-83jd9s.png"
        media.read(ref)
    """

    def __init__(self, root: str | Path, url_prefix: str = DEFAULT_URL_PREFIX):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    def _new_name(self, suggested_ext: str) -> str:
        ext = suggested_ext or ""
        if ext and not ext.startswith("."):
            ext = "." + ext
        return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext.lower()}"

    def store(self, data: bytes, suggested_ext: str = "") -> str:
        """Write data under a fresh name and return its reference."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            while True:
                name = self._new_name(suggested_ext)
                dest = self.root / name
                try:
                    with open(dest, "xb") as f:
                        f.write(data)
                    break
                except FileExistsError:
                    continue
        except OSError as e:
            raise MediaWriteFailed(suggested_ext or "<media>", str(e)) from e
        logger.debug("Stored %d bytes as %s", len(data), name)
        return f"{self.url_prefix}/{name}"

    def is_local(self, reference: Optional[str]) -> bool:
        return bool(reference) and reference.startswith(self.url_prefix + "/")

    def path_for(self, reference: str) -> Path:
        """Filesystem path for a reference; rejects names outside the root."""
        name = reference
        if self.is_local(reference):
            name = reference[len(self.url_prefix) + 1 :]
        path = (self.root / name).resolve()
        if path.parent != self.root.resolve():
            raise ValueError(f"Media reference escapes store: {reference}")
        return path

    def exists(self, reference: str) -> bool:
        try:
            return self.path_for(reference).is_file()
        except ValueError:
            return False

    def read(self, reference: str) -> bytes:
        return self.path_for(reference).read_bytes()
