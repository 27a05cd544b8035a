# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Zstandard framing used by anki21b collections, manifests and media."""

from __future__ import annotations

import logging

import zstandard as zstd

from .errors import CompressionFailed

logger = logging.getLogger(__name__)

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"


def looks_compressed(data: bytes) -> bool:
    """True if data starts with the zstd frame magic."""
    return len(data) >= len(ZSTD_MAGIC) and data[: len(ZSTD_MAGIC)] == ZSTD_MAGIC


def decompress(data: bytes, strict: bool = False) -> bytes:
    """
    Decompress a zstd frame, or return data unchanged if it is not one.

    Anki writes frames without a content size, so a streaming
    decompression object is used instead of a one-shot call.

    With strict=False a broken frame is logged and the input returned
    as-is; with strict=True it raises CompressionFailed.
    """
    if not looks_compressed(data):
        return data
    try:
        return zstd.ZstdDecompressor().decompressobj().decompress(data)
    except zstd.ZstdError as e:
        if strict:
            raise CompressionFailed(f"zstd decompression failed: {e}") from e
        logger.warning("zstd decompression failed, using raw bytes: %s", e)
        return data


def compress(data: bytes, level: int = 3) -> bytes:
    return zstd.ZstdCompressor(level=level).compress(data)
