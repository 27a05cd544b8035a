# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Resolve the package media manifest into {"0": "original.jpg", ...}."""

from __future__ import annotations

import json
import logging
from typing import Optional

from . import protobuf
from .compression import decompress, looks_compressed
from .container import MEDIA_ENTRY, PackageContainer
from .errors import ManifestUnavailable

logger = logging.getLogger(__name__)

MediaMapping = dict[str, str]


def parse_json_manifest(data: bytes) -> Optional[MediaMapping]:
    """Legacy manifest: a JSON object of numeric key -> filename."""
    try:
        parsed = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None
    return {str(k): str(v) for k, v in parsed.items() if isinstance(v, str)}


def parse_protobuf_manifest(data: bytes) -> Optional[MediaMapping]:
    return protobuf.decode_media_manifest(data)


def resolve_media_mapping(container: PackageContainer) -> MediaMapping:
    """
    Build the media mapping, trying plain JSON, decompressed JSON and then
    protobuf. An unreadable manifest yields an empty mapping; images are
    then looked up by their literal names only.
    """
    if not container.has(MEDIA_ENTRY):
        return {}
    raw = container.read(MEDIA_ENTRY)

    mapping = parse_json_manifest(raw)
    if mapping is not None:
        logger.debug("Media manifest: plain JSON, %d entries", len(mapping))
        return mapping

    unpacked = raw
    if looks_compressed(raw):
        unpacked = decompress(raw)
        mapping = parse_json_manifest(unpacked)
        if mapping is not None:
            logger.debug("Media manifest: compressed JSON, %d entries", len(mapping))
            return mapping

    for candidate in (raw, unpacked) if unpacked is not raw else (raw,):
        mapping = parse_protobuf_manifest(candidate)
        if mapping is not None:
            logger.debug("Media manifest: protobuf, %d entries", len(mapping))
            return mapping

    logger.warning(
        "%s", ManifestUnavailable("Media manifest unreadable, matching images by name")
    )
    return {}


def invert_mapping(mapping: MediaMapping) -> dict[str, str]:
    """Original filename -> archive key. The first key wins on duplicates."""
    inverted: dict[str, str] = {}
    for key, name in mapping.items():
        inverted.setdefault(name, key)
    return inverted
