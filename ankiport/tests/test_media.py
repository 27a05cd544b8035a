# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import re

import pytest

from ..errors import MediaWriteFailed
from ..media import MediaStore


def test_store_and_read(media_store):
    ref = media_store.store(b"image", ".PNG")
    assert re.fullmatch(r"/uploads/\d+-[0-9a-f]{12}\.png", ref)
    assert media_store.exists(ref)
    assert media_store.read(ref) == b"image"


def test_names_are_unique(media_store):
    refs = {media_store.store(b"x", "jpg") for _ in range(20)}
    assert len(refs) == 20
    assert all(ref.endswith(".jpg") for ref in refs)


def test_store_without_extension(media_store):
    assert re.fullmatch(r"/uploads/\d+-[0-9a-f]{12}", media_store.store(b"x"))


@pytest.mark.parametrize(
    "reference", ["/uploads/../secret.txt", "../outside.png", "/uploads/sub/dir.png"]
)
def test_path_escape_rejected(media_store, reference):
    with pytest.raises(ValueError):
        media_store.path_for(reference)
    assert not media_store.exists(reference)


def test_is_local(media_store):
    assert media_store.is_local("/uploads/a.png")
    assert not media_store.is_local("https://example.com/a.png")
    assert not media_store.is_local("")
    assert not media_store.is_local(None)


def test_write_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    store = MediaStore(blocker / "uploads")
    with pytest.raises(MediaWriteFailed):
        store.store(b"x", ".png")
