import hashlib
from unittest.mock import patch

import pytest

from photomirror.consistency import HashPresence, IdPresence
from photomirror.exceptions import ItemStoreError
from photomirror.local_index import LocalRecord


def test_absent_item_is_not_present(index, store):
    assert IdPresence(index, store).exists("a") is False


def test_indexed_item_with_file_is_present(index, store):
    store.write("2019/x.jpg", b"abc")
    index.insert(LocalRecord(id="a", relative_filename="2019/x.jpg"))

    assert IdPresence(index, store).exists("a") is True
    assert index.lookup("a") is not None


def test_missing_file_heals_the_index(index, store):
    index.insert(LocalRecord(id="b", relative_filename="2019/y.jpg"))
    presence = IdPresence(index, store)

    assert presence.exists("b") is False
    assert index.lookup("b") is None
    # Second call does not toggle or fail
    assert presence.exists("b") is False


def test_id_presence_records_no_hash(index, store):
    rec = IdPresence(index, store).make_record("a", "x.jpg", b"abc")
    assert rec.id == "a"
    assert rec.relative_filename == "x.jpg"
    assert rec.content_hash is None


def test_hash_presence_records_sha256(index, store):
    rec = HashPresence(index, store).make_record("a", "x.jpg", b"abc")
    assert rec.content_hash == hashlib.sha256(b"abc").hexdigest()


def test_hash_presence_accepts_matching_file(index, store):
    presence = HashPresence(index, store)
    store.write("x.jpg", b"abc")
    index.insert(presence.make_record("a", "x.jpg", b"abc"))

    assert presence.exists("a") is True


def test_hash_presence_drops_changed_file(index, store, storage_root):
    presence = HashPresence(index, store)
    store.write("2020/x.jpg", b"abc")
    index.insert(presence.make_record("a", "2020/x.jpg", b"abc"))
    (storage_root / "2020" / "x.jpg").write_bytes(b"tampered")

    assert presence.exists("a") is False
    assert index.lookup("a") is None
    assert not (storage_root / "2020").exists()


def test_hash_presence_trusts_records_without_hash(index, store):
    store.write("x.jpg", b"abc")
    index.insert(LocalRecord(id="a", relative_filename="x.jpg"))

    assert HashPresence(index, store).exists("a") is True


def test_hash_presence_unreadable_file_raises_item_store_error(index, store):
    presence = HashPresence(index, store)
    store.write("x.jpg", b"abc")
    index.insert(presence.make_record("a", "x.jpg", b"abc"))

    with patch.object(store, "hash", side_effect=PermissionError(13, "Permission denied")):
        with pytest.raises(ItemStoreError) as excinfo:
            presence.exists("a")

    assert excinfo.value.item_id == "a"
    assert index.lookup("a") is not None
