"""
Presence checks that keep the index honest about the filesystem.

Both strategies answer "is this item already mirrored?" and repair the
index on the spot when it claims a file that is no longer there. They
also decide what record gets written for a freshly stored item.
"""

import hashlib

from loguru import logger

from photomirror.exceptions import ItemStoreError
from photomirror.local_index import LocalIndex, LocalRecord
from photomirror.local_store import FileStore


class IdPresence:
    """
    Items are identified purely by their remote ID.
    """

    def __init__(self, index: LocalIndex, store: FileStore):
        self.index = index
        self.store = store

    def exists(self, item_id: str) -> bool:
        """
        True if the item is indexed and its file is on disk. An index entry
        whose file has vanished is dropped, so repeated calls stay False.
        """
        record = self.index.lookup(item_id)
        if record is None:
            return False

        if self.store.exists(record.relative_filename):
            return True

        logger.warning(
            f"{record.relative_filename} found in the DB but not on the file system; "
            f"forgetting item {item_id}"
        )
        self.index.delete(item_id)
        return False

    def make_record(self, item_id: str, relative: str, data: bytes) -> LocalRecord:
        return LocalRecord(id=item_id, relative_filename=relative)


class HashPresence(IdPresence):
    """
    Also records a SHA-256 of each stored file and re-checks it. A file
    whose content no longer matches is deleted along with its record so
    that the next pass downloads it again.
    """

    def exists(self, item_id: str) -> bool:
        if not super().exists(item_id):
            return False

        record = self.index.lookup(item_id)
        if record.content_hash is None:
            # Stored before hashes were recorded; nothing to compare against.
            return True

        try:
            actual = self.store.hash(record.relative_filename)
        except OSError as e:
            raise ItemStoreError(f"Cannot read {record.relative_filename}: {e}", item_id) from e
        if actual == record.content_hash:
            return True

        logger.warning(f"Hash mismatch for {record.relative_filename}; will download again")
        self.store.delete(record.relative_filename)
        self.index.delete(item_id)
        return False

    def make_record(self, item_id: str, relative: str, data: bytes) -> LocalRecord:
        return LocalRecord(
            id=item_id,
            relative_filename=relative,
            content_hash=hashlib.sha256(data).hexdigest(),
        )
