class SyncError(Exception):
    """Base exception for the mirror sync."""
    pass


class TransportError(SyncError):
    """Listing the remote library failed (network or HTTP error). Aborts the run."""
    pass


class AuthError(SyncError):
    """Credentials are missing, invalid, or could not be refreshed. Aborts the run."""
    pass


class ItemStoreError(SyncError):
    """
    Downloading or writing a single media item failed.
    The item is skipped and retried on the next run.
    """

    def __init__(self, message, item_id=None, *args):
        super().__init__(message, *args)
        self.item_id = item_id

    def __str__(self):
        base = super().__str__()
        return f"{base} (item {self.item_id})" if self.item_id else base


class IndexStoreError(SyncError):
    """The local index database failed an operation."""
    pass


class DuplicateKeyError(IndexStoreError):
    """An index record with the same item ID already exists."""

    def __init__(self, item_id):
        super().__init__(f"Item {item_id} is already indexed")
        self.item_id = item_id
