"""
Shared fixtures: a temp storage root and index, an in-memory remote
library, and a downloader that never touches the network.
"""

import pytest

from photomirror.exceptions import ItemStoreError
from photomirror.google_photos_api import Page, RemoteItem
from photomirror.local_index import LocalIndex
from photomirror.local_store import FileStore
from photomirror.syncer import MirrorSync


class FakeSource:
    """Serves fixed pages; page tokens are just the next page's position."""

    def __init__(self, pages, fail_at=None, error=None):
        self.pages = pages or [[]]
        self.fail_at = fail_at
        self.error = error
        self.calls = []

    def next_page(self, page_token, page_size):
        self.calls.append((page_token, page_size))
        n = int(page_token) if page_token else 0
        if self.fail_at == n:
            raise self.error
        next_token = str(n + 1) if n + 1 < len(self.pages) else None
        return Page(items=list(self.pages[n]), next_page_token=next_token)


class FakeDownloader:
    def __init__(self):
        self.calls = []
        self.failing = set()

    def __call__(self, item):
        self.calls.append(item.id)
        if item.id in self.failing:
            raise ItemStoreError("Download failed: 500", item.id)
        return f"bytes of {item.id}".encode()


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "storage"


@pytest.fixture
def index(tmp_path):
    idx = LocalIndex(tmp_path / "profile" / "db.sqlite")
    yield idx
    idx.close()


@pytest.fixture
def store(storage_root):
    return FileStore(storage_root)


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def make_item():
    def _make(item_id, filename=None, mime_type="image/jpeg", creation_time=None, video_status=None):
        return RemoteItem(
            id=item_id,
            filename=filename or f"{item_id}.jpg",
            mime_type=mime_type,
            base_url=f"http://x/{item_id}",
            creation_time=creation_time,
            video_status=video_status,
        )
    return _make


@pytest.fixture
def make_source():
    return FakeSource


@pytest.fixture
def make_syncer(index, store, downloader):
    def _make(source, **kwargs):
        return MirrorSync(source, index, store, downloader=downloader, **kwargs)
    return _make
