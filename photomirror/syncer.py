from dataclasses import dataclass
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Iterator, Optional, Set

import requests
from loguru import logger

from photomirror.config import DEFAULT_QUERY_LIMIT, LIST_PAGE_SIZE_MAX, SyncConfig
from photomirror.consistency import HashPresence, IdPresence
from photomirror.exceptions import (
    AuthError,
    DuplicateKeyError,
    IndexStoreError,
    ItemStoreError,
    TransportError,
)
from photomirror.google_photos_api import Page, RemoteItem, download_media_item
from photomirror.local_index import LocalIndex
from photomirror.local_store import FileStore, relative_path, year_bucket


@dataclass
class SyncReport:
    """What one run did. `error` is set only when the run was aborted."""

    fetched: int = 0
    deleted: int = 0
    skipped: int = 0
    deferred: int = 0
    errored: int = 0
    orphans_removed: int = 0
    truncated: bool = False
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        text = (
            f"fetched={self.fetched} deleted={self.deleted} skipped={self.skipped} "
            f"deferred={self.deferred} errored={self.errored}"
        )
        if self.orphans_removed:
            text += f" orphans_removed={self.orphans_removed}"
        if self.truncated:
            text += " (listing truncated, deletions skipped)"
        if self.error is not None:
            text += f" ABORTED: {self.error}"
        return text


class RemoteListing:
    """
    Pulls pages from a remote source until it runs out of pages or the
    item ceiling is reached. Afterwards exactly one of `exhausted` and
    `truncated` is set.
    """

    def __init__(self, source, page_size: int = LIST_PAGE_SIZE_MAX, ceiling: int = DEFAULT_QUERY_LIMIT):
        self.source = source
        self.page_size = page_size
        self.ceiling = ceiling
        self.items_seen = 0
        self.exhausted = False
        self.truncated = False

    def __iter__(self) -> Iterator[Page]:
        remaining = self.ceiling
        page_token = None

        while True:
            page = self.source.next_page(page_token, min(self.page_size, remaining))
            self.items_seen += len(page.items)
            logger.info(f"Requesting in process - got {self.items_seen} items")
            yield page

            remaining -= len(page.items)
            page_token = page.next_page_token
            if not page_token:
                self.exhausted = True
                return
            if remaining <= 0:
                self.truncated = True
                logger.warning(f"Stopped listing at the {self.ceiling} item limit")
                return


class MirrorSync:
    """
    Mirrors the remote library into the local store in two phases:
     1) stream the listing, downloading whatever is missing locally
     2) once the listing is complete, delete what the remote no longer has
    """

    def __init__(
        self,
        source,
        index: LocalIndex,
        store: FileStore,
        presence: Optional[IdPresence] = None,
        downloader: Optional[Callable[[RemoteItem], bytes]] = None,
        page_size: int = LIST_PAGE_SIZE_MAX,
        item_count_ceiling: int = DEFAULT_QUERY_LIMIT,
        sweep_orphans: bool = False,
        protected_paths: Iterable[Path] = (),
    ):
        self.source = source
        self.index = index
        self.store = store
        self.presence = presence or IdPresence(index, store)
        self.downloader = downloader or partial(download_media_item, http=requests.Session())
        self.page_size = page_size
        self.item_count_ceiling = item_count_ceiling
        self.sweep_orphans = sweep_orphans
        self.protected_paths = [Path(p).resolve() for p in protected_paths]

    @classmethod
    def from_config(cls, config: SyncConfig, source, downloader=None) -> "MirrorSync":
        index = LocalIndex(config.index_location)
        store = FileStore(config.storage_root)
        presence_cls = HashPresence if config.verify_hashes else IdPresence
        return cls(
            source,
            index,
            store,
            presence=presence_cls(index, store),
            downloader=downloader,
            page_size=config.page_size,
            item_count_ceiling=config.item_count_ceiling,
            sweep_orphans=config.sweep_orphans,
            protected_paths=config.protected_paths,
        )

    def run(self) -> SyncReport:
        report = SyncReport()
        listing = RemoteListing(self.source, self.page_size, self.item_count_ceiling)
        seen_ids: Set[str] = set()

        # Phase 1: ingest. Any listing failure ends the run before deletion.
        try:
            for page in listing:
                self._sync_page(page, seen_ids, report)
        except (TransportError, AuthError, IndexStoreError) as e:
            logger.error(f"Sync aborted, nothing deleted this run: {e}")
            report.error = e
            return report

        logger.info(f"Got {listing.items_seen} item(s)")

        if listing.truncated:
            report.truncated = True
            logger.warning("Listing incomplete; skipping deletion of local items")
            return report

        # Phase 2: deletion sweep against the complete listing.
        try:
            self._sync_deleted(seen_ids, report)
            if self.sweep_orphans:
                self._sweep_orphans(report)
        except IndexStoreError as e:
            logger.error(f"Deletion sweep failed part way: {e}")
            report.error = e

        return report

    # -----------------------------
    # 1) INGEST
    # -----------------------------

    def _sync_page(self, page: Page, seen_ids: Set[str], report: SyncReport):
        for item in page.items:
            seen_ids.add(item.id)

            try:
                present = self.presence.exists(item.id)
            except ItemStoreError as e:
                logger.warning(f"Skipping {item.filename}: {e}")
                report.errored += 1
                continue

            if present:
                report.skipped += 1
                continue

            if not item.is_ready:
                logger.info(f"Video {item.filename} is not ready yet ({item.video_status}); will retry")
                report.deferred += 1
                continue

            self._store_item(item, report)

    def _store_item(self, item: RemoteItem, report: SyncReport):
        """
        Download an item and record it. The record is only written once the
        file is safely on disk.
        """
        logger.debug(f"Item {item.filename} not found locally")
        filename = PurePosixPath(item.filename).name or item.id
        relative = self.store.unique_relative_path(
            relative_path(year_bucket(item.creation_time), filename)
        )

        try:
            data = self.downloader(item)
            self.store.write(relative, data)
        except ItemStoreError as e:
            logger.warning(f"Skipping {item.filename}: {e}")
            report.errored += 1
            return

        self.store.set_mtime(relative, item.creation_time)

        try:
            self.index.insert(self.presence.make_record(item.id, relative, data))
        except DuplicateKeyError:
            logger.warning(f"Item {item.id} was already indexed; {relative} is untracked")
            return
        except IndexStoreError as e:
            logger.warning(f"{relative} was written but could not be indexed: {e}")
            report.errored += 1
            return

        logger.info(f"Downloaded item {item.id} -> {relative}")
        report.fetched += 1

    # -----------------------------
    # 2) DELETION
    # -----------------------------

    def _sync_deleted(self, seen_ids: Set[str], report: SyncReport):
        to_delete = [rec for rec in self.index.enumerate_all() if rec.id not in seen_ids]
        logger.info(f"{len(to_delete)} item(s) going to be deleted")

        for rec in to_delete:
            try:
                self.store.delete(rec.relative_filename)
            except OSError as e:
                logger.warning(f"Could not delete {rec.relative_filename}: {e}")
                report.errored += 1
                continue
            self.index.delete(rec.id)
            report.deleted += 1

    def _sweep_orphans(self, report: SyncReport):
        """
        Remove files under the storage root that no record points to.
        Profile files (index, lock, token) are never touched.
        """
        known = {rec.relative_filename for rec in self.index.enumerate_all()}
        for relative in list(self.store.iter_files()):
            if relative in known or self._is_protected(relative):
                continue
            logger.warning(f"Removing orphan file {relative}")
            try:
                self.store.delete(relative)
            except OSError as e:
                logger.warning(f"Could not delete {relative}: {e}")
                report.errored += 1
                continue
            report.orphans_removed += 1

    def _is_protected(self, relative: str) -> bool:
        path = self.store.path_for(relative).resolve()
        return any(path == p or p in path.parents for p in self.protected_paths)
