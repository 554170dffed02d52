from dataclasses import dataclass, field
from typing import List, Optional

import requests
from google.auth import exceptions as auth_exceptions
from loguru import logger

from photomirror.config import LIST_PAGE_SIZE_MAX
from photomirror.exceptions import AuthError, ItemStoreError, TransportError

API_LIST_MEDIA_ITEMS = "https://photoslibrary.googleapis.com/v1/mediaItems"

REQUEST_TIMEOUT = 60  # seconds, per HTTP call

VIDEO_READY = "READY"


@dataclass
class RemoteItem:
    """
    One media item as listed by the Library API. Transient: consumed by a
    single sync pass and discarded.
    """

    id: str
    filename: str
    mime_type: str
    base_url: str
    creation_time: Optional[str] = None
    video_status: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "RemoteItem":
        metadata = data.get("mediaMetadata", {}) or {}
        return cls(
            id=data["id"],
            filename=data.get("filename", ""),
            mime_type=data.get("mimeType", ""),
            base_url=data.get("baseUrl", ""),
            creation_time=metadata.get("creationTime"),
            video_status=(metadata.get("video") or {}).get("status"),
        )

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video")

    @property
    def is_ready(self) -> bool:
        """
        Photos are always ready. Videos are ready only once processing is done.
        """
        return not self.is_video or self.video_status == VIDEO_READY

    def download_url(self) -> str:
        # =dv downloads the video bytes, =d the original image with metadata
        return self.base_url + ("=dv" if self.is_video else "=d")


@dataclass
class Page:
    items: List[RemoteItem] = field(default_factory=list)
    next_page_token: Optional[str] = None


class GooglePhotosSource:
    """
    Remote item source over mediaItems.list.

    Takes an already-authenticated session (e.g. google.auth's
    AuthorizedSession) so no credential state lives in this module.
    """

    def __init__(self, session, endpoint: str = API_LIST_MEDIA_ITEMS, timeout: int = REQUEST_TIMEOUT):
        self.session = session
        self.endpoint = endpoint
        self.timeout = timeout

    def next_page(self, page_token: Optional[str], page_size: int = LIST_PAGE_SIZE_MAX) -> Page:
        """
        Fetch one page of the library. A missing next_page_token on the
        result means the listing is exhausted.
        """
        params = {"pageSize": min(page_size, LIST_PAGE_SIZE_MAX)}
        if page_token:
            params["pageToken"] = page_token

        logger.debug(f"Requesting {self.endpoint} with {params}")
        try:
            resp = self.session.get(self.endpoint, params=params, timeout=self.timeout)
        except auth_exceptions.RefreshError as e:
            raise AuthError(f"Could not refresh credentials: {e}") from e
        except auth_exceptions.TransportError as e:
            # raised when the token refresh itself cannot reach Google
            raise TransportError(f"Could not reach the token endpoint: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"Error listing media items: {e}") from e

        logger.debug(f"Got response with code: {resp.status_code}")
        if resp.status_code in (401, 403):
            raise AuthError(f"Listing rejected: {resp.status_code} {resp.text}")
        if resp.status_code != 200:
            raise TransportError(f"Error listing media items: {resp.status_code} {resp.text}")

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"Malformed listing response: {e}") from e

        items = [RemoteItem.from_api(raw) for raw in data.get("mediaItems", [])]
        return Page(items=items, next_page_token=data.get("nextPageToken") or None)


def download_media_item(item: RemoteItem, http=None, timeout: int = REQUEST_TIMEOUT) -> bytes:
    """
    Fetch the bytes behind an item's time-limited baseUrl.
    Follows at most one redirect. Raises ItemStoreError on any failure.
    """
    http = http or requests
    url = item.download_url()
    try:
        resp = http.get(url, allow_redirects=False, timeout=timeout)
        if resp.is_redirect:
            location = resp.headers["location"]
            logger.debug(f"Following redirect for {item.filename} to {location}")
            resp = http.get(location, allow_redirects=False, timeout=timeout)
    except requests.RequestException as e:
        raise ItemStoreError(f"Download failed for {item.filename}: {e}", item.id) from e

    if not 200 <= resp.status_code < 300:
        raise ItemStoreError(f"Download failed for {item.filename}: {resp.status_code}", item.id)

    return resp.content
