from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import json

from loguru import logger

# === PATH CONFIGURATION ===
DATA_DIR = Path.home() / ".gphotosync"  # profile: token, index, lock
STORAGE_DIR = Path.home() / "GooglePhoto"

CONFIG_FILENAME = "sync_config.json"
INDEX_FILENAME = "db.sqlite"
TOKEN_FILENAME = "token.json"
CREDENTIALS_FILENAME = "credentials.json"
LOCK_FILENAME = "sync.lock"

# === SCOPES ===
SCOPES = [
    "https://www.googleapis.com/auth/photoslibrary.readonly"
]

# === LISTING LIMITS ===
LIST_PAGE_SIZE_MAX = 100  # mediaItems.list rejects anything larger
DEFAULT_QUERY_LIMIT = 1_000_000

DEFAULT_USER_CONFIG = {
    "storage_path": None,
    "query_limit": DEFAULT_QUERY_LIMIT,
    "page_size": LIST_PAGE_SIZE_MAX,
    "verify_hashes": False,
}


def load_user_config(path: Path) -> dict:
    """
    Load the user's sync_config.json (storage path, query limit, page size).
    Fallback to defaults if not found.
    """
    config = dict(DEFAULT_USER_CONFIG)
    if path.exists():
        with open(path, "r") as f:
            config.update(json.load(f))
    else:
        logger.debug(f"Config file '{path}' not found. Using defaults.")
    return config


@dataclass
class SyncConfig:
    """Everything one sync run needs to know about where things live."""

    storage_root: Path
    index_location: Path
    item_count_ceiling: int = DEFAULT_QUERY_LIMIT
    page_size: int = LIST_PAGE_SIZE_MAX
    profile_path: Path = DATA_DIR
    verify_hashes: bool = False
    sweep_orphans: bool = False

    def __post_init__(self):
        self.storage_root = Path(self.storage_root)
        self.index_location = Path(self.index_location)
        self.profile_path = Path(self.profile_path)
        if self.item_count_ceiling <= 0:
            raise ValueError("item_count_ceiling must be a positive integer")
        if not 1 <= self.page_size <= LIST_PAGE_SIZE_MAX:
            raise ValueError(f"page_size must be between 1 and {LIST_PAGE_SIZE_MAX}")

    @property
    def token_path(self) -> Path:
        return self.profile_path / "secret" / TOKEN_FILENAME

    @property
    def credentials_path(self) -> Path:
        return self.profile_path / "secret" / CREDENTIALS_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.profile_path / LOCK_FILENAME

    @property
    def protected_paths(self) -> List[Path]:
        """
        Profile files that must survive an orphan sweep when the profile
        lives inside the storage root.
        """
        index = self.index_location
        return [
            index,
            index.with_name(index.name + "-journal"),
            index.with_name(index.name + "-wal"),
            index.with_name(index.name + "-shm"),
            self.lock_path,
            self.profile_path / "secret",
            self.profile_path / CONFIG_FILENAME,
        ]

    @classmethod
    def from_sources(cls, user_config: dict, overrides: Optional[dict] = None) -> "SyncConfig":
        """
        Merge CLI overrides over the user config over the defaults.
        Overrides that are None are ignored.
        """
        merged = dict(DEFAULT_USER_CONFIG)
        merged.update({k: v for k, v in user_config.items() if v is not None})
        merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

        profile = Path(merged.get("profile_path") or DATA_DIR).expanduser()
        storage = Path(merged.get("storage_path") or STORAGE_DIR).expanduser()

        return cls(
            storage_root=storage,
            index_location=profile / INDEX_FILENAME,
            item_count_ceiling=int(merged["query_limit"]),
            page_size=int(merged["page_size"]),
            profile_path=profile,
            verify_hashes=bool(merged.get("verify_hashes")),
            sweep_orphans=bool(merged.get("sweep_orphans")),
        )
