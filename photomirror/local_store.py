import datetime
import hashlib
import os
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from loguru import logger

from photomirror.exceptions import ItemStoreError


def parse_creation_time(ctime_str: Optional[str]) -> Optional[datetime.datetime]:
    if not ctime_str:
        return None
    try:
        return datetime.datetime.fromisoformat(ctime_str.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None


def year_bucket(ctime_str: Optional[str]) -> str:
    """
    Map a creation timestamp to its year folder, e.g. "2019".
    Missing or unparsable timestamps go to the storage root ("").
    """
    dt = parse_creation_time(ctime_str)
    return f"{dt.year:04d}" if dt else ""


def relative_path(bucket: str, filename: str) -> str:
    """
    Join bucket and filename the way they are recorded in the index.
    """
    return str(PurePosixPath(bucket, filename)) if bucket else filename


def file_hash(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FileStore:
    """
    Filesystem area holding the mirrored media, one folder per year.
    All paths handed in and out are relative to the storage root.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, relative: str) -> Path:
        return self.root / relative

    def exists(self, relative: str) -> bool:
        return self.path_for(relative).is_file()

    def write(self, relative: str, data: bytes):
        """
        Write bytes to relative, creating the year folder as needed.
        Overwrites an existing file. Raises ItemStoreError on OS failure.
        """
        path = self.path_for(relative)
        tmp = path.with_name(path.name + ".part")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as e:
            if tmp.exists():
                tmp.unlink()
            raise ItemStoreError(f"Cannot write {path}: {e}") from e
        logger.debug(f"File written to {path}")

    def delete(self, relative: str):
        """
        Delete the file if present, then remove its folder if that left it
        empty. Only one level is pruned, never the storage root itself.
        """
        path = self.path_for(relative)
        if not path.exists():
            return
        path.unlink()
        logger.debug(f"Deleted local file: {path}")

        parent = path.parent
        if parent != self.root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            logger.debug(f"Removed empty folder: {parent}")

    def unique_relative_path(self, relative: str) -> str:
        """
        If 'relative' already exists, append (1), (2), etc. until we find a free name.
        """
        if not self.exists(relative):
            return relative
        rel = PurePosixPath(relative)
        counter = 1
        while True:
            candidate = str(rel.with_name(f"{rel.stem}({counter}){rel.suffix}"))
            if not self.exists(candidate):
                return candidate
            counter += 1

    def set_mtime(self, relative: str, ctime_str: Optional[str]):
        """
        Attempt to set the OS mod time to the item's creation time.
        """
        dt = parse_creation_time(ctime_str)
        if dt is None:
            return
        try:
            ts = dt.timestamp()
            os.utime(self.path_for(relative), (ts, ts))
        except (OSError, OverflowError, ValueError) as e:
            logger.debug(f"Could not set mtime on {relative}: {e}")

    def hash(self, relative: str) -> str:
        return file_hash(self.path_for(relative))

    def iter_files(self) -> Iterator[str]:
        """
        Yield every regular file below the root as a relative path,
        skipping hidden files.
        """
        for root, dirs, files in os.walk(self.root):
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            for fname in files:
                if fname.startswith("."):
                    continue
                yield (Path(root) / fname).relative_to(self.root).as_posix()
