import fcntl
import os
from pathlib import Path

from loguru import logger


class RunLock:
    """
    Exclusive, non-blocking lock on a file so two runs never write to the
    same index and storage at once. The OS drops the lock if the process dies.

        with RunLock(path) as acquired:
            if not acquired:
                return
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fd = None

    def acquire(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            logger.debug(f"Lock {self.path} is held by another process")
            return False

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        return True

    def release(self):
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
