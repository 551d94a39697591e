from __future__ import annotations

import fcntl
import logging
import time
from pathlib import Path
from typing import IO

from .errors import LockNotHeldError, StoreIOError

logger = logging.getLogger(__name__)


class DirectoryLock:
    """Advisory exclusive lock backed by ``flock`` on a sentinel file.

    The sentinel is created on the first acquisition attempt and is never
    removed; only its lock state matters.  ``flock`` locks belong to the open
    file description, so two ``DirectoryLock`` objects for the same path
    exclude each other even inside one process.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def try_lock(self) -> bool:
        """Make a single non-blocking attempt to take the lock.

        Returns:
            True if the lock is now held, False if another holder has it.

        Raises:
            StoreIOError: If the sentinel cannot be opened or locked for a
                reason other than contention.
        """
        if self._handle is not None:
            return True
        try:
            handle = self.path.open("a+", encoding="utf-8")
        except OSError as exc:
            raise StoreIOError("open lock file", self.path, exc) from exc
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            return False
        except OSError as exc:
            handle.close()
            raise StoreIOError("lock", self.path, exc) from exc
        self._handle = handle
        return True

    def try_lock_n(self, attempts: int, interval: float) -> bool:
        """Try to take the lock up to *attempts* times, *interval* seconds apart."""
        if attempts < 1:
            raise ValueError(f"attempts must be >= 1, got: {attempts}")
        for attempt in range(1, attempts + 1):
            if self.try_lock():
                logger.debug("acquired %s on attempt %d", self.path, attempt)
                return True
            logger.debug("lock %s busy (attempt %d/%d)", self.path, attempt, attempts)
            if attempt < attempts:
                time.sleep(interval)
        return False

    def unlock(self) -> None:
        """Release the lock.

        Raises:
            LockNotHeldError: If the lock is not currently held.
            StoreIOError: If the OS refuses to release it.  The handle is
                closed either way, which drops the ``flock``.
        """
        handle = self._handle
        if handle is None:
            raise LockNotHeldError(f"lock not held: {self.path}")
        self._handle = None
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        except OSError as exc:
            raise StoreIOError("unlock", self.path, exc) from exc
        finally:
            handle.close()
        logger.debug("released %s", self.path)

    def __enter__(self) -> "DirectoryLock":
        if not self.held:
            raise LockNotHeldError(f"lock not held: {self.path}")
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unlock()

    def __repr__(self) -> str:
        return f"DirectoryLock(path={str(self.path)!r}, held={self.held})"


def acquire_lock(path: Path, *, attempts: int, interval: float) -> DirectoryLock | None:
    """Return a held lock on *path*, or None if it stayed busy for every attempt."""
    lock = DirectoryLock(path)
    if lock.try_lock_n(attempts, interval):
        return lock
    return None
