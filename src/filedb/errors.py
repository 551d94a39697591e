from __future__ import annotations

from pathlib import Path


class StoreError(Exception):
    """Base class for recoverable store errors."""


class NeedAbsolutePathError(StoreError, ValueError):
    """Raised when a store directory is not an absolute path."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(f"need absolute path, got: {str(path)!r}")
        self.path = str(path)


class LockUnavailableError(StoreError):
    """Another transaction holds the directory lock."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(f"could not acquire lock: {path}")
        self.path = str(path)


class LockNotHeldError(StoreError, RuntimeError):
    """Raised by ``DirectoryLock.unlock`` when the lock is not held."""


class StoreIOError(StoreError, OSError):
    """A file operation failed.

    Carries the operation name and the path so callers can diagnose the
    failure without inspecting store internals.
    """

    def __init__(self, operation: str, path: str | Path, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} {path}{detail}")
        self.operation = operation
        self.path = str(path)


class DocumentFormatError(StoreError, ValueError):
    """The document could not be decoded or the new value could not be encoded."""

    def __init__(self, operation: str, path: str | Path, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} {path}{detail}")
        self.operation = operation
        self.path = str(path)


class CommitReusedError(RuntimeError):
    """A transaction was committed twice.

    This is a bug in the caller's transaction handling, not a runtime
    condition, so it is intentionally not a ``StoreError``.
    """
