"""Atomic, lock-guarded transactions on a single JSON document.

A store directory holds three files:

``data``
    The live document.  It is only ever replaced by ``os.replace`` of a
    fully written and fsynced temp file, so readers see either the old or
    the new document, never a partial one.
``data.tmp``
    Staging file for a commit.  It is renamed away on success and may be
    left behind for inspection when a commit fails.
``lock``
    ``flock`` sentinel.  Created on the first open and never removed.

Opening a store for writing takes the directory lock and hands back a
``Transaction``; committing (or abandoning) the transaction releases it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Generic

from pydantic import ValidationError

from .envelope import DocumentEnvelope, PayloadT, current_provenance, decode, encode, wrap
from .errors import (
    CommitReusedError,
    DocumentFormatError,
    LockUnavailableError,
    NeedAbsolutePathError,
    StoreIOError,
)
from .lock import DirectoryLock
from .settings import StoreSettings

logger = logging.getLogger(__name__)

DATA_FILE_NAME = "data"
TEMP_FILE_NAME = "data.tmp"
LOCK_FILE_NAME = "lock"


class Transaction(Generic[PayloadT]):
    """One open -> mutate -> commit-or-abandon cycle on a store.

    The transaction owns the directory lock from the moment it is created.
    ``commit`` may be called exactly once; it always releases the lock.
    Used as a context manager, a transaction that was never committed is
    abandoned on exit.
    """

    def __init__(self, store: DocumentStore[PayloadT], lock: DirectoryLock, document: DocumentEnvelope[Any]) -> None:
        self._store = store
        self._lock = lock
        self._document = document
        self._closed = False

    @property
    def value(self) -> PayloadT:
        """The payload as read when the transaction was opened."""
        return self._document.payload

    @property
    def metadata(self) -> DocumentEnvelope[Any]:
        return self._document

    @property
    def closed(self) -> bool:
        return self._closed

    def commit(self, value: PayloadT | None) -> None:
        """Persist *value* and release the lock, or just release it if *value* is None.

        Raises:
            CommitReusedError: If the transaction was already committed or
                abandoned.
            DocumentFormatError: If *value* cannot be serialized.
            StoreIOError: If writing, syncing, or renaming fails, or if the
                lock cannot be released after an otherwise successful commit.
        """
        if self._closed:
            raise CommitReusedError(f"transaction on {self._store.directory} committed twice")
        self._closed = True

        try:
            if value is not None:
                self._store.persist(value)
        except BaseException as exc:
            try:
                self._lock.unlock()
            except OSError as unlock_exc:
                exc.add_note(f"release lock failed as well: {unlock_exc}")
            raise

        try:
            self._lock.unlock()
        except OSError as exc:
            raise StoreIOError("release lock", self._lock.path, exc) from exc

    def abandon(self) -> None:
        """Close the transaction without writing anything."""
        self.commit(None)

    def __enter__(self) -> "Transaction[PayloadT]":
        return self

    def __exit__(self, exc_type: object, exc: BaseException | None, tb: object) -> None:
        if self._closed:
            return
        if exc is None:
            self.abandon()
            return
        try:
            self.abandon()
        except OSError as cleanup_exc:
            exc.add_note(f"abandoning transaction failed: {cleanup_exc}")


class DocumentStore(Generic[PayloadT]):
    """Typed access to the document stored in *directory*.

    *payload_type* is any type pydantic can validate (a model class,
    ``dict[str, Any]``, a dataclass, ...).  It decides how the payload is
    decoded on read and validated on write.
    """

    def __init__(
        self,
        directory: Path | str,
        payload_type: Any,
        *,
        settings: StoreSettings | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.payload_type = payload_type
        self.settings = settings if settings is not None else StoreSettings.from_env()

    # ------------------------------------------------------------------
    # Path properties
    # ------------------------------------------------------------------

    @property
    def data_path(self) -> Path:
        return self.directory / DATA_FILE_NAME

    @property
    def temp_path(self) -> Path:
        return self.directory / TEMP_FILE_NAME

    @property
    def lock_path(self) -> Path:
        return self.directory / LOCK_FILE_NAME

    def exists(self) -> bool:
        return self.data_path.is_file()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def open(self) -> Transaction[PayloadT]:
        """Lock the store and read the current document.

        The directory must be absolute: the returned transaction writes to
        the same paths later, and a relative path would silently move if the
        working directory changed in between.

        Raises:
            NeedAbsolutePathError: If the directory is relative.
            LockUnavailableError: If another transaction holds the lock.
            StoreIOError: If the lock or the document cannot be accessed.
            DocumentFormatError: If the document cannot be decoded.
        """
        self._require_absolute()
        lock = DirectoryLock(self.lock_path)
        if not lock.try_lock_n(self.settings.lock_attempts, self.settings.lock_interval):
            raise LockUnavailableError(self.directory)

        try:
            document = self._load()
        except BaseException as exc:
            try:
                lock.unlock()
            except OSError as unlock_exc:
                exc.add_note(f"release lock failed as well: {unlock_exc}")
            raise
        logger.debug("opened transaction on %s", self.directory)
        return Transaction(self, lock, document)

    def read(self) -> PayloadT:
        """Return the current payload without taking the lock."""
        return self._load().payload

    def read_document(self) -> DocumentEnvelope[Any]:
        """Return the current document, metadata included, without taking the lock."""
        return self._load()

    def init(self, value: PayloadT) -> None:
        """Create the document with *value* as its initial payload.

        The directory must already exist.  No lock is taken and an existing
        document is overwritten, so this is only meant for first-time setup.

        Raises:
            NeedAbsolutePathError: If the directory is relative.
            DocumentFormatError: If *value* cannot be serialized.
            StoreIOError: If the file cannot be written or synced.
        """
        self._require_absolute()
        text = self._encode(value)
        self._write_synced(self.data_path, text)
        logger.debug("initialized %s", self.data_path)

    def persist(self, value: PayloadT) -> None:
        """Stage *value* in ``data.tmp``, fsync it, and rename it over ``data``.

        This is the write half of ``Transaction.commit`` and assumes the
        caller holds the directory lock.  On failure ``data`` is untouched.

        Raises:
            DocumentFormatError: If *value* cannot be serialized.
            StoreIOError: If writing, syncing, or renaming fails.
        """
        text = self._encode(value)
        self._write_synced(self.temp_path, text)
        try:
            os.replace(self.temp_path, self.data_path)
        except OSError as exc:
            raise StoreIOError("atomically update", self.data_path, exc) from exc
        logger.debug("committed %s", self.data_path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_absolute(self) -> None:
        if not self.directory.is_absolute():
            raise NeedAbsolutePathError(self.directory)

    def _load(self) -> DocumentEnvelope[Any]:
        try:
            raw = self.data_path.read_bytes()
        except OSError as exc:
            raise StoreIOError("read", self.data_path, exc) from exc
        try:
            return decode(self.payload_type, raw)
        except ValidationError as exc:
            raise DocumentFormatError("unmarshal from file", self.data_path, exc) from exc

    def _encode(self, value: Any) -> str:
        provenance = current_provenance(self.settings.build_commit)
        try:
            return encode(wrap(self.payload_type, value, provenance))
        except (TypeError, ValueError) as exc:
            raise DocumentFormatError("marshal", self.data_path, exc) from exc

    def _write_synced(self, path: Path, text: str) -> None:
        try:
            handle = path.open("w", encoding="utf-8")
        except OSError as exc:
            raise StoreIOError("create", path, exc) from exc
        with handle:
            try:
                handle.write(text)
                handle.flush()
            except OSError as exc:
                raise StoreIOError("write", path, exc) from exc
            try:
                os.fsync(handle.fileno())
            except OSError as exc:
                raise StoreIOError("sync", path, exc) from exc


def open_document(payload_type: Any, directory: Path | str, *, settings: StoreSettings | None = None) -> Transaction[Any]:
    return DocumentStore(directory, payload_type, settings=settings).open()


def read_document(payload_type: Any, directory: Path | str, *, settings: StoreSettings | None = None) -> Any:
    return DocumentStore(directory, payload_type, settings=settings).read()


def init_document(
    value: Any,
    directory: Path | str,
    *,
    payload_type: Any = None,
    settings: StoreSettings | None = None,
) -> None:
    """Create the document in *directory*; *payload_type* defaults to ``type(value)``."""
    resolved_type = payload_type if payload_type is not None else type(value)
    DocumentStore(directory, resolved_type, settings=settings).init(value)
