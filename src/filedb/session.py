from __future__ import annotations

import logging
from typing import Any, Generic

from .envelope import PayloadT
from .errors import StoreError
from .store import DocumentStore, Transaction

logger = logging.getLogger(__name__)


class DatabaseSession(Generic[PayloadT]):
    """Holds at most one open transaction for a command.

    Commands open the database, edit ``session.db`` in place, and then either
    ``commit()`` or ``close()``.  ``cleanup()`` is meant for a ``finally``
    block: it abandons the transaction if the command bailed out before
    finishing it.
    """

    def __init__(self, store: DocumentStore[PayloadT]) -> None:
        self.store = store
        self._txn: Transaction[PayloadT] | None = None

    @property
    def is_open(self) -> bool:
        return self._txn is not None

    @property
    def db(self) -> PayloadT:
        if self._txn is None:
            raise RuntimeError("database is not open")
        return self._txn.value

    def open(self) -> PayloadT:
        if self._txn is not None:
            raise RuntimeError("database is already open")
        self._txn = self.store.open()
        return self._txn.value

    def commit(self) -> None:
        """Write ``db`` back and release the lock."""
        txn = self._take()
        txn.commit(txn.value)

    def close(self) -> None:
        """Release the lock without writing."""
        self._take().abandon()

    def cleanup(self) -> None:
        if self._txn is not None:
            self.close()

    def cleanup_and_log_on_error(self) -> None:
        try:
            self.cleanup()
        except StoreError as exc:
            logger.error("could not close database: %s", exc)

    def _take(self) -> Transaction[Any]:
        txn = self._txn
        if txn is None:
            raise RuntimeError("database is not open")
        self._txn = None
        return txn
