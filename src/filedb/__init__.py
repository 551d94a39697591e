from .course import Assignment, CourseDatabase, Student, validate_code
from .envelope import DocumentEnvelope, Provenance, current_provenance, package_version
from .errors import (
    CommitReusedError,
    DocumentFormatError,
    LockNotHeldError,
    LockUnavailableError,
    NeedAbsolutePathError,
    StoreError,
    StoreIOError,
)
from .lock import DirectoryLock, acquire_lock
from .session import DatabaseSession
from .settings import StoreSettings
from .store import DocumentStore, Transaction, init_document, open_document, read_document


def get_version() -> str:
    return package_version()


__all__ = [
    "Assignment",
    "CommitReusedError",
    "CourseDatabase",
    "DatabaseSession",
    "DirectoryLock",
    "DocumentEnvelope",
    "DocumentFormatError",
    "DocumentStore",
    "LockNotHeldError",
    "LockUnavailableError",
    "NeedAbsolutePathError",
    "Provenance",
    "StoreError",
    "StoreIOError",
    "StoreSettings",
    "Student",
    "Transaction",
    "acquire_lock",
    "current_provenance",
    "get_version",
    "init_document",
    "open_document",
    "read_document",
    "validate_code",
]
