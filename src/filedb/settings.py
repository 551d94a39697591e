from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Worst-case wait for a busy store is about MAX_LOCK_ATTEMPTS * MAX_LOCK_INTERVAL_MS.
MAX_LOCK_ATTEMPTS = 10
MAX_LOCK_INTERVAL_MS = 200


@dataclass(frozen=True)
class StoreSettings:
    """Store settings loaded from environment with fail-fast validation."""

    lock_attempts: int = 3
    lock_interval_ms: int = 30
    build_commit: str = "unknown"
    database_dir: str = ""

    @classmethod
    def from_env(cls) -> "StoreSettings":
        return cls(
            lock_attempts=_env_int("FILEDB_LOCK_ATTEMPTS", 3, low=1, high=MAX_LOCK_ATTEMPTS),
            lock_interval_ms=_env_int("FILEDB_LOCK_INTERVAL_MS", 30, low=0, high=MAX_LOCK_INTERVAL_MS),
            build_commit=os.getenv("FILEDB_BUILD_COMMIT", "unknown"),
            database_dir=os.getenv("FILEDB_DATABASE_DIR", ""),
        ).normalized()

    @property
    def lock_interval(self) -> float:
        """Delay between lock attempts, in seconds."""
        return self.lock_interval_ms / 1000.0

    def normalized(self) -> "StoreSettings":
        """Validate and normalize all fields. Raises ValueError on invalid configuration."""
        if not 1 <= self.lock_attempts <= MAX_LOCK_ATTEMPTS:
            raise ValueError(
                f"FILEDB_LOCK_ATTEMPTS must be between 1 and {MAX_LOCK_ATTEMPTS}, got: {self.lock_attempts}"
            )
        if not 0 <= self.lock_interval_ms <= MAX_LOCK_INTERVAL_MS:
            raise ValueError(
                f"FILEDB_LOCK_INTERVAL_MS must be between 0 and {MAX_LOCK_INTERVAL_MS}, got: {self.lock_interval_ms}"
            )

        build_commit = self.build_commit.strip()
        if not build_commit:
            raise ValueError("FILEDB_BUILD_COMMIT must be non-empty")

        return StoreSettings(
            lock_attempts=self.lock_attempts,
            lock_interval_ms=self.lock_interval_ms,
            build_commit=build_commit,
            database_dir=self.database_dir.strip(),
        )

    def database_path(self, fallback: Path) -> Path:
        """Return the configured database directory, or *fallback* when unset."""
        path = Path(self.database_dir) if self.database_dir else fallback
        return path if path.is_absolute() else fallback / path


def _env_int(name: str, default: int, *, low: int, high: int) -> int:
    """Read *name* as an int in ``[low, high]``; *default* when unset."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from exc
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got: {value}")
    return value
