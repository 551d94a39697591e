from __future__ import annotations

from pathlib import Path

import pytest

from filedb.settings import StoreSettings


def test_defaults_without_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("FILEDB_LOCK_ATTEMPTS", "FILEDB_LOCK_INTERVAL_MS", "FILEDB_BUILD_COMMIT", "FILEDB_DATABASE_DIR"):
        monkeypatch.delenv(name, raising=False)
    settings = StoreSettings.from_env()
    assert settings.lock_attempts == 3
    assert settings.lock_interval == pytest.approx(0.03)
    assert settings.build_commit == "unknown"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FILEDB_LOCK_ATTEMPTS", "5")
    monkeypatch.setenv("FILEDB_LOCK_INTERVAL_MS", "0")
    monkeypatch.setenv("FILEDB_BUILD_COMMIT", "  0123abc  ")
    settings = StoreSettings.from_env()
    assert settings.lock_attempts == 5
    assert settings.lock_interval == 0
    assert settings.build_commit == "0123abc"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("FILEDB_LOCK_ATTEMPTS", "abc"),
        ("FILEDB_LOCK_ATTEMPTS", "0"),
        ("FILEDB_LOCK_ATTEMPTS", "11"),
        ("FILEDB_LOCK_INTERVAL_MS", "-1"),
        ("FILEDB_LOCK_INTERVAL_MS", "201"),
        ("FILEDB_BUILD_COMMIT", "   "),
    ],
)
def test_invalid_env_raises(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        StoreSettings.from_env()


def test_database_path(tmp_path: Path) -> None:
    assert StoreSettings().database_path(tmp_path) == tmp_path
    assert StoreSettings(database_dir="course").database_path(tmp_path) == tmp_path / "course"
    assert StoreSettings(database_dir="/srv/course").database_path(tmp_path) == Path("/srv/course")


def test_retry_window_stays_short(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FILEDB_LOCK_ATTEMPTS", "10")
    monkeypatch.setenv("FILEDB_LOCK_INTERVAL_MS", "200")
    settings = StoreSettings.from_env()
    assert (settings.lock_attempts - 1) * settings.lock_interval <= 2.0

    with pytest.raises(ValueError, match="FILEDB_LOCK_ATTEMPTS"):
        StoreSettings(lock_attempts=1_000).normalized()
