from __future__ import annotations

from pathlib import Path

import pytest

from filedb.errors import LockNotHeldError, StoreIOError
from filedb.lock import DirectoryLock, acquire_lock


def test_try_lock_creates_missing_sentinel(tmp_path: Path) -> None:
    lock_path = tmp_path / "lock"
    assert not lock_path.exists()

    lock = DirectoryLock(lock_path)
    assert lock.try_lock()
    assert lock.held
    assert lock_path.is_file()
    lock.unlock()
    assert not lock.held
    # the sentinel outlives the hold
    assert lock_path.is_file()


def test_second_lock_on_same_path_is_refused_until_release(tmp_path: Path) -> None:
    first = DirectoryLock(tmp_path / "lock")
    second = DirectoryLock(tmp_path / "lock")

    assert first.try_lock()
    assert not second.try_lock()
    assert not second.held

    first.unlock()
    assert second.try_lock()
    second.unlock()


def test_try_lock_n_sleeps_between_attempts_only(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    sleeps: list[float] = []
    monkeypatch.setattr("filedb.lock.time.sleep", sleeps.append)

    holder = DirectoryLock(tmp_path / "lock")
    assert holder.try_lock()

    contender = DirectoryLock(tmp_path / "lock")
    assert contender.try_lock_n(3, 0.03) is False
    assert sleeps == [0.03, 0.03]
    holder.unlock()


def test_try_lock_n_succeeds_when_holder_releases_midway(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    holder = DirectoryLock(tmp_path / "lock")
    assert holder.try_lock()

    def release_on_sleep(_: float) -> None:
        if holder.held:
            holder.unlock()

    monkeypatch.setattr("filedb.lock.time.sleep", release_on_sleep)
    contender = DirectoryLock(tmp_path / "lock")
    assert contender.try_lock_n(3, 0.03)
    contender.unlock()


def test_try_lock_n_rejects_non_positive_attempts(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        DirectoryLock(tmp_path / "lock").try_lock_n(0, 0.01)


def test_unlock_without_hold_raises(tmp_path: Path) -> None:
    lock = DirectoryLock(tmp_path / "lock")
    with pytest.raises(LockNotHeldError):
        lock.unlock()

    assert lock.try_lock()
    lock.unlock()
    with pytest.raises(LockNotHeldError):
        lock.unlock()


def test_lock_in_missing_directory_is_an_io_error(tmp_path: Path) -> None:
    lock = DirectoryLock(tmp_path / "missing" / "lock")
    with pytest.raises(StoreIOError, match="open lock file"):
        lock.try_lock()
    assert not lock.held


def test_acquire_lock_returns_none_when_busy(tmp_path: Path) -> None:
    held = acquire_lock(tmp_path / "lock", attempts=1, interval=0)
    assert held is not None and held.held

    assert acquire_lock(tmp_path / "lock", attempts=2, interval=0) is None

    with held:
        pass
    assert not held.held
    again = acquire_lock(tmp_path / "lock", attempts=1, interval=0)
    assert again is not None
    again.unlock()


def test_context_manager_requires_a_held_lock(tmp_path: Path) -> None:
    with pytest.raises(LockNotHeldError):
        with DirectoryLock(tmp_path / "lock"):
            pass
