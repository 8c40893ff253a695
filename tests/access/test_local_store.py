"""Tests for LocalSessionStore"""

import os
from unittest.mock import patch

import pytest

from wsmux.access.local import LocalSessionStore
from wsmux.errors import LockedError, SessionNotFoundError
from wsmux.session.models import SessionLock
from wsmux.telemetry import metrics


@pytest.fixture
def local_store(tmp_path):
    return LocalSessionStore(base_dir=tmp_path / "wsmux")


def _plant_lock(store: LocalSessionStore, name: str, holder_pid: int, owner_host: str = "desktop") -> SessionLock:
    lock = SessionLock.new(holder_pid=holder_pid, owner_host=owner_host)
    store.locks_dir.mkdir(parents=True, exist_ok=True)
    store.lock_path(name).write_text(lock.model_dump_json())
    return lock


class TestRecords:
    """Test save/load/list/delete"""

    def test_save_and_load(self, local_store):
        local_store.save("work", '{"name": "work"}')
        assert local_store.load("work") == '{"name": "work"}'
        assert local_store.session_path("work").parent.name == "sessions"

    def test_save_replaces(self, local_store):
        local_store.save("work", "old")
        local_store.save("work", "new")
        assert local_store.load("work") == "new"

    def test_save_leaves_no_temp_files(self, local_store):
        local_store.save("work", "data")
        assert [p.name for p in local_store.sessions_dir.iterdir()] == ["work.json"]

    def test_load_missing(self, local_store):
        with pytest.raises(SessionNotFoundError) as exc_info:
            local_store.load("nope")
        assert exc_info.value.host == "local"

    def test_list_sorted(self, local_store):
        for name in ("zeta", "alpha", "mid"):
            local_store.save(name, "{}")
        (local_store.sessions_dir / "notes.txt").write_text("ignored")
        assert local_store.list() == ["alpha", "mid", "zeta"]

    def test_list_without_directory(self, local_store):
        assert local_store.list() == []

    def test_delete_idempotent(self, local_store):
        """Deleting a missing session succeeds every time"""
        local_store.delete("ghost")
        local_store.delete("ghost")

    def test_delete_removes_record_and_lock(self, local_store):
        local_store.save("work", "{}")
        local_store.acquire_lock("work")
        local_store.delete("work")
        assert local_store.list() == []
        assert not local_store.lock_path("work").exists()

    def test_host(self, local_store):
        assert local_store.host == "local"
        assert local_store.display_name == "local"


class TestLocking:
    """Test process-as-mutex locking on the local machine"""

    def test_acquire_fresh(self, local_store):
        lock, holder = local_store.acquire_lock("work")

        assert holder is None
        assert lock.holder_pid == os.getpid()
        assert len(lock.nonce) == 32
        assert SessionLock.model_validate_json(local_store.lock_path("work").read_text()) == lock
        assert metrics.get_counter("lock.acquired", {"host": "local"}) == 1

    def test_valid_lock_blocks(self, local_store):
        """A live holder owned elsewhere fails fast with owner details"""
        existing = _plant_lock(local_store, "work", holder_pid=os.getpid(), owner_host="desktop")

        with pytest.raises(LockedError) as exc_info:
            local_store.acquire_lock("work")

        assert exc_info.value.owner_host == "desktop"
        assert exc_info.value.acquired_at == existing.acquired_at
        assert "--force" in str(exc_info.value)

    def test_force_overrides(self, local_store):
        existing = _plant_lock(local_store, "work", holder_pid=os.getpid())

        lock, _ = local_store.acquire_lock("work", force=True)

        assert lock.nonce != existing.nonce
        assert metrics.get_counter("lock.forced") == 1

    def test_stale_reclaimed_without_force(self, local_store):
        _plant_lock(local_store, "work", holder_pid=424242)

        with patch("wsmux.access.local.pid_alive", return_value=False):
            lock, _ = local_store.acquire_lock("work")

        assert lock.holder_pid == os.getpid()
        assert metrics.get_counter("lock.stale_reclaimed") == 1

    def test_unreadable_lock_treated_as_absent(self, local_store):
        local_store.locks_dir.mkdir(parents=True)
        local_store.lock_path("work").write_text("not json")
        lock, _ = local_store.acquire_lock("work")
        assert lock.holder_pid == os.getpid()

    def test_release(self, local_store):
        local_store.acquire_lock("work")
        local_store.release_lock("work")
        assert not local_store.lock_path("work").exists()

    def test_release_missing_is_quiet(self, local_store):
        local_store.release_lock("never-locked")

    def test_is_lock_valid(self, local_store):
        live = SessionLock.new(holder_pid=os.getpid())
        assert local_store.is_lock_valid(live)
        with patch("os.kill", side_effect=ProcessLookupError):
            assert not local_store.is_lock_valid(live)
