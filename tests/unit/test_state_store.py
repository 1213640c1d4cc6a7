"""Tests for the lock record store."""

import json
import os
import stat
import sys
import time

import pytest

from tasklock.exceptions import StateLockTimeoutError, StoreIOError
from tasklock.models import StateStatus
from tasklock.config import Settings
from tasklock.state_store import StateStore
from tasklock.utils.integrity import STATE_HMAC_KEY_NAME
from tasklock.utils.jsonl_logger import read_audit_log


def test_read_missing_state_is_not_found_and_lazy(store, state_dir):
    result = store.read_state()

    assert result.status is StateStatus.NOT_FOUND
    assert result.lock is None
    assert not state_dir.exists()


def test_write_then_read_round_trip(store, make_lock):
    lock = make_lock("Task-7", ["src/auth/**", "tests/auth/**"], title="Login")

    store.write_state(lock)
    result = store.read_state()

    assert result.is_ok
    assert result.lock == lock


def test_record_is_persisted_with_camel_case_keys(store, make_lock):
    store.write_state(make_lock())

    record = json.loads(store.state_path.read_text(encoding="utf-8"))

    assert set(record) == {
        "version",
        "activeTaskId",
        "activeTaskTitle",
        "allowedScopes",
        "startedAt",
        "startedBy",
        "validationAttempts",
        "stateHash",
    }
    assert record["validationAttempts"] == 0


def test_previous_record_lands_in_first_generation(store, make_lock):
    store.write_state(make_lock("Task-1"))
    store.write_state(make_lock("Task-2"))

    backup = json.loads(store.backup_paths()[0].read_text(encoding="utf-8"))
    assert backup["activeTaskId"] == "Task-1"
    assert store.read_state().lock.active_task_id == "Task-2"


def test_no_temp_files_left_behind(store, make_lock, state_dir):
    store.write_state(make_lock())
    store.write_state(make_lock())

    assert not [p for p in state_dir.iterdir() if p.name.endswith(".tmp")]


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"version": 1, "activeTaskTitle": "missing id"}),
        json.dumps(
            {
                "version": 1,
                "activeTaskId": "Task-1",
                "activeTaskTitle": "T",
                "allowedScopes": [],
                "startedAt": "2025-01-01T00:00:00Z",
                "startedBy": "me",
                "validationAttempts": -1,
            }
        ),
    ],
)
def test_unusable_record_is_reported_corrupt_not_reset(store, state_dir, content):
    state_dir.mkdir(parents=True)
    store.state_path.write_text(content, encoding="utf-8")

    result = store.read_state()

    assert result.status is StateStatus.CORRUPT
    assert result.error
    assert store.state_path.read_text(encoding="utf-8") == content


def test_corruption_is_audited(store, state_dir):
    state_dir.mkdir(parents=True)
    store.state_path.write_text("{", encoding="utf-8")

    store.read_state()

    events = [entry["event"] for entry in read_audit_log(state_dir)]
    assert "STATE_CORRUPTED" in events


def test_writes_are_audited(store, make_lock, state_dir):
    store.write_state(make_lock("Task-3"))

    entries = read_audit_log(state_dir)
    assert entries[-1]["event"] == "STATE_WRITE"
    assert entries[-1]["task_id"] == "Task-3"
    assert entries[-1]["service"] == "state-store"


def test_clear_rotates_then_removes(store, make_lock):
    store.write_state(make_lock("Task-1"))

    assert store.clear_state("tester") is True

    assert not store.state_path.exists()
    backup = json.loads(store.backup_paths()[0].read_text(encoding="utf-8"))
    assert backup["activeTaskId"] == "Task-1"
    assert store.read_state().is_not_found


def test_clear_without_record_is_noop(store, state_dir):
    assert store.clear_state() is False
    assert not state_dir.exists()


def test_restore_from_backup_recovers_previous_record(store, make_lock, state_dir):
    store.write_state(make_lock("Task-1"))
    store.write_state(make_lock("Task-2"))
    store.state_path.write_text("garbage", encoding="utf-8")

    result = store.restore_from_backup("operator")

    assert result.restored
    assert store.read_state().lock.active_task_id == "Task-1"
    assert "STATE_RESTORED" in [entry["event"] for entry in read_audit_log(state_dir)]


def test_lock_is_released_after_write(store, make_lock):
    store.write_state(make_lock())

    assert not store.lock_path.exists()
    assert not store.lock_info_path.exists()


def test_lock_info_names_holder(store):
    with store.lock("Task-9"):
        info = store.read_lock_info()
        assert store.is_locked()

    assert info["taskId"] == "Task-9"
    assert info["pid"] == os.getpid()
    assert info["host"]
    assert not store.is_locked()


def test_fresh_foreign_lock_times_out(state_dir, make_lock):
    store = StateStore(state_dir, retries=1, retry_wait=0, stale_seconds=60)
    state_dir.mkdir(parents=True)
    store.lock_path.mkdir()

    with pytest.raises(StateLockTimeoutError) as exc_info:
        store.write_state(make_lock())

    assert isinstance(exc_info.value, StoreIOError)
    assert exc_info.value.code == "E_STATE_LOCKED"
    assert "force-unlock" in str(exc_info.value)
    assert not store.state_path.exists()


def test_stale_lock_is_broken(state_dir, make_lock):
    store = StateStore(state_dir, retries=0, retry_wait=0, stale_seconds=5)
    state_dir.mkdir(parents=True)
    store.lock_path.mkdir()
    old = time.time() - 60
    os.utime(store.lock_path, (old, old))

    store.write_state(make_lock())

    assert store.read_state().is_ok
    assert not store.lock_path.exists()


def test_break_lock_reports_removal(store, state_dir):
    state_dir.mkdir(parents=True)
    store.lock_path.mkdir()
    store.lock_info_path.write_text("{}", encoding="utf-8")

    assert store.break_lock() is True
    assert not store.lock_path.exists()
    assert not store.lock_info_path.exists()
    assert store.break_lock() is False


def test_filesystem_failures_surface_as_store_io_error(tmp_path, make_lock):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file", encoding="utf-8")
    store = StateStore(blocker, retries=0, retry_wait=0)

    with pytest.raises(StoreIOError):
        store.write_state(make_lock())


def test_unreadable_record_raises_store_io_error(store, state_dir):
    store.state_path.mkdir(parents=True)

    with pytest.raises(StoreIOError):
        store.read_state()


def test_from_settings_resolves_relative_state_dir(settings, worktree):
    store = StateStore.from_settings(settings, base=worktree)

    assert store.state_dir == worktree / ".tasklock" / "state"
    assert store.generations == settings.backup_generations
    assert store.retries == settings.lock_retries


def test_undecodable_record_is_corrupt(store, state_dir):
    state_dir.mkdir(parents=True)
    store.state_path.write_bytes(b"\xff\xfe\x00garbage")

    result = store.read_state()

    assert result.status is StateStatus.CORRUPT
    assert "UTF-8" in result.error


def write_raw_record(store, update):
    record = json.loads(store.state_path.read_text(encoding="utf-8"))
    record.update(update)
    store.state_path.write_text(json.dumps(record), encoding="utf-8")


def test_hand_edited_record_fails_verification(store, make_lock):
    store.write_state(make_lock(scopes=["src/auth/**"]))
    write_raw_record(store, {"allowedScopes": ["**"]})

    result = store.read_state()

    assert result.status is StateStatus.CORRUPT
    assert result.error == "STATE_HASH_MISMATCH"


def test_record_without_hash_is_corrupt(store, make_lock):
    store.write_state(make_lock())
    record = json.loads(store.state_path.read_text(encoding="utf-8"))
    del record["stateHash"]
    store.state_path.write_text(json.dumps(record), encoding="utf-8")

    assert store.read_state().error == "STATE_HASH_MISSING"


def test_signing_key_file_is_generated_once(store, make_lock, state_dir):
    store.write_state(make_lock("Task-1"))
    key_path = state_dir / STATE_HMAC_KEY_NAME
    key = key_path.read_text(encoding="utf-8")

    store.write_state(make_lock("Task-2"))

    assert len(key) == 64
    assert key_path.read_text(encoding="utf-8") == key
    if sys.platform != "win32":
        assert stat.S_IMODE(key_path.stat().st_mode) == 0o600


def test_missing_key_file_makes_record_unverifiable(store, make_lock, state_dir):
    store.write_state(make_lock())
    (state_dir / STATE_HMAC_KEY_NAME).unlink()

    assert store.read_state().error == "STATE_HASH_MISMATCH"
    assert not (state_dir / STATE_HMAC_KEY_NAME).exists()


def test_key_from_environment(monkeypatch, state_dir, make_lock):
    monkeypatch.setenv("SDD_STATE_HMAC_KEY", "  shared-secret  ")
    store = StateStore.from_settings(Settings(state_dir=str(state_dir)))

    store.write_state(make_lock())

    assert store.hmac_key.strip() == "shared-secret"
    assert store.read_state().is_ok
    assert not (state_dir / STATE_HMAC_KEY_NAME).exists()

    other = StateStore(state_dir, hmac_key="different")
    assert other.read_state().error == "STATE_HASH_MISMATCH"


def test_blank_title_or_actor_is_schema_mismatch(store, make_lock):
    store.write_state(make_lock())
    write_raw_record(store, {"activeTaskTitle": "  "})

    assert store.read_state().error.startswith("schema mismatch")

    store.write_state(make_lock())
    write_raw_record(store, {"startedBy": ""})

    assert store.read_state().error.startswith("schema mismatch")
