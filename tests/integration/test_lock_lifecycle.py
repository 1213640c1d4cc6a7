"""End-to-end lifecycle over a real git worktree."""

import json
import subprocess
from pathlib import Path

import pytest

from tasklock.config import Settings
from tasklock.engine import build_engine
from tasklock.gap_validator import NO_ACTIVE_TASK_MESSAGE
from tasklock.lock_controller import LockState
from tasklock.utils.jsonl_logger import read_audit_log

TASKS_MD = """# Tasks
* [ ] Task-1: Add login form (Scope: `src/auth/**`, `tests/auth/**`)
* [ ] Task-2: Payments (Scope: `src/pay/**`)
"""


@pytest.fixture
def engine(git_repo, writer):
    writer(git_repo, "specs/tasks.md", TASKS_MD)
    writer(git_repo, "README.md", "# demo\n")
    subprocess.run(["git", "add", "-A"], cwd=git_repo, check=True, capture_output=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=git_repo, check=True, capture_output=True)
    settings = Settings(worktree_root=str(git_repo), lock_retry_wait_seconds=0.01)
    return build_engine(settings)


def test_start_validate_end(engine, git_repo, writer):
    lock = engine.controller.start("Task-1", "T", ["src/auth/**"], "alice")

    assert lock.validation_attempts == 0
    assert engine.controller.state() is LockState.LOCKED

    writer(git_repo, "src/auth/login.ts", "ok")
    writer(git_repo, "src/pay/x.ts", "oops")
    report = engine.validator.evaluate()

    assert report.in_scope == ["src/auth/login.ts"]
    assert report.out_of_scope == ["src/pay/x.ts"]
    assert "src/pay/x.ts" in engine.validator.validate()

    ended = engine.controller.end("Task-1", "alice")

    assert ended.validation_attempts == 2
    assert engine.controller.state() is LockState.UNLOCKED
    assert engine.validator.validate() == NO_ACTIVE_TASK_MESSAGE


def test_task_from_declaration_with_deep_analysis(engine, git_repo, writer):
    engine.controller.start_from_tasks("Task-1", "alice", engine.tasks_file)
    writer(git_repo, "tests/auth/test_login.ts", "ok")
    writer(
        git_repo,
        "specs/tasks.md",
        TASKS_MD.replace("`tests/auth/**`", "`tests/auth/**`, `docs/auth/**`"),
    )

    report = engine.validator.evaluate(deep=True)

    assert report.out_of_scope == ["specs/tasks.md"]
    assert "Scopes declared but not locked: docs/auth/**" in report.deep_analysis


def test_backups_and_audit_trail(engine):
    engine.controller.start("Task-1", "T", ["src/**"], "alice")
    engine.validator.evaluate()
    engine.controller.end("Task-1", "alice")

    store = engine.store
    backups = [path for path in store.backup_paths() if path.exists()]
    assert len(backups) == 2
    newest = json.loads(backups[0].read_text())
    assert newest["validationAttempts"] == 1

    events = [entry["event"] for entry in read_audit_log(store.state_dir)]
    assert events.count("STATE_WRITE") == 2
    assert "STATE_CLEARED" in events


def test_operator_recovery_after_corruption(engine):
    engine.controller.start("Task-1", "T", ["src/**"], "alice")
    engine.validator.evaluate()
    engine.store.state_path.write_text("{truncated", encoding="utf-8")

    result = engine.store.restore_from_backup("ops")

    assert result.restored is True
    assert engine.controller.current_lock().active_task_id == "Task-1"
    assert engine.controller.current_lock().validation_attempts == 0


def test_worktree_root_below_git_toplevel(git_repo, writer):
    writer(git_repo, "README.md", "# demo\n")
    subprocess.run(["git", "add", "-A"], cwd=git_repo, check=True, capture_output=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=git_repo, check=True, capture_output=True)
    package_root = git_repo / "pkg"
    package_root.mkdir()
    engine = build_engine(Settings(worktree_root=str(package_root), lock_retry_wait_seconds=0.01))

    engine.controller.start("Task-1", "T", ["src/**"], "alice")
    writer(git_repo, "pkg/src/a.ts", "ok")
    writer(git_repo, "README.md", "# changed\n")

    report = engine.validator.evaluate()

    assert report.in_scope == ["src/a.ts"]
    assert report.out_of_scope == []
    assert [Path(p).name for p in report.outside_worktree] == ["README.md"]
