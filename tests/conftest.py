"""
Pytest configuration and shared fixtures.
"""

import os
import subprocess
from collections.abc import Generator
from pathlib import Path
from typing import Any, Optional

import pytest

from tasklock.config import Settings, config_manager
from tasklock.models import TaskLock
from tasklock.state_store import StateStore


class StaticChangedFiles:
    """Changed-file provider returning a fixed list."""

    def __init__(self, files: Optional[list[str]] = None):
        self.files = list(files or [])

    def changed_files(self) -> list[str]:
        return list(self.files)


@pytest.fixture(autouse=True)  # type: ignore[misc]
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate every test from SDD_ variables and the cached configuration."""
    for key in list(os.environ):
        if key.upper().startswith("SDD_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_manager, "_config_manager", None)
    yield


@pytest.fixture  # type: ignore[misc]
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture  # type: ignore[misc]
def store(state_dir: Path) -> StateStore:
    """State store that gives up on a held lock immediately."""
    return StateStore(state_dir, retries=0, retry_wait=0)


@pytest.fixture  # type: ignore[misc]
def worktree(tmp_path: Path) -> Path:
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    return repo_path


@pytest.fixture  # type: ignore[misc]
def settings(worktree: Path) -> Settings:
    return Settings(
        worktree_root=str(worktree),
        lock_retries=1,
        lock_retry_wait_seconds=0.01,
    )


@pytest.fixture  # type: ignore[misc]
def changed_files() -> StaticChangedFiles:
    return StaticChangedFiles()


@pytest.fixture  # type: ignore[misc]
def make_lock():
    """Factory for TaskLock records."""

    def _make(task_id: str = "Task-1", scopes: Optional[list[str]] = None, **overrides: Any) -> TaskLock:
        lock = TaskLock.create(task_id, overrides.pop("title", "Title"), scopes or ["src/**"], "tester")
        if overrides:
            lock = lock.model_copy(update=overrides)
        return lock

    return _make


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository for testing."""
    repo_path = tmp_path / "gitrepo"
    repo_path.mkdir()
    subprocess.run(["git", "init"], cwd=repo_path, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.name", "Test User"], cwd=repo_path, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.email", "test@example.com"], cwd=repo_path, check=True, capture_output=True)
    return repo_path


def write_file(repo_path: Path, relative_path: str, content: str) -> Path:
    """Helper to write content to a file inside a directory tree."""
    target = repo_path / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


@pytest.fixture  # type: ignore[misc]
def writer():
    return write_file


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "api: mark test as API test")
    config.addinivalue_line("markers", "cli: mark test as CLI test")


def pytest_collection_modifyitems(config: Any, items: list[Any]) -> None:
    """Modify test collection to add markers based on file location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "api" in path:
            item.add_marker(pytest.mark.api)
        elif "cli" in path:
            item.add_marker(pytest.mark.cli)
