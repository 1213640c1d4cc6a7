"""Tests for the tasks file accessor."""

import pytest

from tasklock.exceptions import ScopeFormatError, TasksFileNotFoundError
from tasklock.scope_parser import ScopeFormat
from tasklock.task_store import TasksFile

TASKS_MD = """# Tasks

Some prose that is not a task.

* [ ] Task-1: Add login form (Scope: `src/auth/**`, `tests/auth/**`)
  - [x] Task-2: Write docs (Scope: docs/**)
* [ ] Task-3: Broken scope (Scope: src/a, `src/b`)
"""


@pytest.fixture
def tasks_path(tmp_path, writer):
    return writer(tmp_path, "specs/tasks.md", TASKS_MD)


def test_missing_file_raises(tmp_path):
    tasks_file = TasksFile(tmp_path / "nope.md", ScopeFormat.LENIENT)

    assert tasks_file.exists() is False
    with pytest.raises(TasksFileNotFoundError) as excinfo:
        tasks_file.tasks()
    assert excinfo.value.code == "E_TASKS_NOT_FOUND"


def test_lists_all_declarations_leniently(tasks_path):
    declared = TasksFile(tasks_path, ScopeFormat.LENIENT).tasks()

    assert [task.id for task in declared] == ["Task-1", "Task-2", "Task-3"]
    assert declared[1].done is True
    assert declared[1].scopes == ["docs/**"]


def test_strict_listing_fails_on_bare_scope(tasks_path):
    with pytest.raises(ScopeFormatError):
        TasksFile(tasks_path, ScopeFormat.STRICT).tasks()


def test_find_only_parses_the_requested_line(tasks_path):
    task = TasksFile(tasks_path, ScopeFormat.STRICT).find("Task-1")

    assert task is not None
    assert task.title == "Add login form"
    assert task.scopes == ["src/auth/**", "tests/auth/**"]


def test_find_unknown_task(tasks_path):
    assert TasksFile(tasks_path, ScopeFormat.LENIENT).find("Task-9") is None


def test_task_text_returns_stripped_declaration(tasks_path):
    text = TasksFile(tasks_path).task_text("Task-2")

    assert text == "- [x] Task-2: Write docs (Scope: docs/**)"


def test_task_text_without_file_is_none(tmp_path):
    assert TasksFile(tmp_path / "missing.md").task_text("Task-1") is None
