"""
Lock lifecycle: start, end and forced unlock of the active task.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence

from .exceptions import (
    AlreadyLockedError,
    NotLockedError,
    ScopeMissingError,
    StoreCorruptError,
    TaskAlreadyDoneError,
    TaskMismatchError,
    TaskNotFoundError,
    TasksFileNotFoundError,
)
from .models import StateStatus, TaskLock
from .state_store import StateStore
from .task_store import TasksFile

logger = logging.getLogger(__name__)


class LockState(str, Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


@dataclass(frozen=True)
class UnlockResult:
    """What a forced unlock cleared."""

    previous_task_id: Optional[str]
    was_corrupt: bool
    record_removed: bool
    lock_artifact_removed: bool


@dataclass(frozen=True)
class LockDiagnosis:
    """Read-only snapshot of the state directory."""

    state_dir: Path
    state_status: StateStatus
    active_task_id: Optional[str]
    error: Optional[str]
    lock_artifact: bool
    lock_info: Optional[dict[str, Any]]

    def render(self) -> str:
        lines = [
            "# Lock diagnosis",
            f"State directory: {self.state_dir}",
            f"Lock artifact: {'present' if self.lock_artifact else 'absent'}",
        ]
        if self.lock_info:
            lines.append(
                f"Lock owner: pid={self.lock_info.get('pid')} host={self.lock_info.get('host')} "
                f"task={self.lock_info.get('taskId')} since={self.lock_info.get('startedAt')}"
            )
        if self.state_status is StateStatus.OK:
            lines.append(f"State record: OK (active task {self.active_task_id})")
        elif self.state_status is StateStatus.NOT_FOUND:
            lines.append("State record: none")
        else:
            lines.append(f"State record: CORRUPTED ({self.error})")
            lines.append("Run 'tasklock restore' to recover the previous record.")
        return "\n".join(lines)


class LockController:
    """State machine over the single lock record (UNLOCKED <-> LOCKED)."""

    def __init__(self, store: StateStore):
        self.store = store

    def current_lock(self) -> Optional[TaskLock]:
        """The active lock, or None.

        Raises:
            StoreCorruptError: If the record exists but cannot be used.
        """
        result = self.store.read_state()
        if result.is_corrupt:
            raise StoreCorruptError(result.error or "unknown", str(self.store.state_path))
        return result.lock

    def state(self) -> LockState:
        return LockState.LOCKED if self.current_lock() else LockState.UNLOCKED

    def start(self, task_id: str, title: str, scopes: Sequence[str], actor: str) -> TaskLock:
        """Lock ``task_id`` with the given allowed scopes.

        Starting the task that already holds the lock refreshes it. A blank
        title falls back to the task id.
        """
        if not scopes:
            raise ScopeMissingError(task_id)

        current = self.current_lock()
        if current is not None and current.active_task_id != task_id:
            raise AlreadyLockedError(current.active_task_id, task_id)

        lock = TaskLock.create(task_id, title if title.strip() else task_id, list(scopes), actor)
        self.store.write_state(lock)
        logger.info(f"Started {task_id} for {actor} with scopes {', '.join(lock.allowed_scopes)}")
        return lock

    def start_from_tasks(self, task_id: str, actor: str, tasks_file: TasksFile) -> TaskLock:
        """Start a task using the title and scopes of its declaration."""
        if not tasks_file.exists():
            raise TasksFileNotFoundError(str(tasks_file.path))

        task = tasks_file.find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.done:
            raise TaskAlreadyDoneError(task_id)

        return self.start(task.id, task.title, task.scopes, actor)

    def end(self, task_id: str, actor: str) -> TaskLock:
        """Release the lock held by ``task_id`` and return it."""
        current = self.current_lock()
        if current is None:
            raise NotLockedError()
        if current.active_task_id != task_id:
            raise TaskMismatchError(current.active_task_id, task_id)

        self.store.clear_state(actor)
        logger.info(
            f"Ended {task_id} for {actor} after {current.validation_attempts} validation(s)"
        )
        return current

    def force_unlock(self, actor: str) -> UnlockResult:
        """Return to UNLOCKED from any state, including a corrupt record."""
        result = self.store.read_state()
        previous = result.lock.active_task_id if result.is_ok else None

        artifact_removed = self.store.break_lock()
        record_removed = self.store.clear_state(actor)

        self.store.audit_event(
            "FORCE_UNLOCK",
            f"by={actor} previous={previous or '-'}",
            level=logging.WARNING,
            actor=actor,
            task_id=previous,
            was_corrupt=result.is_corrupt,
        )
        logger.warning(f"Forced unlock by {actor} (previous task: {previous or 'none'})")

        return UnlockResult(
            previous_task_id=previous,
            was_corrupt=result.is_corrupt,
            record_removed=record_removed,
            lock_artifact_removed=artifact_removed,
        )

    def diagnose(self) -> LockDiagnosis:
        result = self.store.read_state()
        return LockDiagnosis(
            state_dir=self.store.state_dir,
            state_status=result.status,
            active_task_id=result.lock.active_task_id if result.lock else None,
            error=result.error,
            lock_artifact=self.store.is_locked(),
            lock_info=self.store.read_lock_info(),
        )
