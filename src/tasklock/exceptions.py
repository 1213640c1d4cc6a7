"""
Error types for tasklock.

Every error carries a stable ``code`` so that callers (CLI, HTTP API, an
external command router) can branch on it without parsing messages.
"""

from typing import Optional


class TaskLockError(Exception):
    """Base class for all tasklock errors."""

    code = "E_TASKLOCK"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"{self.code}: {detail}")


# Scope declaration errors


class ScopeFormatError(TaskLockError, ValueError):
    """A strict-mode scope segment is not wrapped in backticks."""

    code = "E_SCOPE_FORMAT"

    def __init__(self, token: str):
        self.token = token
        super().__init__(
            f"scope '{token}' must be wrapped in backticks in strict mode "
            f"(e.g. (Scope: `{token.strip('`') or 'src/**'}`))"
        )


# Lifecycle errors


class LifecycleError(TaskLockError):
    """Base class for invalid lock transitions."""

    code = "E_LIFECYCLE"


class AlreadyLockedError(LifecycleError):
    code = "E_ALREADY_LOCKED"

    def __init__(self, active_task_id: str, requested_task_id: str):
        self.active_task_id = active_task_id
        self.requested_task_id = requested_task_id
        super().__init__(
            f"task {active_task_id} is already active; end it before starting "
            f"{requested_task_id}"
        )


class NotLockedError(LifecycleError):
    code = "E_NOT_LOCKED"

    def __init__(self, detail: str = "no active task"):
        super().__init__(detail)


class TaskMismatchError(LifecycleError):
    code = "E_TASK_MISMATCH"

    def __init__(self, active_task_id: str, requested_task_id: str):
        self.active_task_id = active_task_id
        self.requested_task_id = requested_task_id
        super().__init__(
            f"active task is {active_task_id}, not {requested_task_id}"
        )


class ScopeMissingError(LifecycleError):
    code = "E_SCOPE_MISSING"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"{task_id} has no Scope defined")


# Task declaration lookup errors


class TasksFileNotFoundError(TaskLockError):
    code = "E_TASKS_NOT_FOUND"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} not found")


class TaskNotFoundError(TaskLockError):
    code = "E_TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"{task_id} not found")


class TaskAlreadyDoneError(TaskLockError):
    code = "E_TASK_ALREADY_DONE"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"{task_id} is already done")


# Store errors


class StoreError(TaskLockError):
    code = "E_STATE"


class StoreCorruptError(StoreError):
    """The persisted lock record exists but cannot be used."""

    code = "E_STATE_CORRUPT"

    def __init__(self, reason: str, path: Optional[str] = None):
        self.reason = reason
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(
            f"lock record is corrupted{where}: {reason}. "
            "Run 'tasklock restore' or 'tasklock force-unlock --force'"
        )


class StoreIOError(StoreError):
    """The underlying filesystem operation failed."""

    code = "E_STATE_IO"


class StateLockTimeoutError(StoreIOError):
    code = "E_STATE_LOCKED"
