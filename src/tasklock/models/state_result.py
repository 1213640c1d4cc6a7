"""
Result types returned by the state store.

Absence and corruption of the lock record are ordinary outcomes of a read, so
they are modelled as tagged results instead of exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .task_lock import TaskLock


class StateStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class StateResult:
    """Outcome of reading the lock record."""

    status: StateStatus
    lock: Optional[TaskLock] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, lock: TaskLock) -> "StateResult":
        return cls(status=StateStatus.OK, lock=lock)

    @classmethod
    def not_found(cls) -> "StateResult":
        return cls(status=StateStatus.NOT_FOUND)

    @classmethod
    def corrupt(cls, error: str) -> "StateResult":
        return cls(status=StateStatus.CORRUPT, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status is StateStatus.OK

    @property
    def is_not_found(self) -> bool:
        return self.status is StateStatus.NOT_FOUND

    @property
    def is_corrupt(self) -> bool:
        return self.status is StateStatus.CORRUPT


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of a manual restore from the backup chain."""

    restored: bool
    from_backup: Optional[Path] = None
    reason: Optional[str] = None
