"""
tasklock: single-task lock and scope governance for code-change workflows.
"""

from .exceptions import (
    AlreadyLockedError,
    NotLockedError,
    ScopeFormatError,
    ScopeMissingError,
    StoreCorruptError,
    StoreIOError,
    TaskLockError,
    TaskMismatchError,
)
from .gap_validator import GapValidator
from .lock_controller import LockController, LockState
from .models import GapReport, ParsedTask, StateResult, TaskLock
from .path_normalizer import (
    get_worktree_root,
    is_outside_worktree,
    is_symlink,
    normalize_to_repo_relative,
)
from .scope_matcher import matches_scope
from .scope_parser import ScopeFormat, get_scope_format, parse_scopes, parse_task
from .state_store import StateStore

__version__ = "0.1.0"

__all__ = [
    "AlreadyLockedError",
    "GapReport",
    "GapValidator",
    "LockController",
    "LockState",
    "NotLockedError",
    "ParsedTask",
    "ScopeFormat",
    "ScopeFormatError",
    "ScopeMissingError",
    "StateResult",
    "StateStore",
    "StoreCorruptError",
    "StoreIOError",
    "TaskLock",
    "TaskLockError",
    "TaskMismatchError",
    "get_scope_format",
    "get_worktree_root",
    "is_outside_worktree",
    "is_symlink",
    "matches_scope",
    "normalize_to_repo_relative",
    "parse_scopes",
    "parse_task",
]
