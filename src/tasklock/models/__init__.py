"""
Data models for tasklock.

This module provides the persisted lock record and the value types passed
between the parser, the state store and the gap validator.
"""

from .gap_report import GapReport
from .parsed_task import ParsedTask
from .state_result import RestoreResult, StateResult, StateStatus
from .task_lock import LOCK_RECORD_VERSION, TaskLock

__all__ = [
    "GapReport",
    "ParsedTask",
    "RestoreResult",
    "StateResult",
    "StateStatus",
    "TaskLock",
    "LOCK_RECORD_VERSION",
]
