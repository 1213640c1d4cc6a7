"""
Default deep analyzer: compares the lock against the task's current declaration.
"""

import logging
from typing import Any, Optional, Sequence

from .exceptions import ScopeFormatError
from .models import TaskLock
from .scope_parser import ScopeFormat, parse_task

logger = logging.getLogger(__name__)


class DeclarationDriftAnalyzer:
    """Reports whether a task's declaration changed since its lock was taken."""

    def __init__(self, scope_format: Optional[ScopeFormat] = None):
        self.scope_format = scope_format

    def analyze(
        self,
        lock: TaskLock,
        declaration: Optional[str],
        changed_files: Sequence[str],
        options: dict[str, Any],
    ) -> str:
        lines = [f"Changed files analysed: {len(changed_files)}"]

        if declaration is None:
            lines.append(
                f"Declaration of {lock.active_task_id} not found in the tasks file; "
                "it may have been renamed or removed since the task started."
            )
            return "\n".join(lines)

        try:
            task = parse_task(declaration, self.scope_format)
        except ScopeFormatError as e:
            lines.append(f"Declaration scope is malformed: {e}")
            return "\n".join(lines)

        if task is None:
            lines.append("Declaration line no longer matches the task grammar.")
            return "\n".join(lines)

        if task.done:
            lines.append(f"{task.id} is already checked off in the tasks file.")
        if task.title != lock.active_task_title:
            lines.append(f"Title changed: '{lock.active_task_title}' -> '{task.title}'")

        added = [scope for scope in task.scopes if scope not in lock.allowed_scopes]
        removed = [scope for scope in lock.allowed_scopes if scope not in task.scopes]
        if added or removed:
            if added:
                lines.append(f"Scopes declared but not locked: {', '.join(added)}")
            if removed:
                lines.append(f"Scopes locked but no longer declared: {', '.join(removed)}")
            lines.append(f"Restart the task to pick up the new scopes: tasklock start {task.id}")
        else:
            lines.append("Declared scopes match the lock.")

        logger.debug(f"Deep analysis of {lock.active_task_id}: {len(added)} added, {len(removed)} removed")
        return "\n".join(lines)
