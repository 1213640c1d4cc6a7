"""
Access to the task declaration file (``specs/tasks.md`` by default).
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .exceptions import TasksFileNotFoundError
from .models import ParsedTask
from .scope_parser import TASK_LINE_PATTERN, ScopeFormat, parse_task, parse_tasks_file

logger = logging.getLogger(__name__)


class TasksFile:
    """Checklist of task declarations, read on demand."""

    def __init__(self, path: Union[str, Path], scope_format: Optional[ScopeFormat] = None):
        self.path = Path(path)
        self.scope_format = scope_format

    def exists(self) -> bool:
        return self.path.is_file()

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise TasksFileNotFoundError(str(self.path)) from e

    def tasks(self) -> list[ParsedTask]:
        return parse_tasks_file(self.read_text(), self.scope_format)

    def _declaration_line(self, task_id: str) -> Optional[str]:
        for line in self.read_text().splitlines():
            stripped = line.strip()
            match = TASK_LINE_PATTERN.match(stripped)
            if match and match.group("id") == task_id:
                return stripped
        return None

    def find(self, task_id: str) -> Optional[ParsedTask]:
        """Parse the declaration of ``task_id`` only.

        A malformed scope on another line does not prevent the lookup.
        """
        line = self._declaration_line(task_id)
        if line is None:
            return None
        return parse_task(line, self.scope_format)

    def task_text(self, task_id: str) -> Optional[str]:
        """Raw declaration line of ``task_id``, or None."""
        if not self.exists():
            logger.debug(f"Tasks file {self.path} not found")
            return None
        return self._declaration_line(task_id)
