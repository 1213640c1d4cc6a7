"""
Gap validation: compare what changed in the worktree with what the active
task declared it would touch.

Validation is advisory. Violations are reported, never raised; the caller
decides whether to block on them.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, Union

from .exceptions import StoreCorruptError
from .models import GapReport, TaskLock
from .path_normalizer import is_outside_worktree, normalize_to_repo_relative
from .scope_matcher import filesystem_is_case_sensitive, partition_paths
from .state_store import StateStore

logger = logging.getLogger(__name__)

NO_ACTIVE_TASK_MESSAGE = (
    "No active task. Start one with `tasklock start <TASK_ID>` "
    "before running gap validation."
)


class ChangedFilesProvider(Protocol):
    def changed_files(self) -> list[str]: ...


class TaskTextStore(Protocol):
    def task_text(self, task_id: str) -> Optional[str]: ...


class DeepAnalyzer(Protocol):
    def analyze(
        self,
        lock: TaskLock,
        declaration: Optional[str],
        changed_files: Sequence[str],
        options: dict[str, Any],
    ) -> str: ...


class GapValidator:
    """Builds gap reports for the active task."""

    def __init__(
        self,
        store: StateStore,
        changed_files: ChangedFilesProvider,
        worktree_root: Union[str, Path],
        task_text_store: Optional[TaskTextStore] = None,
        deep_analyzer: Optional[DeepAnalyzer] = None,
        case_sensitive: Optional[bool] = None,
    ):
        self.store = store
        self.changed_files = changed_files
        self.worktree_root = Path(worktree_root)
        self.task_text_store = task_text_store
        self.deep_analyzer = deep_analyzer
        self.case_sensitive = case_sensitive

    def _case_sensitive(self) -> bool:
        if self.case_sensitive is not None:
            return self.case_sensitive
        probe_dir = self.store.state_dir if self.store.state_dir.is_dir() else None
        return filesystem_is_case_sensitive(str(probe_dir) if probe_dir else None)

    def _state_dir_prefix(self) -> Optional[str]:
        if is_outside_worktree(self.store.state_dir, self.worktree_root):
            return None
        return normalize_to_repo_relative(self.store.state_dir, self.worktree_root)

    def _classify(self, paths: Sequence[str]) -> tuple[list[str], list[str]]:
        """Split raw paths into (repo-relative inside paths, outside paths).

        The engine's own state directory is not a task change and is skipped.
        """
        state_prefix = self._state_dir_prefix()
        inside: list[str] = []
        outside: list[str] = []
        for path in paths:
            if is_outside_worktree(path, self.worktree_root):
                if path not in outside:
                    outside.append(path)
                continue
            normalized = normalize_to_repo_relative(path, self.worktree_root)
            if state_prefix and (normalized == state_prefix or normalized.startswith(state_prefix + "/")):
                continue
            if normalized not in inside:
                inside.append(normalized)
        return inside, outside

    def evaluate(self, deep: bool = False) -> Optional[GapReport]:
        """Run a validation and return its report, or None without a lock.

        Raises:
            StoreCorruptError: If the lock record cannot be read.
        """
        result = self.store.read_state()
        if result.is_not_found:
            logger.info("Gap validation requested without an active task")
            return None
        if result.is_corrupt:
            raise StoreCorruptError(result.error or "unknown", str(self.store.state_path))

        lock = result.lock.with_validation_attempt()
        inside, outside = self._classify(self.changed_files.changed_files())
        in_scope, out_of_scope = partition_paths(
            inside, lock.allowed_scopes, case_sensitive=self._case_sensitive()
        )

        self.store.write_state(lock)

        deep_text = None
        if deep:
            deep_text = self._deep_analysis(lock, inside)

        report = GapReport(
            task_id=lock.active_task_id,
            task_title=lock.active_task_title,
            allowed_scopes=lock.allowed_scopes,
            in_scope=in_scope,
            out_of_scope=out_of_scope,
            outside_worktree=outside,
            validation_attempts=lock.validation_attempts,
            deep_analysis=deep_text,
        )
        logger.info(
            f"Gap validation #{lock.validation_attempts} for {lock.active_task_id}: "
            f"{len(in_scope)} in scope, {len(report.violations)} violation(s)"
        )
        return report

    def _deep_analysis(self, lock: TaskLock, changed: Sequence[str]) -> str:
        if self.deep_analyzer is None:
            return "Deep analysis unavailable: no analyzer configured."
        declaration = None
        if self.task_text_store is not None:
            declaration = self.task_text_store.task_text(lock.active_task_id)
        return self.deep_analyzer.analyze(lock, declaration, changed, {"deep": True})

    def validate(self, deep: bool = False) -> str:
        """Run a validation and return the user-facing report text."""
        report = self.evaluate(deep=deep)
        if report is None:
            return NO_ACTIVE_TASK_MESSAGE
        return report.render()
