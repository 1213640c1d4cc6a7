"""
Wiring of the store, controller and validator for one worktree.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Settings, get_config
from .deep_analysis import DeclarationDriftAnalyzer
from .gap_validator import ChangedFilesProvider, DeepAnalyzer, GapValidator
from .git_tool import GitTool
from .lock_controller import LockController
from .path_normalizer import get_worktree_root
from .scope_parser import resolve_scope_format
from .state_store import StateStore
from .task_store import TasksFile


@dataclass
class Engine:
    settings: Settings
    worktree_root: Path
    store: StateStore
    controller: LockController
    validator: GapValidator
    tasks_file: TasksFile


def build_engine(
    settings: Optional[Settings] = None,
    changed_files: Optional[ChangedFilesProvider] = None,
    deep_analyzer: Optional[DeepAnalyzer] = None,
    cwd: Optional[Path] = None,
) -> Engine:
    """Assemble an engine; relative state and tasks paths resolve against the worktree root."""
    settings = settings or get_config()
    root = Path(get_worktree_root(settings, cwd))

    store = StateStore.from_settings(settings, base=root)
    tasks_file = TasksFile(
        settings.tasks_file_path(root), resolve_scope_format(settings.scope_format)
    )
    validator = GapValidator(
        store,
        changed_files or GitTool(root),
        root,
        task_text_store=tasks_file,
        deep_analyzer=deep_analyzer or DeclarationDriftAnalyzer(tasks_file.scope_format),
    )
    return Engine(
        settings=settings,
        worktree_root=root,
        store=store,
        controller=LockController(store),
        validator=validator,
        tasks_file=tasks_file,
    )
