"""
Path canonicalization and worktree containment checks.

All paths handed to the scope matcher go through here first, so that globs
are always matched against repository-relative, ``/``-separated paths.
"""

import logging
import ntpath
import os
from pathlib import Path
from typing import Optional, Union

from .config import Settings
from .git_tool import GitTool

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _resolve_against(path: PathLike, root: PathLike) -> Path:
    """Absolute, symlink-resolved form of ``path`` (relative input joins ``root``).

    ``Path.resolve`` resolves the longest existing prefix and keeps the
    remaining components as written, so nonexistent files still get their
    real parent directory.
    """
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = Path(root) / candidate
    return candidate.resolve()


def _unc_share(value: str) -> str:
    """Return the ``\\\\server\\share`` drive of a UNC path, or ''."""
    if not (value.startswith("\\\\") or value.startswith("//")):
        return ""
    drive, _ = ntpath.splitdrive(value)
    return drive


def normalize_to_repo_relative(path: PathLike, root: PathLike) -> str:
    """Return ``path`` relative to ``root`` using ``/`` separators.

    Accepts an absolute path or one already relative to ``root``. Paths that
    escape the root come back with leading ``..`` segments; use
    :func:`is_outside_worktree` to classify them.
    """
    resolved = _resolve_against(path, root)
    root_resolved = Path(root).resolve()

    try:
        return resolved.relative_to(root_resolved).as_posix()
    except ValueError:
        pass

    try:
        return Path(os.path.relpath(resolved, root_resolved)).as_posix()
    except ValueError:
        # Different drive; nothing relative to express
        return resolved.as_posix()


def is_outside_worktree(path: PathLike, root: PathLike) -> bool:
    """True when ``path`` does not live under ``root``.

    Covers ``..`` traversal, absolute paths elsewhere, other drives, and UNC
    paths on a share other than the root's.
    """
    raw = str(path)
    share = _unc_share(raw)
    if share:
        root_share = _unc_share(str(root))
        if ntpath.normcase(share) != ntpath.normcase(root_share):
            return True
        try:
            rel = ntpath.relpath(ntpath.normpath(raw), ntpath.normpath(str(root)))
        except ValueError:
            return True
        return rel == ".." or rel.startswith("..\\")

    resolved = _resolve_against(path, root)
    root_resolved = Path(root).resolve()
    try:
        rel = os.path.relpath(os.path.normcase(resolved), os.path.normcase(root_resolved))
    except ValueError:
        return True

    return rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel)


def get_worktree_root(settings: Optional[Settings] = None, cwd: Optional[Path] = None) -> str:
    """Return the directory the engine governs.

    The ``SDD_WORKTREE_ROOT`` override wins when it is non-blank; otherwise the
    enclosing Git working tree of ``cwd``; otherwise ``cwd`` itself.
    """
    settings = settings or Settings()
    override = settings.worktree_root_override
    if override:
        return override

    cwd = cwd or Path.cwd()
    result = GitTool(cwd).get_toplevel()
    if result.success and result.output:
        return str(Path(result.output))

    logger.debug(f"No Git worktree found above {cwd}; using it as the root")
    return str(cwd)


def is_symlink(path: PathLike) -> bool:
    """True only for an existing entry that is a symbolic link."""
    try:
        return os.path.islink(path)
    except (OSError, TypeError, ValueError):
        return False
