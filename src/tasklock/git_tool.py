"""
Git integration tool for tasklock.

This module wraps the handful of Git queries the engine needs: locating the
working-tree root and listing the files touched in it.
"""

import logging
import subprocess
from pathlib import Path
from typing import Any, Optional


class GitOperationResult:
    """Result of a Git operation."""

    def __init__(self, success: bool, output: str = "", error: str = "", data: Optional[dict[str, Any]] = None):
        self.success = success
        self.output = output
        self.error = error
        self.data = data or {}


class GitTool:
    """Read-only Git queries against one working tree."""

    def __init__(self, repo_path: Optional[Path] = None):
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()
        self.logger = logging.getLogger(__name__)

    def _run_git_command(
        self, command: list[str], cwd: Optional[Path] = None, strip: bool = True
    ) -> GitOperationResult:
        """Run a Git command and return the result.

        Pass ``strip=False`` for NUL-separated output, where surrounding
        whitespace belongs to the file names.
        """
        try:
            cwd = cwd or self.repo_path
            result = subprocess.run(
                ["git"] + command,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
            )

            if result.returncode == 0:
                return GitOperationResult(
                    success=True,
                    output=result.stdout.strip() if strip else result.stdout,
                    data={"returncode": result.returncode},
                )
            else:
                return GitOperationResult(
                    success=False,
                    output=result.stdout.strip(),
                    error=result.stderr.strip(),
                    data={"returncode": result.returncode},
                )
        except OSError as e:
            return GitOperationResult(
                success=False,
                error=str(e),
                data={"exception": str(e)},
            )

    def is_git_repo(self) -> bool:
        """Check if the repository path is inside a Git working tree."""
        result = self._run_git_command(["rev-parse", "--is-inside-work-tree"])
        return result.success and result.output == "true"

    def get_toplevel(self) -> GitOperationResult:
        """Get the root directory of the enclosing working tree."""
        result = self._run_git_command(["rev-parse", "--show-toplevel"])
        if not result.success:
            self.logger.debug(f"git rev-parse --show-toplevel failed: {result.error}")
        return result

    def _list(self, command: list[str]) -> list[str]:
        # NUL-separated output keeps unusual file names unquoted
        result = self._run_git_command(command + ["-z"], strip=False)
        if not result.success:
            self.logger.warning(f"git {' '.join(command)} failed: {result.error}")
            return []
        return [name for name in result.output.split("\0") if name]

    def get_changed_files(self) -> GitOperationResult:
        """List staged, unstaged and untracked files.

        Names in ``data["files"]`` are relative to the Git top level, which
        is reported as ``data["toplevel"]``.
        """
        if not self.is_git_repo():
            return GitOperationResult(success=False, error="Not a Git repository")
        toplevel = self.get_toplevel()
        if not toplevel.success:
            return GitOperationResult(success=False, error=toplevel.error)

        staged = self._list(["diff", "--name-only", "--cached", "--no-renames"])
        unstaged = self._list(["diff", "--name-only", "--no-renames"])
        untracked = self._list(["ls-files", "--others", "--exclude-standard", "--full-name"])

        files = sorted(set(staged) | set(unstaged) | set(untracked))
        return GitOperationResult(
            success=True,
            output="\n".join(files),
            data={
                "toplevel": toplevel.output,
                "files": files,
                "staged_files": staged,
                "unstaged_files": unstaged,
                "untracked_files": untracked,
            },
        )

    def changed_files(self) -> list[str]:
        """Changed-file provider used by the gap validator.

        Returns absolute paths, so they resolve correctly against a worktree
        root below the Git top level.
        """
        result = self.get_changed_files()
        if not result.success:
            self.logger.warning(f"Could not list changed files: {result.error}")
            return []
        toplevel = Path(result.data["toplevel"])
        return [str(toplevel / name) for name in result.data["files"]]
