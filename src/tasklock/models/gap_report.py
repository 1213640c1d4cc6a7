"""
Gap validation report model.

A GapReport records how the changed files of a working tree line up with the
scopes of the active task lock, and renders the advisory text handed back to
the workflow driver.
"""

from typing import Optional

from pydantic import BaseModel, Field


class GapReport(BaseModel):
    """Result of one gap validation run."""

    task_id: str
    task_title: str
    allowed_scopes: list[str] = Field(default_factory=list)
    in_scope: list[str] = Field(default_factory=list)
    out_of_scope: list[str] = Field(default_factory=list)
    outside_worktree: list[str] = Field(default_factory=list)
    validation_attempts: int = 0
    deep_analysis: Optional[str] = None

    @property
    def violations(self) -> list[str]:
        return self.out_of_scope + self.outside_worktree

    @property
    def is_clean(self) -> bool:
        return not self.violations

    @property
    def changed_count(self) -> int:
        return len(self.in_scope) + len(self.violations)

    def render(self) -> str:
        """Render the report as user-facing text."""
        lines = [
            f"# Gap validation: {self.task_id} ({self.task_title})",
            f"Validation attempt: {self.validation_attempts}",
            "",
            "## Scope validation",
            f"Allowed scopes: {', '.join(self.allowed_scopes) or '(none)'}",
            f"Changed files: {self.changed_count} "
            f"(in scope: {len(self.in_scope)}, out of scope: {len(self.violations)})",
        ]

        if self.in_scope:
            lines.append("")
            lines.append("In scope:")
            lines.extend(f"- {path}" for path in self.in_scope)
        if self.out_of_scope:
            lines.append("")
            lines.append("Out of scope:")
            lines.extend(f"- {path}" for path in self.out_of_scope)
        if self.outside_worktree:
            lines.append("")
            lines.append("Outside worktree:")
            lines.extend(f"- {path}" for path in self.outside_worktree)

        lines.append("")
        lines.append("## Result")
        if self.is_clean:
            lines.append("PASS: all changed files are inside the declared scope.")
            lines.append(
                f"Next step: run `tasklock end {self.task_id}` to finish the task."
            )
        else:
            lines.append(
                f"FAIL: {len(self.violations)} file(s) outside the declared scope. "
                "Revert them or update the task's Scope, then validate again."
            )

        if self.deep_analysis:
            lines.append("")
            lines.append("## Deep analysis")
            lines.append(self.deep_analysis)

        return "\n".join(lines)
