"""
Pydantic settings model for tasklock configuration.

This module defines the configuration schema using pydantic-settings for
validation and type safety. Every field can be set from an ``SDD_`` prefixed
environment variable or a local ``.env`` file.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STRICT_SCOPE_FORMAT = "strict"


class Settings(BaseSettings):
    """Main tasklock settings."""

    model_config = SettingsConfigDict(
        env_prefix="SDD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Worktree and declarations
    worktree_root: Optional[str] = Field(
        default=None, description="Explicit worktree root (blank means unset)"
    )
    scope_format: Optional[str] = Field(
        default=None, description="Scope grammar; exactly 'strict' selects strict"
    )
    tasks_path: str = Field(
        default="specs/tasks.md", description="Task declaration file"
    )

    # State store
    state_dir: str = Field(
        default=".tasklock/state", description="Directory holding the lock record"
    )
    backup_generations: int = Field(
        default=3, ge=1, description="Number of backup generations to keep"
    )
    lock_stale_seconds: float = Field(
        default=30.0, gt=0, description="Age after which a state-dir lock is stale"
    )
    lock_retries: int = Field(
        default=10, ge=0, description="Attempts to acquire the state-dir lock"
    )
    lock_retry_wait_seconds: float = Field(
        default=0.5, ge=0, description="Wait between lock attempts"
    )

    # Integrity, logging and API
    log_level: str = Field(default="INFO", description="Log level")
    state_hmac_key: Optional[str] = Field(
        default=None, description="Key for signing lock records; a key file is generated when unset"
    )
    api_token: Optional[str] = Field(
        default=None, description="Bearer token required by the HTTP API"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def worktree_root_override(self) -> Optional[str]:
        """The worktree override, or None when unset or whitespace-only."""
        if self.worktree_root is None or not self.worktree_root.strip():
            return None
        return self.worktree_root.strip()

    @property
    def strict_scopes(self) -> bool:
        return self.scope_format == STRICT_SCOPE_FORMAT

    def resolve_path(self, value: str, base: Optional[Path] = None) -> Path:
        """Resolve a configured path relative to ``base`` (default: cwd)."""
        path = Path(value)
        if not path.is_absolute():
            path = (base or Path.cwd()) / path
        return path

    def state_path(self, base: Optional[Path] = None) -> Path:
        return self.resolve_path(self.state_dir, base)

    def tasks_file_path(self, base: Optional[Path] = None) -> Path:
        return self.resolve_path(self.tasks_path, base)
