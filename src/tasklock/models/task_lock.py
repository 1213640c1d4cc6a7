"""
Task lock model for tasklock.

This module provides the TaskLock model: the single persisted record that
marks one task as active and lists the path patterns it may touch.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

LOCK_RECORD_VERSION = 1


class TaskLock(BaseModel):
    """Active-task lock record, persisted with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: int = LOCK_RECORD_VERSION
    active_task_id: str = Field(..., alias="activeTaskId", min_length=1)
    active_task_title: str = Field(..., alias="activeTaskTitle", min_length=1)
    allowed_scopes: list[str] = Field(default_factory=list, alias="allowedScopes")
    started_at: datetime = Field(..., alias="startedAt")
    started_by: str = Field(..., alias="startedBy", min_length=1)
    validation_attempts: int = Field(default=0, ge=0, alias="validationAttempts")

    @field_validator("active_task_id", "active_task_title", "started_by")
    @classmethod
    def validate_not_blank(cls, v: str, info: ValidationInfo) -> str:
        if not v.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return v

    @classmethod
    def create(
        cls,
        task_id: str,
        title: str,
        scopes: list[str],
        actor: str,
        now: Optional[datetime] = None,
    ) -> "TaskLock":
        """Build a fresh lock with a zeroed validation counter."""
        return cls(
            active_task_id=task_id,
            active_task_title=title,
            allowed_scopes=list(scopes),
            started_at=now or datetime.now(timezone.utc),
            started_by=actor,
            validation_attempts=0,
        )

    def with_validation_attempt(self) -> "TaskLock":
        """Return a copy with the validation counter incremented."""
        return self.model_copy(
            update={"validation_attempts": self.validation_attempts + 1}
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)
