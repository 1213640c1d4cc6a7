"""
Parsed task declaration model.
"""

from pydantic import BaseModel, Field


class ParsedTask(BaseModel):
    """One checklist line from a task declaration file."""

    id: str
    title: str
    scopes: list[str] = Field(default_factory=list)
    done: bool = False
