from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Task(BaseModel):
    """A task or subtask. Both levels share this shape."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Opaque unique id (uuid4)")
    text: str = Field(..., description="User-supplied label")
    created_at: datetime = Field(..., alias="createdAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    cycle: str = Field("", description="Recurrence code, e.g. 1h, 1d, 1w")
    due_at: Optional[datetime] = Field(None, alias="dueAt")
    subtasks: List["Task"] = Field(default_factory=list)

    @field_validator("created_at", "completed_at", "due_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # naive timestamps in hand-edited files are read as UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with unset fields and empty subtasks omitted."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"subtasks"})
        if self.subtasks:
            data["subtasks"] = [s.to_dict() for s in self.subtasks]
        return data


class TaskFile(BaseModel):
    """On-disk document: {"tasks": [...]}."""
    tasks: List[Task] = Field(default_factory=list)


class TaskCreateRequest(BaseModel):
    """Request body for POST /api/tasks and POST /api/tasks/{id}/subtask."""
    text: str = Field(..., description="Task label")
    cycle: str = Field("", description="Recurrence code; empty for none")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("text must not be empty")
        return value

    @field_validator("cycle")
    @classmethod
    def strip_cycle(cls, value: str) -> str:
        return value.strip()


class StatusUpdateRequest(BaseModel):
    """Request body for the status endpoints."""
    complete: bool = Field(..., description="True to mark complete, false to reopen")
