"""Task schemas."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.task import TaskPriority, TaskStatus
from app.utils.status_mapping import parse_priority, parse_status


class TaskBase(BaseModel):
    """Fields shared by every task payload."""

    container_id: str
    name: str
    phase: Optional[str] = None
    start_date: date = Field(default_factory=date.today)
    duration_days: int = 1
    progress_percent: int = 0
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    parent_id: Optional[str] = None
    dependency_ids: List[str] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value):
        return parse_status(value) if value is not None else TaskStatus.PENDING

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value):
        return parse_priority(value) if value is not None else TaskPriority.MEDIUM

    @field_validator("parent_id", "assignee_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("dependency_ids", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value


class TaskCreate(TaskBase):
    """Task creation payload. The id is assigned on creation."""

    pass


class TaskUpdate(TaskBase):
    """Full-record replace payload."""

    pass


class TaskRecord(TaskBase):
    """Stored task snapshot exchanged with the task store."""

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskResponse(TaskRecord):
    """Task response schema."""

    pass


class TaskRowResponse(BaseModel):
    """One row of an ordered, indented task list."""

    task: TaskResponse
    level: int
    has_children: bool
    expanded: bool
    status_tone: str
    priority_tone: str


class DependencyEdgeResponse(BaseModel):
    """Connector from a prerequisite's row to its dependent's row."""

    from_pos: int
    to_pos: int
    from_id: str
    to_id: str


class TaskDependencyInfo(BaseModel):
    """Dependency annotation for a single task."""

    task_id: str
    depends_on: List[str] = Field(default_factory=list)
    depended_on_by: List[str] = Field(default_factory=list)
    declared_count: int = 0
    hidden_count: int = 0
    has_dependencies: bool = False
    is_depended_on: bool = False


class TaskViewResponse(BaseModel):
    """Hierarchy and dependency view of one container."""

    container_id: str
    rows: List[TaskRowResponse]
    edges: List[DependencyEdgeResponse]
    dependencies: Dict[str, TaskDependencyInfo]


class TaskDeleteResult(BaseModel):
    """Outcome of a delete, including the corrective updates applied."""

    deleted_id: str
    detached_ids: List[str] = Field(default_factory=list)
    purged_ids: List[str] = Field(default_factory=list)


class TaskErrorResponse(BaseModel):
    """Body returned for rejected task mutations."""

    error: str
    detail: str
    previous: Optional[TaskResponse] = None
    created_ids: List[str] = Field(default_factory=list)
