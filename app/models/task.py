"""Task model."""
from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import Column, Date, DateTime, Enum as SQLEnum, Integer, String

from app.database import Base
from app.db.types import StringArray


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    """Task status, declared in workflow order."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    AT_RISK = "AT_RISK"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    """Task priority, lowest first."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Task(Base):
    """Task belonging to a project or department container."""

    __tablename__ = "tasks"

    id = Column(String(64), primary_key=True, index=True)
    container_id = Column(String(255), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0, index=True)
    name = Column(String(255), nullable=False)
    phase = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=False, default=date.today)
    duration_days = Column(Integer, nullable=False, default=1)
    progress_percent = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.PENDING, nullable=False, index=True)
    priority = Column(SQLEnum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)
    assignee_id = Column(String(64), nullable=True, index=True)  # external user reference
    # No foreign key: detach/purge on delete is handled by the task service
    parent_id = Column(String(64), nullable=True, index=True)
    dependency_ids = Column(StringArray(), nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
