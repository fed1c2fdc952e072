"""Task store: the authoritative set of task records.

The store only persists. Hierarchy and dependency invariants are enforced
by :class:`app.services.task_service.TaskService`, which is the sole
writer. Records cross this boundary as :class:`TaskRecord` snapshots.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreFailureError, TaskNotFoundError
from app.crud.task import task as task_crud
from app.schemas.task import TaskRecord

logger = logging.getLogger(__name__)

_TIMESTAMPS = {"created_at", "updated_at"}


class TaskStore(ABC):
    """Persistence contract for task records."""

    @abstractmethod
    async def list(self, container_id: Optional[str] = None) -> List[TaskRecord]:
        """Return tasks in insertion order, optionally for one container."""

    @abstractmethod
    async def get(self, task_id: str) -> Optional[TaskRecord]:
        """Return a single task or None."""

    @abstractmethod
    async def create(self, record: TaskRecord) -> TaskRecord:
        """Persist a new record; its id is already assigned."""

    @abstractmethod
    async def update(self, record: TaskRecord) -> TaskRecord:
        """Replace a stored record."""

    @abstractmethod
    async def delete(self, task_id: str) -> None:
        """Remove a record."""


class InMemoryTaskStore(TaskStore):
    """Local, process-memory persistence."""

    def __init__(self, records: Optional[List[TaskRecord]] = None):
        self._records: Dict[str, TaskRecord] = {}
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    async def list(self, container_id: Optional[str] = None) -> List[TaskRecord]:
        return [
            record.model_copy(deep=True)
            for record in self._records.values()
            if container_id is None or record.container_id == container_id
        ]

    async def get(self, task_id: str) -> Optional[TaskRecord]:
        record = self._records.get(task_id)
        return record.model_copy(deep=True) if record else None

    async def create(self, record: TaskRecord) -> TaskRecord:
        if record.id in self._records:
            raise StoreFailureError("create", ValueError(f"duplicate task id {record.id}"))
        now = datetime.now(timezone.utc)
        stored = record.model_copy(deep=True, update={"created_at": now, "updated_at": now})
        self._records[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update(self, record: TaskRecord) -> TaskRecord:
        existing = self._records.get(record.id)
        if existing is None:
            raise TaskNotFoundError(record.id)
        stored = record.model_copy(
            deep=True,
            update={"created_at": existing.created_at, "updated_at": datetime.now(timezone.utc)},
        )
        self._records[stored.id] = stored
        return stored.model_copy(deep=True)

    async def delete(self, task_id: str) -> None:
        self._records.pop(task_id, None)


class SQLTaskStore(TaskStore):
    """Relational persistence through the async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _fail(self, operation: str, exc: SQLAlchemyError) -> StoreFailureError:
        logger.error("Task store %s failed: %s", operation, exc)
        await self.db.rollback()
        return StoreFailureError(operation, exc)

    async def list(self, container_id: Optional[str] = None) -> List[TaskRecord]:
        try:
            rows = await task_crud.list_ordered(self.db, container_id=container_id)
        except SQLAlchemyError as exc:
            raise await self._fail("list", exc) from exc
        return [TaskRecord.model_validate(row) for row in rows]

    async def get(self, task_id: str) -> Optional[TaskRecord]:
        try:
            row = await task_crud.get(self.db, id=task_id)
        except SQLAlchemyError as exc:
            raise await self._fail("get", exc) from exc
        return TaskRecord.model_validate(row) if row else None

    async def create(self, record: TaskRecord) -> TaskRecord:
        data = record.model_dump(exclude=_TIMESTAMPS)
        try:
            data["position"] = await task_crud.next_position(self.db)
            row = await task_crud.create(self.db, obj_in=data)
        except SQLAlchemyError as exc:
            raise await self._fail("create", exc) from exc
        return TaskRecord.model_validate(row)

    async def update(self, record: TaskRecord) -> TaskRecord:
        try:
            row = await task_crud.get(self.db, id=record.id)
            if row is None:
                raise TaskNotFoundError(record.id)
            row = await task_crud.update(
                self.db,
                db_obj=row,
                obj_in=record.model_dump(exclude=_TIMESTAMPS | {"id"}),
            )
        except SQLAlchemyError as exc:
            raise await self._fail("update", exc) from exc
        return TaskRecord.model_validate(row)

    async def delete(self, task_id: str) -> None:
        try:
            await task_crud.remove(self.db, id=task_id)
        except SQLAlchemyError as exc:
            raise await self._fail("delete", exc) from exc
