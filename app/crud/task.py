"""Task CRUD operations."""
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.task import Task
from app.schemas.task import TaskRecord


class CRUDTask(CRUDBase[Task, TaskRecord, TaskRecord]):
    """CRUD operations for Task."""

    async def list_ordered(
        self,
        db: AsyncSession,
        *,
        container_id: Optional[str] = None,
    ) -> List[Task]:
        """List tasks in insertion order, optionally scoped to one container."""
        query = select(Task)
        if container_id is not None:
            query = query.where(Task.container_id == container_id)
        query = query.order_by(Task.position, Task.created_at, Task.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def next_position(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.max(Task.position)))
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1


task = CRUDTask(Task)
