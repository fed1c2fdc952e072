"""Task mutation coordinator and container views.

``TaskService`` is the only writer to the task store. Every operation
re-reads the store, so derived structures are never cached across
mutations. Writes go to the store first and nothing in memory changes
until the store confirms (write-then-update); a failed write therefore
needs no rollback.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from app.config import settings
from app.core.exceptions import (
    CycleDetectedError,
    ParentNotFoundError,
    StoreFailureError,
    TaskError,
    TaskNotFoundError,
    TaskValidationError,
)
from app.middleware.metrics import task_mutations_total
from app.schemas.task import TaskBase, TaskCreate, TaskDeleteResult, TaskRecord
from app.services.dependency_service import DependencyEdge, DependencyIndex, normalize_dependency_ids
from app.services.hierarchy_service import TaskRow, ancestor_chain, build_hierarchy, row_positions
from app.services.task_store import TaskStore
from app.utils.ids import generate_task_id
from app.utils.status_mapping import priority_tone, status_tone

logger = logging.getLogger(__name__)

MIN_DURATION_DAYS = 1
_ID_ATTEMPTS = 5


def clamp_duration(value: Any) -> int:
    """Duration in whole days, at least one."""
    try:
        days = int(value)
    except (TypeError, ValueError):
        days = MIN_DURATION_DAYS
    return max(MIN_DURATION_DAYS, days)


def clamp_progress(value: Any) -> int:
    try:
        percent = int(value)
    except (TypeError, ValueError):
        percent = 0
    return min(100, max(0, percent))


@dataclass
class TaskView:
    """Ordered rows of one container with their dependency annotation."""

    container_id: str
    rows: List[TaskRow]
    edges: List[DependencyEdge]
    dependencies: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def positions(self) -> Dict[str, int]:
        return row_positions(self.rows)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "container_id": self.container_id,
            "rows": [
                {
                    "task": row.task.model_dump(),
                    "level": row.level,
                    "has_children": row.has_children,
                    "expanded": row.expanded,
                    "status_tone": status_tone(row.task.status),
                    "priority_tone": priority_tone(row.task.priority),
                }
                for row in self.rows
            ],
            "edges": [
                {
                    "from_pos": edge.from_pos,
                    "to_pos": edge.to_pos,
                    "from_id": edge.from_id,
                    "to_id": edge.to_id,
                }
                for edge in self.edges
            ],
            "dependencies": self.dependencies,
        }


class TaskService:
    """Applies create/update/delete while keeping hierarchy and dependencies consistent."""

    def __init__(self, store: TaskStore):
        self.store = store

    # Reads

    async def _with_read_retry(self, operation, *args):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, settings.STORE_READ_ATTEMPTS)),
            wait=wait_fixed(settings.STORE_RETRY_WAIT_SECONDS),
            retry=retry_if_exception_type(StoreFailureError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await operation(*args)

    async def list_tasks(self, container_id: Optional[str] = None) -> List[TaskRecord]:
        """Flat task list in insertion order."""
        return await self._with_read_retry(self.store.list, container_id)

    async def find_task(self, task_id: str) -> Optional[TaskRecord]:
        return await self._with_read_retry(self.store.get, task_id)

    async def get_task(self, task_id: str) -> TaskRecord:
        record = await self.find_task(task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        return record

    async def get_view(
        self,
        container_id: str,
        expanded: Optional[Iterable[str]] = None,
    ) -> TaskView:
        """Build the ordered rows and dependency annotation of a container."""
        tasks = await self.list_tasks(container_id)
        rows = build_hierarchy(tasks, expanded)
        positions = row_positions(rows)
        index = DependencyIndex(tasks)
        return TaskView(
            container_id=container_id,
            rows=rows,
            edges=index.edges(positions),
            dependencies={task.id: index.describe(task.id, positions) for task in tasks},
        )

    async def get_dependencies(self, task_id: str) -> Dict[str, Any]:
        """Dependency annotation of one task within its container, fully expanded."""
        record = await self.get_task(task_id)
        tasks = await self.list_tasks(record.container_id)
        positions = row_positions(build_hierarchy(tasks))
        return DependencyIndex(tasks).describe(task_id, positions)

    # Writes

    def _count(self, operation: str, outcome: str) -> None:
        task_mutations_total.labels(operation, outcome).inc()

    def _clean_fields(
        self,
        data: TaskBase,
        task_id: Optional[str],
        previous: Optional[TaskRecord] = None,
    ) -> Dict[str, Any]:
        name = (data.name or "").strip()
        if not name:
            raise TaskValidationError("Task name is required", previous=previous)
        container_id = (data.container_id or "").strip()
        if not container_id:
            raise TaskValidationError("Task container is required", previous=previous)

        dependency_ids, had_self = normalize_dependency_ids(task_id or "", data.dependency_ids)
        if had_self:
            logger.warning("Removed self-dependency from task %s", task_id)

        fields = data.model_dump(exclude={"id", "created_at", "updated_at"})
        fields.update(
            name=name,
            container_id=container_id,
            duration_days=clamp_duration(data.duration_days),
            progress_percent=clamp_progress(data.progress_percent),
            dependency_ids=dependency_ids,
        )
        return fields

    async def _require_parent(
        self,
        parent_id: str,
        container_id: str,
        previous: Optional[TaskRecord] = None,
    ) -> TaskRecord:
        parent = await self.find_task(parent_id)
        if parent is None or parent.container_id != container_id:
            raise ParentNotFoundError(parent_id, container_id, previous=previous)
        return parent

    async def _new_id(self) -> str:
        for _ in range(_ID_ATTEMPTS):
            candidate = generate_task_id()
            if await self.find_task(candidate) is None:
                return candidate
        raise StoreFailureError("create", RuntimeError("could not allocate a unique task id"))

    async def create_task(self, data: TaskCreate, parent_id: Optional[str] = None) -> TaskRecord:
        """Create a root task, or a child of ``parent_id`` in the same container.

        Dependencies are not checked for existence; unresolved ones are
        ignored when views are built.
        """
        try:
            fields = self._clean_fields(data, None)
            fields["parent_id"] = parent_id or fields.get("parent_id")
            if fields["parent_id"]:
                await self._require_parent(fields["parent_id"], fields["container_id"])
            record = TaskRecord(id=await self._new_id(), **fields)
            created = await self.store.create(record)
        except StoreFailureError:
            self._count("create", "store_failure")
            raise
        except TaskError:
            self._count("create", "rejected")
            raise

        self._count("create", "ok")
        logger.info("Created task %s in %s", created.id, created.container_id)
        return created

    async def create_tasks(self, batch: Sequence[TaskCreate]) -> List[TaskRecord]:
        """Create several records.

        Records in the batch have no id yet, so a parent must already be
        stored. The whole batch is validated before anything is written.

        Writes are not atomic: if the store fails partway, the records
        already written stay, and their ids are on the raised
        ``StoreFailureError`` as ``created_ids``.
        """
        prepared: List[Dict[str, Any]] = []
        try:
            for data in batch:
                fields = self._clean_fields(data, None)
                if fields.get("parent_id"):
                    await self._require_parent(fields["parent_id"], fields["container_id"])
                prepared.append(fields)
        except TaskError:
            self._count("create", "rejected")
            raise

        created: List[TaskRecord] = []
        for fields in prepared:
            try:
                record = TaskRecord(id=await self._new_id(), **fields)
                created.append(await self.store.create(record))
            except StoreFailureError as exc:
                self._count("create", "store_failure")
                exc.created_ids = [task.id for task in created]
                logger.error(
                    "Batch create stopped after %d of %d tasks",
                    len(created),
                    len(prepared),
                    extra={"task_ids": exc.created_ids},
                )
                raise
            self._count("create", "ok")
        return created

    async def update_task(self, record: TaskRecord) -> TaskRecord:
        """Replace a task. Reparenting is checked for cycles against the stored chain.

        When the task moves to another container, its children there are
        detached before the task itself is written, so a failed write never
        leaves a child pointing across containers.
        """
        try:
            previous = await self.get_task(record.id)
            fields = self._clean_fields(record, record.id, previous)
            new_parent = fields.get("parent_id")
            container_id = fields["container_id"]

            if new_parent == record.id:
                raise CycleDetectedError(record.id, new_parent, previous=previous)
            if new_parent:
                await self._require_parent(new_parent, container_id, previous)
                if new_parent != previous.parent_id or container_id != previous.container_id:
                    container_tasks = await self.list_tasks(container_id)
                    parent_of = {task.id: task.parent_id for task in container_tasks}
                    if record.id in ancestor_chain(new_parent, parent_of):
                        raise CycleDetectedError(record.id, new_parent, previous=previous)

            if container_id != previous.container_id:
                await self._detach_children(record.id, previous.container_id)
            updated = await self.store.update(TaskRecord(id=record.id, **fields))
        except StoreFailureError:
            self._count("update", "store_failure")
            raise
        except TaskError:
            self._count("update", "rejected")
            raise

        self._count("update", "ok")
        return updated

    async def _detach_children(self, task_id: str, container_id: str) -> List[str]:
        """Children of a task leaving ``container_id`` become roots there."""
        detached = []
        for child in await self.list_tasks(container_id):
            if child.parent_id == task_id:
                await self.store.update(child.model_copy(update={"parent_id": None}))
                detached.append(child.id)
        if detached:
            logger.info("Detached %d children of moved task %s", len(detached), task_id)
        return detached

    async def delete_task(self, task_id: str) -> TaskDeleteResult:
        """Delete a task, promoting its children to roots and purging it from dependency lists.

        Corrective updates run before the delete itself, so an interrupted
        delete never leaves references to a missing task.
        """
        detached: List[str] = []
        purged: List[str] = []
        try:
            await self.get_task(task_id)
            for other in await self.list_tasks():
                if other.id == task_id:
                    continue
                changes: Dict[str, Any] = {}
                if other.parent_id == task_id:
                    changes["parent_id"] = None
                    detached.append(other.id)
                if task_id in other.dependency_ids:
                    changes["dependency_ids"] = [dep for dep in other.dependency_ids if dep != task_id]
                    purged.append(other.id)
                if changes:
                    await self.store.update(other.model_copy(update=changes))
            await self.store.delete(task_id)
        except StoreFailureError:
            self._count("delete", "store_failure")
            raise
        except TaskError:
            self._count("delete", "rejected")
            raise

        if detached:
            logger.info("Detached children of deleted task %s", task_id, extra={"task_ids": detached})
        if purged:
            logger.info("Purged deleted task %s from dependency lists", task_id, extra={"task_ids": purged})
        self._count("delete", "ok")
        return TaskDeleteResult(deleted_id=task_id, detached_ids=detached, purged_ids=purged)
