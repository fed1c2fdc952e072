"""Tests for the task mutation coordinator."""
import logging

import pytest
from prometheus_client import REGISTRY

from app.core.exceptions import (
    CycleDetectedError,
    ParentNotFoundError,
    StoreFailureError,
    TaskNotFoundError,
    TaskValidationError,
)
from app.models.task import TaskPriority, TaskStatus
from app.schemas.task import TaskCreate
from app.services.task_service import TaskService, clamp_duration, clamp_progress
from app.services.task_store import InMemoryTaskStore

CONTAINER = "project:p1"


def draft(name, container_id=CONTAINER, **kwargs):
    return TaskCreate(container_id=container_id, name=name, **kwargs)


class FlakyStore(InMemoryTaskStore):
    """Fails the first ``failures`` list calls, and every write when ``broken``."""

    def __init__(self, failures=0, broken=False, records=None):
        super().__init__(records)
        self.failures = failures
        self.broken = broken
        self.list_calls = 0

    async def list(self, container_id=None):
        self.list_calls += 1
        if self.failures:
            self.failures -= 1
            raise StoreFailureError("list")
        return await super().list(container_id)

    async def create(self, record):
        if self.broken:
            raise StoreFailureError("create")
        return await super().create(record)

    async def update(self, record):
        if self.broken:
            raise StoreFailureError("update")
        return await super().update(record)


class LimitedUpdateStore(InMemoryTaskStore):
    """Lets ``allowed`` updates through, then fails every further update."""

    def __init__(self, allowed, records=None):
        super().__init__(records)
        self.allowed = allowed

    async def update(self, record):
        if self.allowed <= 0:
            raise StoreFailureError("update")
        self.allowed -= 1
        return await super().update(record)


def mutation_count(operation, outcome):
    value = REGISTRY.get_sample_value("task_mutations_total", {"operation": operation, "outcome": outcome})
    return value or 0.0


@pytest.mark.asyncio
async def test_create_assigns_unique_ids_and_clamps(task_service):
    """New tasks get fresh ids; duration and progress are clamped, not rejected."""
    first = await task_service.create_task(draft("Survey", duration_days=0, progress_percent=140))
    second = await task_service.create_task(draft("Permits", duration_days=-3, progress_percent=-5))

    assert first.id != second.id
    assert first.id.startswith("t-")
    assert first.duration_days == 1
    assert first.progress_percent == 100
    assert second.duration_days == 1
    assert second.progress_percent == 0
    assert first.status == TaskStatus.PENDING
    assert first.priority == TaskPriority.MEDIUM


@pytest.mark.asyncio
async def test_create_child_requires_parent_in_same_container(task_service):
    parent = await task_service.create_task(draft("Parent"))
    child = await task_service.create_task(draft("Child"), parent_id=parent.id)

    assert child.parent_id == parent.id

    with pytest.raises(ParentNotFoundError):
        await task_service.create_task(draft("Lost"), parent_id="nope")

    with pytest.raises(ParentNotFoundError):
        await task_service.create_task(draft("Elsewhere", container_id="project:p2"), parent_id=parent.id)

    assert len(await task_service.list_tasks()) == 2


@pytest.mark.asyncio
async def test_create_does_not_validate_dependency_existence(task_service):
    created = await task_service.create_task(draft("Later", dependency_ids=["created-later", "created-later"]))

    assert created.dependency_ids == ["created-later"]


@pytest.mark.asyncio
async def test_blank_name_is_a_validation_error(task_service):
    with pytest.raises(TaskValidationError):
        await task_service.create_task(draft("   "))

    assert await task_service.list_tasks() == []


@pytest.mark.asyncio
async def test_batch_create_validates_before_writing(task_service):
    parent = await task_service.create_task(draft("Parent"))

    created = await task_service.create_tasks([draft("A", parent_id=parent.id), draft("B")])
    assert [task.parent_id for task in created] == [parent.id, None]

    with pytest.raises(ParentNotFoundError):
        await task_service.create_tasks([draft("C"), draft("D", parent_id="pending-record")])

    assert [task.name for task in await task_service.list_tasks()] == ["Parent", "A", "B"]


@pytest.mark.asyncio
async def test_reparent_rejects_cycles_and_keeps_previous_parent(task_service):
    a = await task_service.create_task(draft("A"))
    b = await task_service.create_task(draft("B"), parent_id=a.id)
    c = await task_service.create_task(draft("C"), parent_id=b.id)

    with pytest.raises(CycleDetectedError) as excinfo:
        await task_service.update_task(a.model_copy(update={"parent_id": c.id}))

    assert excinfo.value.previous.parent_id is None
    assert (await task_service.get_task(a.id)).parent_id is None


@pytest.mark.asyncio
async def test_task_cannot_be_its_own_parent(task_service):
    a = await task_service.create_task(draft("A"))

    with pytest.raises(CycleDetectedError):
        await task_service.update_task(a.model_copy(update={"parent_id": a.id}))


@pytest.mark.asyncio
async def test_reparent_to_missing_parent_is_rejected(task_service):
    a = await task_service.create_task(draft("A"))

    with pytest.raises(ParentNotFoundError) as excinfo:
        await task_service.update_task(a.model_copy(update={"parent_id": "ghost", "name": "Renamed"}))

    assert excinfo.value.previous.name == "A"
    assert (await task_service.get_task(a.id)).name == "A"


@pytest.mark.asyncio
async def test_valid_reparent_and_full_replace(task_service):
    a = await task_service.create_task(draft("A"))
    b = await task_service.create_task(draft("B"))

    updated = await task_service.update_task(
        b.model_copy(update={"parent_id": a.id, "progress_percent": 250, "status": TaskStatus.AT_RISK})
    )

    assert updated.parent_id == a.id
    assert updated.progress_percent == 100
    assert updated.status == TaskStatus.AT_RISK
    view = await task_service.get_view(CONTAINER)
    assert [(row.task.id, row.level) for row in view.rows] == [(a.id, 0), (b.id, 1)]


@pytest.mark.asyncio
async def test_update_strips_self_dependency(task_service, caplog):
    a = await task_service.create_task(draft("A"))
    b = await task_service.create_task(draft("B"))

    with caplog.at_level(logging.WARNING, logger="app.services.task_service"):
        updated = await task_service.update_task(a.model_copy(update={"dependency_ids": [a.id, b.id]}))

    assert updated.dependency_ids == [b.id]
    assert "self-dependency" in caplog.text


@pytest.mark.asyncio
async def test_update_unknown_task(task_service, make_task):
    with pytest.raises(TaskNotFoundError):
        await task_service.update_task(make_task("missing"))


@pytest.mark.asyncio
async def test_moving_task_to_other_container_detaches_its_children(task_service):
    parent = await task_service.create_task(draft("Parent"))
    child = await task_service.create_task(draft("Child"), parent_id=parent.id)

    await task_service.update_task(parent.model_copy(update={"container_id": "project:p2"}))

    assert (await task_service.get_task(child.id)).parent_id is None


@pytest.mark.asyncio
async def test_failed_move_never_leaves_children_across_containers():
    """Children are detached before the move is written."""
    service = TaskService(LimitedUpdateStore(allowed=1))
    parent = await service.create_task(draft("Parent"))
    child = await service.create_task(draft("Child"), parent_id=parent.id)
    failures_before = mutation_count("update", "store_failure")

    with pytest.raises(StoreFailureError):
        await service.update_task(parent.model_copy(update={"container_id": "project:p2"}))

    assert (await service.get_task(parent.id)).container_id == CONTAINER
    assert (await service.get_task(child.id)).parent_id is None
    tasks = {task.id: task for task in await service.list_tasks()}
    for task in tasks.values():
        if task.parent_id is not None:
            assert tasks[task.parent_id].container_id == task.container_id
    assert mutation_count("update", "store_failure") == failures_before + 1


@pytest.mark.asyncio
async def test_unknown_ids_are_counted_as_rejected_mutations(task_service, make_task):
    updates_before = mutation_count("update", "rejected")
    deletes_before = mutation_count("delete", "rejected")

    with pytest.raises(TaskNotFoundError):
        await task_service.update_task(make_task("missing"))
    with pytest.raises(TaskNotFoundError):
        await task_service.delete_task("missing")

    assert mutation_count("update", "rejected") == updates_before + 1
    assert mutation_count("delete", "rejected") == deletes_before + 1


@pytest.mark.asyncio
async def test_delete_detaches_children_instead_of_cascading(task_service):
    root = await task_service.create_task(draft("Root"))
    child = await task_service.create_task(draft("Child"), parent_id=root.id)

    result = await task_service.delete_task(root.id)

    assert result.detached_ids == [child.id]
    remaining = await task_service.list_tasks()
    assert [task.id for task in remaining] == [child.id]
    assert remaining[0].parent_id is None


@pytest.mark.asyncio
async def test_delete_purges_dependency_references(task_service):
    y = await task_service.create_task(draft("Y"))
    x = await task_service.create_task(draft("X", dependency_ids=[y.id]))
    z = await task_service.create_task(draft("Z", container_id="project:p2", dependency_ids=[y.id, x.id]))

    result = await task_service.delete_task(y.id)

    assert sorted(result.purged_ids) == sorted([x.id, z.id])
    assert (await task_service.get_task(x.id)).dependency_ids == []
    assert (await task_service.get_task(z.id)).dependency_ids == [x.id]


@pytest.mark.asyncio
async def test_delete_unknown_task(task_service):
    with pytest.raises(TaskNotFoundError):
        await task_service.delete_task("missing")


@pytest.mark.asyncio
async def test_view_reflects_latest_store_state(task_service):
    """Views are rebuilt from the store on every call."""
    a = await task_service.create_task(draft("A"))
    b = await task_service.create_task(draft("B"), parent_id=a.id)
    c = await task_service.create_task(draft("C", dependency_ids=[b.id, "other-project-task"]))

    view = await task_service.get_view(CONTAINER)
    assert [(edge.from_pos, edge.to_pos) for edge in view.edges] == [(1, 2)]
    assert view.dependencies[c.id]["declared_count"] == 2
    assert view.dependencies[c.id]["hidden_count"] == 1

    collapsed = await task_service.get_view(CONTAINER, expanded=[])
    assert [row.task.id for row in collapsed.rows] == [a.id, c.id]
    assert collapsed.edges == []

    await task_service.delete_task(b.id)
    view = await task_service.get_view(CONTAINER)
    assert [row.task.id for row in view.rows] == [a.id, c.id]
    assert view.dependencies[c.id]["declared_count"] == 1


@pytest.mark.asyncio
async def test_get_dependencies_of_single_task(task_service):
    a = await task_service.create_task(draft("A"))
    b = await task_service.create_task(draft("B", dependency_ids=[a.id]))

    info = await task_service.get_dependencies(a.id)

    assert info["depended_on_by"] == [b.id]
    assert info["is_depended_on"] is True
    assert info["has_dependencies"] is False


@pytest.mark.asyncio
async def test_reads_are_retried_on_store_failure():
    store = FlakyStore(failures=2)
    service = TaskService(store)

    assert await service.list_tasks() == []
    assert store.list_calls == 3


@pytest.mark.asyncio
async def test_reads_give_up_after_configured_attempts():
    store = FlakyStore(failures=10)

    with pytest.raises(StoreFailureError):
        await TaskService(store).list_tasks()


@pytest.mark.asyncio
async def test_failed_write_leaves_state_unchanged(make_task):
    original = make_task("a", name="Original")
    store = FlakyStore(broken=True, records=[original])
    service = TaskService(store)

    with pytest.raises(StoreFailureError):
        await service.update_task(original.model_copy(update={"name": "Changed"}))
    with pytest.raises(StoreFailureError):
        await service.create_task(draft("New"))

    assert [task.name for task in await store.list()] == ["Original"]


@pytest.mark.asyncio
async def test_partial_batch_failure_carries_created_ids():
    class SecondCreateFails(InMemoryTaskStore):
        async def create(self, record):
            if await self.list():
                raise StoreFailureError("create")
            return await super().create(record)

    store = SecondCreateFails()

    with pytest.raises(StoreFailureError) as excinfo:
        await TaskService(store).create_tasks([draft("A"), draft("B")])

    assert excinfo.value.created_ids == [task.id for task in await store.list()]
    assert len(excinfo.value.created_ids) == 1


def test_clamp_helpers():
    assert clamp_duration(None) == 1
    assert clamp_duration("5") == 5
    assert clamp_duration(0) == 1
    assert clamp_progress("abc") == 0
    assert clamp_progress(101) == 100
    assert clamp_progress(42) == 42
