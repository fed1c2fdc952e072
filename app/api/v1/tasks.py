"""Tasks API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import get_task_service
from app.schemas.task import (
    TaskCreate,
    TaskDeleteResult,
    TaskDependencyInfo,
    TaskErrorResponse,
    TaskRecord,
    TaskResponse,
    TaskUpdate,
    TaskViewResponse,
)
from app.services.task_service import TaskService

router = APIRouter()

ERROR_RESPONSES = {
    404: {"model": TaskErrorResponse},
    409: {"model": TaskErrorResponse},
    422: {"model": TaskErrorResponse},
    503: {"model": TaskErrorResponse},
}


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    container_id: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
):
    """List tasks in insertion order, optionally for one container."""
    return await service.list_tasks(container_id)


@router.get("/view", response_model=TaskViewResponse)
async def get_container_view(
    container_id: str,
    expanded: List[str] = Query([]),
    expand_all: bool = False,
    service: TaskService = Depends(get_task_service),
):
    """Ordered, indented rows of a container with dependency connectors."""
    view = await service.get_view(container_id, None if expand_all else expanded)
    return view.as_dict()


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_task(
    payload: TaskCreate,
    parent_id: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
):
    """Create a root task, or a subtask when ``parent_id`` is given."""
    return await service.create_task(payload, parent_id=parent_id)


@router.post(
    "/batch",
    response_model=List[TaskResponse],
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_tasks(
    payload: List[TaskCreate],
    service: TaskService = Depends(get_task_service),
):
    """Create several tasks. Parents must already exist."""
    return await service.create_tasks(payload)


@router.get("/{task_id}", response_model=TaskResponse, responses=ERROR_RESPONSES)
async def get_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Fetch task by id."""
    return await service.get_task(task_id)


@router.get("/{task_id}/dependencies", response_model=TaskDependencyInfo, responses=ERROR_RESPONSES)
async def get_task_dependencies(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """What the task depends on and what depends on it."""
    return await service.get_dependencies(task_id)


@router.put("/{task_id}", response_model=TaskResponse, responses=ERROR_RESPONSES)
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Replace a task (edit form submit)."""
    return await service.update_task(TaskRecord(id=task_id, **payload.model_dump()))


@router.delete("/{task_id}", response_model=TaskDeleteResult, responses=ERROR_RESPONSES)
async def delete_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Delete a task; children become roots and dependency references are purged."""
    return await service.delete_task(task_id)
