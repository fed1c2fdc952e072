"""Custom exceptions."""
from typing import Any, List, Optional
from fastapi import status


class TaskError(Exception):
    """Base class for task mutation failures.

    ``previous`` holds the stored task as it was before the rejected
    mutation, so the caller can re-present it unchanged.
    """

    code = "task_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, previous: Any = None):
        super().__init__(message)
        self.message = message
        self.previous = previous


class ParentNotFoundError(TaskError):
    """Referenced parent does not exist in the task's container."""

    code = "parent_not_found"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, parent_id: str, container_id: str, *, previous: Any = None):
        super().__init__(
            f"Parent task {parent_id} not found in container {container_id}",
            previous=previous,
        )
        self.parent_id = parent_id
        self.container_id = container_id


class CycleDetectedError(TaskError):
    """Reparenting would make a task its own ancestor."""

    code = "cycle_detected"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, task_id: str, parent_id: str, *, previous: Any = None):
        super().__init__(
            f"Setting parent of {task_id} to {parent_id} would create a cycle",
            previous=previous,
        )
        self.task_id = task_id
        self.parent_id = parent_id


class TaskValidationError(TaskError):
    """Missing or malformed required field."""

    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class TaskNotFoundError(TaskError):
    """Update or delete of an unknown task id."""

    code = "task_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class StoreFailureError(TaskError):
    """The underlying persistence call failed.

    ``created_ids`` lists records a batch create wrote before the failure.
    """

    code = "store_failure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        super().__init__(f"Task store {operation} failed")
        self.operation = operation
        self.cause = cause
        self.created_ids: List[str] = []
