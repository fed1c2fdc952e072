"""Schema modules."""
from app.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskRecord,
    TaskResponse,
    TaskRowResponse,
    DependencyEdgeResponse,
    TaskDependencyInfo,
    TaskViewResponse,
    TaskDeleteResult,
    TaskErrorResponse,
)
