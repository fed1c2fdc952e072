"""FastAPI dependencies."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.task_service import TaskService
from app.services.task_store import SQLTaskStore


async def get_task_service(db: AsyncSession = Depends(get_db)) -> TaskService:
    """Task service bound to the request's database session."""
    return TaskService(SQLTaskStore(db))
