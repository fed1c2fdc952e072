"""Script to seed a demo project with a small task hierarchy."""
import asyncio
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.logging import configure_logging
from app.database import AsyncSessionLocal, init_db
from app.models.task import TaskPriority, TaskStatus
from app.schemas.task import TaskCreate
from app.services.task_service import TaskService
from app.services.task_store import SQLTaskStore
from app.utils.containers import project_container


async def seed_demo(project_id: str = "demo"):
    """Create a demo project's tasks unless the container already has some."""
    await init_db()
    container_id = project_container(project_id)

    async with AsyncSessionLocal() as db:
        service = TaskService(SQLTaskStore(db))
        if await service.list_tasks(container_id):
            print(f"Container {container_id} already seeded")
            return

        def draft(name, **kwargs):
            return TaskCreate(container_id=container_id, name=name, **kwargs)

        survey = await service.create_task(
            draft("Roof survey", phase="Engineering", start_date=date(2025, 10, 5), duration_days=7,
                  progress_percent=100, status=TaskStatus.COMPLETED, priority=TaskPriority.HIGH)
        )
        permits = await service.create_task(
            draft("Grid connection feasibility", phase="Preparation", start_date=date(2025, 10, 1),
                  duration_days=25, progress_percent=100, status=TaskStatus.COMPLETED,
                  priority=TaskPriority.CRITICAL)
        )
        supply = await service.create_task(
            draft("Panel import", phase="Supply", start_date=date(2025, 10, 25), duration_days=20,
                  status=TaskStatus.IN_PROGRESS, dependency_ids=[permits.id])
        )
        customs = await service.create_task(
            draft("Customs clearance", phase="Supply", duration_days=5, dependency_ids=[survey.id]),
            parent_id=supply.id,
        )
        await service.create_task(
            draft("Structure lifting", phase="Execution", start_date=date(2025, 11, 15), duration_days=10,
                  status=TaskStatus.AT_RISK, dependency_ids=[customs.id])
        )

        view = await service.get_view(container_id)
        for row in view.rows:
            print(f"{'  ' * row.level}{row.task.name} [{row.task.id}]")
        print(f"{len(view.edges)} dependency connectors")


if __name__ == "__main__":
    configure_logging(fmt="text")
    asyncio.run(seed_demo(*sys.argv[1:2]))
