"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.core.exceptions import StoreFailureError, TaskError
from app.core.logging import configure_logging
from app.database import init_db, close_db, get_db
from app.middleware.metrics import MetricsMiddleware, setup_metrics
from app.api.v1 import tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    configure_logging()
    await init_db()
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware
app.add_middleware(MetricsMiddleware)
setup_metrics(app)


@app.exception_handler(TaskError)
async def task_error_handler(request: Request, exc: TaskError):
    """Rejected mutations return the unchanged task so the form can be re-shown."""
    if isinstance(exc, StoreFailureError):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.cause)
        detail = "Could not save changes"
    else:
        detail = exc.message
    previous = exc.previous.model_dump(mode="json") if exc.previous is not None else None
    content = {"error": exc.code, "detail": detail, "previous": previous}
    if isinstance(exc, StoreFailureError) and exc.created_ids:
        content["created_ids"] = exc.created_ids
    return JSONResponse(status_code=exc.status_code, content=content)


# Include routers
app.include_router(tasks.router, prefix=f"{settings.API_V1_PREFIX}/tasks", tags=["tasks"])


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint."""
    health_status = {
        "status": "ok",
        "checks": {
            "database": "unknown",
        }
    }

    try:
        await db.execute(select(1))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"error: {str(e)}"
        health_status["status"] = "degraded"

    return health_status
