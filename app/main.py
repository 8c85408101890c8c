"""Main FastAPI application for the repeating task engine."""
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.config import engine
from app.db.init import init_db
from app.routers import repeating_rules_router, tasks_router
from app.services.errors import (
    AlreadySpawned,
    InvalidRule,
    NotFound,
    PersistenceFailure,
    RecurrenceError,
    create_error_response,
)
from app.services.materialization_scheduler import MaterializationScheduler
from app.utils.metrics import metrics_collector

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    InvalidRule: 422,
    NotFound: 404,
    AlreadySpawned: 409,
    PersistenceFailure: 503,
}

# Create FastAPI application
app = FastAPI(
    title="Repeating Task Engine API",
    description="Recurring task rules that materialize into concrete tasks",
    version="1.0.0",
)


@app.exception_handler(RecurrenceError)
async def recurrence_error_handler(request: Request, exc: RecurrenceError):
    """Map engine errors onto HTTP status codes."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=create_error_response(exc))


@app.on_event("startup")
async def startup_event():
    """Initialize database and, if enabled, the periodic materialization loop."""
    init_db()
    logger.info("[SUCCESS] Database tables initialized successfully.")

    if settings.MATERIALIZE_ON_STARTUP:
        scheduler = MaterializationScheduler(engine)
        app.state.scheduler_task = asyncio.create_task(scheduler.run_forever())
        logger.info("[SUCCESS] Materialization scheduler started.")


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "scheduler_task", None)
    if task is not None:
        task.cancel()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/metrics")
async def get_metrics():
    """Materialization counters and timers."""
    return metrics_collector.get_metrics()


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "title": "Repeating Task Engine API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(tasks_router, prefix="/api")  # /api/tasks
app.include_router(repeating_rules_router, prefix="/api")  # /api/repeating-rules

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
