"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from api.routes import health, jobs
from api.middleware import RequestContextMiddleware
from api.dependencies import get_job_service
from batch.scheduler import BatchScheduler
from core.config import settings
from core.exceptions import (
    BatchException,
    JobExecutionError,
    NoSuchJobExecutionError,
    StoreUnavailableError,
)
from core.logging import setup_logging
from schemas.api import ErrorResponse
import logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown"""
    logger.info("Starting record batch API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = BatchScheduler(get_job_service())
        scheduler.start()
    
    yield
    
    logger.info("Shutting down record batch API")
    if scheduler is not None:
        scheduler.stop()


app = FastAPI(
    title="Record Batch Backend API",
    description="Chunk-oriented batch processing of pending records",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(jobs.router)


def _error_response(status_code: int, error: BatchException) -> JSONResponse:
    body = ErrorResponse(
        error=type(error).__name__,
        detail=error.message,
        context={k: str(v) for k, v in error.context.items()},
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(NoSuchJobExecutionError)
async def not_found_handler(request: Request, exc: NoSuchJobExecutionError):
    return _error_response(404, exc)


@app.exception_handler(JobExecutionError)
async def conflict_handler(request: Request, exc: JobExecutionError):
    return _error_response(409, exc)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Request failed, store unavailable: {exc}")
    return _error_response(503, exc)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Record Batch Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "run": "/jobs/run",
            "executions": "/jobs/executions",
            "stats": "/jobs/stats"
        }
    }
