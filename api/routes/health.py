"""
Health check endpoint with database and batch status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db, get_job_service
from batch.runner import JobService
from core.exceptions import StoreUnavailableError
from schemas.api import HealthCheckResponse
from models.base import BatchStatus
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    service: JobService = Depends(get_job_service),
):
    """
    Health check endpoint.
    
    Returns:
    - Database connectivity status
    - Number of executions currently running
    - Status of the most recent execution
    """
    db_connected = False
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")
    
    if not db_connected:
        return HealthCheckResponse(status="unhealthy", database_connected=False)
    
    running = 0
    last_status = None
    try:
        running = len(await service.repository.find_running_job_executions(service.job.name))
        latest = await service.repository.find_job_executions(service.job.name, page=1, page_size=1)
        if latest:
            last_status = BatchStatus(latest[0].status).value
    except StoreUnavailableError as e:
        logger.error(f"Failed to read batch metadata: {str(e)}")
        return HealthCheckResponse(status="degraded", database_connected=True)
    
    status = "degraded" if last_status == BatchStatus.FAILED.value else "healthy"
    return HealthCheckResponse(
        status=status,
        database_connected=True,
        running_executions=running,
        last_execution_status=last_status,
    )
