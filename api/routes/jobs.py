"""
Job trigger, query and recovery endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
import uuid
import logging

from api.dependencies import get_job_service
from batch.runner import JobService
from core.exceptions import DuplicateExecutionError
from schemas.api import ExecutionStatsResponse, JobRunResponse, JobStatusResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.post("/run", response_model=JobRunResponse)
async def run_job(service: JobService = Depends(get_job_service)):
    """
    Launch the record processing job and wait for it to finish.
    
    Returns the execution result even when the job failed. A launch rejected
    because the same instance is already running returns 409.
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"
    logger.info(f"[{request_id}] POST /jobs/run")
    
    result = await service.run_processing_job(triggered_by="api")
    if result.error_type == DuplicateExecutionError.__name__:
        raise HTTPException(status_code=409, detail=result.message)
    return result


@router.get("/executions", response_model=List[JobStatusResponse])
async def list_executions(
    limit: int = Query(20, ge=1, le=200, description="Number of executions to return"),
    service: JobService = Depends(get_job_service),
):
    """Most recent executions first"""
    return await service.list_executions(limit)


@router.get("/executions/{execution_id}", response_model=JobStatusResponse)
async def get_execution(execution_id: int, service: JobService = Depends(get_job_service)):
    execution = await service.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail=f"Job execution {execution_id} not found")
    return execution


@router.get("/stats", response_model=ExecutionStatsResponse)
async def get_stats(service: JobService = Depends(get_job_service)):
    return await service.aggregate_stats()


@router.post("/executions/{execution_id}/stop", response_model=JobStatusResponse)
async def stop_execution(execution_id: int, service: JobService = Depends(get_job_service)):
    """Request a graceful stop at the next chunk boundary"""
    return await service.stop(execution_id)


@router.post("/executions/{execution_id}/recover", response_model=JobStatusResponse)
async def recover_execution(execution_id: int, service: JobService = Depends(get_job_service)):
    """Mark an execution left running by a crash as FAILED so it can be restarted"""
    return await service.recover(execution_id)


@router.post("/executions/{execution_id}/abandon", response_model=JobStatusResponse)
async def abandon_execution(execution_id: int, service: JobService = Depends(get_job_service)):
    return await service.abandon(execution_id)
