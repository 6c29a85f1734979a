"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Job Execution Schemas
# ============================================================================

class StepExecutionSummary(BaseModel):
    """Counters and status of one step execution"""
    id: int
    step_name: str
    status: str
    exit_code: str
    exit_description: Optional[str] = None
    read_count: int = 0
    write_count: int = 0
    filter_count: int = 0
    read_skip_count: int = 0
    process_skip_count: int = 0
    write_skip_count: int = 0
    commit_count: int = 0
    rollback_count: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    
    class Config:
        from_attributes = True
        use_enum_values = True


class JobRunResponse(BaseModel):
    """Result of a launch, returned even when the job failed"""
    successful: bool
    execution_id: Optional[int] = None
    job_name: str
    status: Optional[str] = None
    exit_code: Optional[str] = None
    exit_description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    read_count: int = 0
    write_count: int = 0
    filter_count: int = 0
    skip_count: int = 0
    message: str
    error_type: Optional[str] = None
    
    class Config:
        json_schema_extra = {
            "example": {
                "successful": True,
                "execution_id": 12,
                "job_name": "process_pending_records",
                "status": "COMPLETED",
                "exit_code": "COMPLETED",
                "read_count": 10,
                "write_count": 9,
                "filter_count": 1,
                "skip_count": 0,
                "message": "Job finished with status COMPLETED"
            }
        }


class JobStatusResponse(BaseModel):
    """Stored state of one job execution"""
    execution_id: int
    job_instance_id: int
    job_name: str
    status: str
    exit_code: str
    exit_description: Optional[str] = None
    create_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    parameters: dict = Field(default_factory=dict)
    steps: List[StepExecutionSummary] = Field(default_factory=list)


class ExecutionStatsResponse(BaseModel):
    """Aggregate counts over all executions of the job"""
    timestamp: datetime = Field(default_factory=_now)
    total_instances: int = 0
    total_executions: int = 0
    completed: int = 0
    failed: int = 0
    active: int = 0
    stopped: int = 0
    abandoned: int = 0
    total_written: int = 0


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_now)
    database_connected: bool
    running_executions: int = 0
    last_execution_status: Optional[str] = None


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    context: dict = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_now)
