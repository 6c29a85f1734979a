"""
SQLAlchemy ORM models for database tables.

Models:
    base: Declarative base, shared column types and enums (BatchStatus, RecordStatus)
    pending_record: Input records waiting for the batch job
    processed_record: Output records, one per processed input
    job_execution: Job instances and their executions
    step_execution: Per-step counters and status
    execution_context: Restart state for jobs and steps

Usage:
    from models import PendingRecord, ProcessedRecord, JobExecution
    from models.base import BatchStatus, RecordStatus

Example:
    record = PendingRecord.create(name="Jane Doe", email="jane@example.com")
    session.add(record)
    await session.commit()

Relationships:
    - JobInstance → JobExecution (one-to-many, restarts share an instance)
    - JobExecution → StepExecution (one-to-many)
    - JobExecution / StepExecution → ExecutionContext (one-to-one by scope)
    - PendingRecord → ProcessedRecord (one-to-one by source_record_id)
"""

from models.base import Base, BatchStatus, RecordStatus
from models.pending_record import PendingRecord
from models.processed_record import ProcessedRecord
from models.job_execution import JobInstance, JobExecution
from models.step_execution import StepExecution
from models.execution_context import ExecutionContext

__all__ = [
    "Base",
    "BatchStatus",
    "RecordStatus",
    "PendingRecord",
    "ProcessedRecord",
    "JobInstance",
    "JobExecution",
    "StepExecution",
    "ExecutionContext",
]
