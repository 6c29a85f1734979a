"""
Pydantic schemas for data validation and serialization.

Schemas:
    processed: Items produced by the record processor and consumed by the writer
    api: Job run, execution status, statistics and health responses

Usage:
    from schemas.processed import ProcessedRecordCreate
    from schemas.api import JobRunResponse, JobStatusResponse

Example:
    item = ProcessedRecordCreate(
        source_record_id=42,
        processed_name="JANE DOE",
        processed_email="jane@example.com",
        record_code="REC-1A2B3C4D",
        final_status=RecordStatus.ACTIVE,
    )
"""

__all__ = [
    "ProcessedRecordCreate",
    "JobRunResponse",
    "JobStatusResponse",
    "StepExecutionSummary",
    "ExecutionStatsResponse",
    "HealthCheckResponse",
    "ErrorResponse",
]
