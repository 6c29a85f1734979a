"""
Chunk-oriented batch engine for processing pending records.

Modules:
    base: Reader/processor/writer contracts, ExitStatus and chunk result holders
    repository: Metadata store for job instances, executions, steps and contexts
    step: Chunk-oriented step with transactional commits, skip and retry policy
    job: Linear job that runs steps and aggregates their status
    listeners: Job/step listener hooks and the reporting listeners
    launcher: Launches executions and tracks the ones running in this process
    operator: Stop, recover and abandon operations
    runner: Wiring of the processing job and the JobService facade
    scheduler: APScheduler integration for periodic runs

Subpackages:
    readers: PendingRecordReader
    processors: RecordProcessor and its validation/normalization functions
    writers: ProcessedRecordWriter

Architecture:
    Each chunk is read and processed item by item, then written in one
    transaction together with the step counters and the step execution
    context:
    
    1. Read - pull one pending record at a time until the chunk is full
    2. Process - validate and normalize; invalid records are filtered
    3. Write - insert processed records and flag their sources, then commit
    
    A failed commit rolls back the whole chunk. A crashed execution is
    recovered by the operator and restarted from the last committed chunk.

Usage:
    from batch.runner import JobService
    from core.database import async_session_maker

Example:
    service = JobService(async_session_maker)
    result = await service.run_processing_job(triggered_by="cli")
    
    print(f"{result.status}: {result.write_count} records written")

Error Handling:
    Item, chunk and launch failures use the exceptions in core.exceptions.
    Only StoreUnavailableError escapes JobService.run_processing_job.
"""

__all__ = [
    "JobService",
    "JobRepository",
    "JobLauncher",
    "JobOperator",
    "Job",
    "ChunkOrientedStep",
    "ExitStatus",
    "BatchScheduler",
]
