# ============================================================================
# File: batch/runner.py
# Description: Wiring of the record processing job and its service facade
# ============================================================================
"""
Job service - builds the record processing job and exposes the trigger,
query and recovery operations used by the API, the scheduler and scripts.

Every launch gets a fresh run token, so each run is a new job instance.
Launch failures are reported as a structured JobRunResponse; only an
unreachable metadata store is raised to the caller.
"""

from typing import List, Optional
import logging

from batch.job import Job
from batch.launcher import JobLauncher
from batch.listeners import JobCompletionListener, StepReportListener
from batch.operator import JobOperator
from batch.processors.record_processor import RecordProcessor
from batch.readers.pending_record_reader import PendingRecordReader
from batch.repository import JobRepository
from batch.step import ChunkOrientedStep
from batch.writers.processed_record_writer import ProcessedRecordWriter
from core.config import Settings, settings as default_settings
from core.exceptions import BatchException, StoreUnavailableError
from models.base import BatchStatus, utcnow
from models.job_execution import JobExecution
from models.step_execution import StepExecution
from schemas.api import (
    ExecutionStatsResponse,
    JobRunResponse,
    JobStatusResponse,
    StepExecutionSummary,
)

logger = logging.getLogger(__name__)


def build_processing_job(
    repository: JobRepository,
    session_factory,
    config: Settings = default_settings,
    processor=None,
    writer=None,
    reader_factory=None,
    step_listeners=None,
    job_listeners=None,
) -> Job:
    """
    Wire reader, processor, writer and listeners into the processing job.
    
    Collaborators can be swapped (tests inject failing processors or
    writers); anything not given gets the production implementation.
    """
    step = ChunkOrientedStep(
        name=config.BATCH_STEP_NAME,
        reader_factory=reader_factory or (lambda: PendingRecordReader(session_factory)),
        processor=processor or RecordProcessor(),
        writer=writer or ProcessedRecordWriter(),
        repository=repository,
        session_factory=session_factory,
        chunk_size=config.BATCH_CHUNK_SIZE,
        skip_limit=config.BATCH_SKIP_LIMIT,
        retry_limit=config.BATCH_RETRY_LIMIT,
        retry_backoff=config.BATCH_RETRY_BACKOFF_SECONDS,
        listeners=step_listeners if step_listeners is not None else [StepReportListener()],
    )
    return Job(
        name=config.BATCH_JOB_NAME,
        steps=[step],
        repository=repository,
        listeners=job_listeners if job_listeners is not None else [JobCompletionListener()],
    )


def _step_summary(step: StepExecution) -> StepExecutionSummary:
    return StepExecutionSummary(
        id=step.id,
        step_name=step.step_name,
        status=BatchStatus(step.status).value,
        exit_code=step.exit_code,
        exit_description=step.exit_description,
        start_time=step.start_time,
        end_time=step.end_time,
        **step.counters(),
    )


def to_status_response(job_execution: JobExecution) -> JobStatusResponse:
    return JobStatusResponse(
        execution_id=job_execution.id,
        job_instance_id=job_execution.job_instance_id,
        job_name=job_execution.job_name,
        status=BatchStatus(job_execution.status).value,
        exit_code=job_execution.exit_code,
        exit_description=job_execution.exit_description,
        create_time=job_execution.create_time,
        start_time=job_execution.start_time,
        end_time=job_execution.end_time,
        duration_seconds=job_execution.duration_seconds,
        parameters=job_execution.parameters or {},
        steps=[_step_summary(s) for s in job_execution.step_executions],
    )


def to_run_response(job_execution: JobExecution) -> JobRunResponse:
    steps = job_execution.step_executions
    status = BatchStatus(job_execution.status)
    return JobRunResponse(
        successful=status == BatchStatus.COMPLETED,
        execution_id=job_execution.id,
        job_name=job_execution.job_name,
        status=status.value,
        exit_code=job_execution.exit_code,
        exit_description=job_execution.exit_description,
        start_time=job_execution.start_time,
        end_time=job_execution.end_time,
        duration_seconds=job_execution.duration_seconds,
        read_count=sum(s.read_count for s in steps),
        write_count=sum(s.write_count for s in steps),
        filter_count=sum(s.filter_count for s in steps),
        skip_count=sum(s.skip_count for s in steps),
        message=f"Job finished with status {status.value}",
    )


class JobService:
    """
    Facade over launcher, operator and repository for the processing job.
    
    One instance per process: the launcher's registry of live executions
    is what lets `recover` refuse executions that are still running.
    """
    
    def __init__(self, session_factory, config: Settings = default_settings, job: Optional[Job] = None):
        self.config = config
        self.repository = JobRepository(session_factory)
        self.job = job or build_processing_job(self.repository, session_factory, config)
        self.launcher = JobLauncher(self.repository, {self.job.name: self.job})
        self.operator = JobOperator(self.repository, self.launcher)
    
    async def run_processing_job(self, triggered_by: str = "api") -> JobRunResponse:
        """Launch the processing job with a fresh run token and wait for it"""
        job_name = self.job.name
        run_id = await self.repository.next_run_token(job_name)
        parameters = {
            "run.id": run_id,
            "triggered_by": triggered_by,
            "launched_at": utcnow().isoformat(),
        }
        logger.info(f"Launching {job_name} (run.id={run_id}, triggered by {triggered_by})")
        
        try:
            job_execution = await self.launcher.launch(job_name, parameters)
        except StoreUnavailableError:
            raise
        except BatchException as e:
            logger.error(f"Launch of {job_name} rejected: {e}")
            return JobRunResponse(
                successful=False,
                job_name=job_name,
                message=e.message,
                error_type=type(e).__name__,
            )
        except Exception as e:
            logger.exception(f"Launch of {job_name} failed: {e}")
            return JobRunResponse(
                successful=False,
                job_name=job_name,
                status=BatchStatus.FAILED.value,
                exit_code="FAILED",
                message=f"Job failed to run: {e}",
                error_type=type(e).__name__,
            )
        
        return to_run_response(job_execution)
    
    async def get_execution(self, job_execution_id: int) -> Optional[JobStatusResponse]:
        job_execution = await self.repository.get_job_execution(job_execution_id)
        if job_execution is None:
            return None
        return to_status_response(job_execution)
    
    async def list_executions(self, limit: int = 20) -> List[JobStatusResponse]:
        executions = await self.repository.find_job_executions(self.job.name, page=1, page_size=limit)
        return [to_status_response(e) for e in executions]
    
    async def aggregate_stats(self) -> ExecutionStatsResponse:
        job_name = self.job.name
        counts = await self.repository.count_by_status(job_name)
        return ExecutionStatsResponse(
            total_instances=await self.repository.count_job_instances(job_name),
            total_executions=sum(counts.values()),
            completed=counts.get(BatchStatus.COMPLETED, 0),
            failed=counts.get(BatchStatus.FAILED, 0),
            active=sum(
                counts.get(s, 0)
                for s in (BatchStatus.STARTING, BatchStatus.STARTED, BatchStatus.STOPPING)
            ),
            stopped=counts.get(BatchStatus.STOPPED, 0),
            abandoned=counts.get(BatchStatus.ABANDONED, 0),
            total_written=await self.repository.total_write_count(job_name),
        )
    
    async def stop(self, job_execution_id: int) -> JobStatusResponse:
        return to_status_response(await self.operator.stop(job_execution_id))
    
    async def recover(self, job_execution_id: int) -> JobStatusResponse:
        return to_status_response(await self.operator.recover(job_execution_id))
    
    async def abandon(self, job_execution_id: int) -> JobStatusResponse:
        return to_status_response(await self.operator.abandon(job_execution_id))
