"""
Linear job: runs its steps in order and aggregates their outcome.
"""

from typing import List, Optional
import logging

from batch.base import (
    ExitStatus,
    COMPLETED,
    FAILED,
    NOOP,
    STOPPED,
    apply_exit_status,
    exit_status_of,
)
from batch.listeners import JobExecutionListener
from batch.repository import JobRepository
from batch.step import ChunkOrientedStep
from core.exceptions import StoreUnavailableError
from models.base import BatchStatus, utcnow
from models.execution_context import ExecutionContext
from models.job_execution import JobExecution

logger = logging.getLogger(__name__)


class Job:
    """
    A named sequence of steps.
    
    Lifecycle of one execution:
    1. STARTED, before_job listeners
    2. each step in order; a step already COMPLETED in an earlier execution
       of the same instance is not run again
    3. FAILED if any step failed, STOPPED if any stopped, COMPLETED otherwise
    4. after_job listeners (always), final status and job context persisted
    """
    
    def __init__(
        self,
        name: str,
        steps: List[ChunkOrientedStep],
        repository: JobRepository,
        listeners: Optional[List[JobExecutionListener]] = None,
    ):
        if not steps:
            raise ValueError("A job needs at least one step")
        self.name = name
        self.steps = steps
        self.repository = repository
        self.listeners = list(listeners or [])
    
    async def execute(self, job_execution: JobExecution) -> JobExecution:
        job_execution.start_time = utcnow()
        job_execution.status = BatchStatus.STARTED
        apply_exit_status(job_execution, ExitStatus("EXECUTING"))
        await self.repository.update_job_execution(job_execution)
        
        await self._before_job(job_execution)
        
        try:
            await self._run_steps(job_execution)
        except StoreUnavailableError:
            job_execution.status = BatchStatus.FAILED
            apply_exit_status(job_execution, FAILED.with_description("Metadata store unavailable"))
            job_execution.end_time = utcnow()
            await self._after_job(job_execution)
            raise
        except Exception as e:
            logger.exception(f"Job {self.name} failed: {e}")
            job_execution.status = BatchStatus.FAILED
            apply_exit_status(job_execution, FAILED.with_description(f"{type(e).__name__}: {e}"))
        
        job_execution.end_time = utcnow()
        await self._after_job(job_execution)
        await self.repository.update_job_execution(job_execution)
        await self.repository.save_execution_context(
            ExecutionContext.SCOPE_JOB, job_execution.id, self._summary(job_execution)
        )
        
        logger.info(
            f"Job {self.name} execution {job_execution.id} ended with "
            f"{BatchStatus(job_execution.status).value} ({job_execution.exit_code})"
        )
        return job_execution
    
    async def _run_steps(self, job_execution: JobExecution):
        executed = []
        
        for step in self.steps:
            if await self.repository.is_stop_requested(job_execution.id):
                logger.info(f"Stop requested before step {step.name}")
                job_execution.status = BatchStatus.STOPPED
                apply_exit_status(job_execution, STOPPED.with_description("Stop requested"))
                return
            
            previous = await self.repository.get_last_step_execution(
                job_execution.job_instance_id, step.name, before_execution_id=job_execution.id
            )
            if previous is not None and previous.status == BatchStatus.COMPLETED:
                logger.info(f"Step {step.name} already completed in execution {previous.job_execution_id}")
                continue
            
            step_execution = await step.execute(job_execution)
            executed.append(step_execution)
            if step_execution.status != BatchStatus.COMPLETED:
                break
        
        statuses = [s.status for s in executed]
        if BatchStatus.FAILED in statuses:
            job_execution.status = BatchStatus.FAILED
        elif BatchStatus.STOPPED in statuses:
            job_execution.status = BatchStatus.STOPPED
        else:
            job_execution.status = BatchStatus.COMPLETED
        
        exit_status = COMPLETED if executed else NOOP
        for step_execution in executed:
            exit_status = exit_status.and_(exit_status_of(step_execution))
        apply_exit_status(job_execution, exit_status)
    
    @staticmethod
    def _summary(job_execution: JobExecution) -> dict:
        steps = job_execution.step_executions
        return {
            "status": BatchStatus(job_execution.status).value,
            "exit_code": job_execution.exit_code,
            "read_count": sum(s.read_count for s in steps),
            "write_count": sum(s.write_count for s in steps),
            "filter_count": sum(s.filter_count for s in steps),
            "skip_count": sum(s.skip_count for s in steps),
            "commit_count": sum(s.commit_count for s in steps),
            "rollback_count": sum(s.rollback_count for s in steps),
        }
    
    async def _before_job(self, job_execution: JobExecution):
        for listener in self.listeners:
            try:
                await listener.before_job(job_execution)
            except Exception:
                logger.exception(f"before_job listener {type(listener).__name__} failed")
    
    async def _after_job(self, job_execution: JobExecution):
        for listener in self.listeners:
            try:
                await listener.after_job(job_execution)
            except Exception:
                logger.exception(f"after_job listener {type(listener).__name__} failed")
