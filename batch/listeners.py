"""
Job and step execution listeners, plus the reporting listeners used by the
record processing job.
"""

from typing import Dict, Optional
from datetime import datetime
import logging

from batch.base import ExitStatus, NO_DATA
from models.base import BatchStatus, utcnow
from models.job_execution import JobExecution
from models.step_execution import StepExecution

logger = logging.getLogger(__name__)

BANNER = "=" * 60


class JobExecutionListener:
    """Hooks around a job execution. Errors raised here are logged, never propagated."""
    
    async def before_job(self, job_execution: JobExecution) -> None:
        pass
    
    async def after_job(self, job_execution: JobExecution) -> None:
        pass


class StepExecutionListener:
    """
    Hooks around a step execution.
    
    `after_step` may return an ExitStatus that replaces the step's exit
    status; returning None keeps it.
    """
    
    async def before_step(self, step_execution: StepExecution) -> None:
        pass
    
    async def after_step(self, step_execution: StepExecution) -> Optional[ExitStatus]:
        return None


class JobCompletionListener(JobExecutionListener):
    """Logs a start banner and a completion or failure summary for each job execution"""
    
    def __init__(self):
        self._started: Dict[int, datetime] = {}
    
    async def before_job(self, job_execution: JobExecution) -> None:
        self._started[job_execution.id] = job_execution.start_time or utcnow()
        logger.info(BANNER)
        logger.info(f"Starting job: {job_execution.job_name}")
        logger.info(f"Execution id: {job_execution.id}")
        logger.info(f"Parameters: {job_execution.parameters}")
        logger.info(BANNER)
    
    async def after_job(self, job_execution: JobExecution) -> None:
        started = self._started.pop(job_execution.id, job_execution.start_time or utcnow())
        duration = (utcnow() - started).total_seconds()
        
        logger.info(BANNER)
        logger.info(f"Job {job_execution.job_name} finished")
        logger.info(f"Status: {BatchStatus(job_execution.status).value} ({job_execution.exit_code})")
        logger.info(f"Duration: {duration:.2f}s")
        
        for step in job_execution.step_executions:
            logger.info(
                f"  {step.step_name}: read={step.read_count} written={step.write_count} "
                f"filtered={step.filter_count} skipped={step.skip_count} "
                f"commits={step.commit_count} rollbacks={step.rollback_count}"
            )
        
        if job_execution.status == BatchStatus.COMPLETED:
            logger.info("Job completed successfully")
        elif job_execution.status == BatchStatus.FAILED:
            logger.error(f"Job failed: {job_execution.exit_description}")
            for step in job_execution.step_executions:
                if step.status == BatchStatus.FAILED:
                    logger.error(f"  step {step.step_name} failed: {step.exit_description}")
        else:
            logger.warning(f"Job ended with status {BatchStatus(job_execution.status).value}")
        logger.info(BANNER)


class StepReportListener(StepExecutionListener):
    """Logs step counters; marks a completed step that read nothing as NO_DATA"""
    
    async def before_step(self, step_execution: StepExecution) -> None:
        logger.info(f"Starting step: {step_execution.step_name}")
    
    async def after_step(self, step_execution: StepExecution) -> Optional[ExitStatus]:
        logger.info(f"Step {step_execution.step_name} summary:")
        logger.info(f"  status: {BatchStatus(step_execution.status).value}")
        logger.info(f"  read: {step_execution.read_count}")
        logger.info(f"  written: {step_execution.write_count}")
        logger.info(f"  filtered: {step_execution.filter_count}")
        logger.info(f"  read skips: {step_execution.read_skip_count}")
        logger.info(f"  process skips: {step_execution.process_skip_count}")
        logger.info(f"  commits: {step_execution.commit_count}")
        logger.info(f"  rollbacks: {step_execution.rollback_count}")
        
        if step_execution.status == BatchStatus.COMPLETED and step_execution.read_count == 0:
            logger.warning(f"Step {step_execution.step_name} found no pending records")
            return NO_DATA
        return None
