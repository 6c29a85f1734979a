"""
Operator actions on existing executions: stop, recover, abandon
"""

import logging

from batch.base import ExitStatus, FAILED, apply_exit_status
from batch.launcher import JobLauncher
from batch.repository import JobRepository
from core.exceptions import JobExecutionStateError, NoSuchJobExecutionError, RecoveryError
from models.base import BatchStatus, ACTIVE_STATUSES, utcnow
from models.job_execution import JobExecution

logger = logging.getLogger(__name__)

RECOVERED_DESCRIPTION = "Marked FAILED by recovery after abnormal termination"


class JobOperator:
    """Administrative actions that change the status of an execution"""
    
    def __init__(self, repository: JobRepository, launcher: JobLauncher):
        self.repository = repository
        self.launcher = launcher
    
    async def _get(self, job_execution_id: int) -> JobExecution:
        job_execution = await self.repository.get_job_execution(job_execution_id)
        if job_execution is None:
            raise NoSuchJobExecutionError(
                "Job execution not found",
                context={"job_execution_id": job_execution_id},
            )
        return job_execution
    
    async def stop(self, job_execution_id: int) -> JobExecution:
        """
        Request a graceful stop.
        
        The running step finishes or rolls back its current chunk and ends
        STOPPED at the next chunk boundary.
        """
        job_execution = await self._get(job_execution_id)
        if not await self.repository.request_stop(job_execution_id):
            raise JobExecutionStateError(
                "Job execution is not running",
                context={
                    "job_execution_id": job_execution_id,
                    "stored_status": BatchStatus(job_execution.status).value,
                },
            )
        logger.info(f"Stop requested for job execution {job_execution_id}")
        return await self._get(job_execution_id)
    
    async def recover(self, job_execution_id: int) -> JobExecution:
        """
        Mark an execution left running by a crashed process as FAILED.
        
        The instance becomes restartable: relaunching the same parameters
        resumes from the last committed chunk.
        
        Raises:
            RecoveryError: the execution is live here or not in a running status
        """
        job_execution = await self._get(job_execution_id)
        
        if self.launcher.is_running(job_execution_id):
            raise RecoveryError(
                "Job execution is still running in this process",
                context={"job_execution_id": job_execution_id},
            )
        if job_execution.status not in ACTIVE_STATUSES:
            raise RecoveryError(
                "Only STARTING, STARTED or STOPPING executions can be recovered",
                context={
                    "job_execution_id": job_execution_id,
                    "stored_status": BatchStatus(job_execution.status).value,
                },
            )
        
        job_execution.status = BatchStatus.FAILED
        apply_exit_status(job_execution, FAILED.with_description(RECOVERED_DESCRIPTION))
        job_execution.end_time = utcnow()
        await self.repository.update_job_execution(job_execution, force=True)
        failed_steps = await self.repository.fail_running_step_executions(
            job_execution_id, RECOVERED_DESCRIPTION
        )
        
        logger.warning(
            f"Recovered job execution {job_execution_id}: marked FAILED "
            f"({failed_steps} step executions failed)"
        )
        return await self._get(job_execution_id)
    
    async def abandon(self, job_execution_id: int) -> JobExecution:
        """
        Mark a stopped, failed or stuck stopping execution ABANDONED.
        
        An abandoned instance can no longer be restarted.
        """
        job_execution = await self._get(job_execution_id)
        status = BatchStatus(job_execution.status)
        
        if self.launcher.is_running(job_execution_id) or status in (
            BatchStatus.STARTING,
            BatchStatus.STARTED,
        ):
            raise JobExecutionStateError(
                "Job execution is running; stop or recover it first",
                context={"job_execution_id": job_execution_id, "stored_status": status.value},
            )
        if status in (BatchStatus.COMPLETED, BatchStatus.ABANDONED):
            raise JobExecutionStateError(
                f"Job execution is already {status.value}",
                context={"job_execution_id": job_execution_id, "stored_status": status.value},
            )
        
        job_execution.status = BatchStatus.ABANDONED
        apply_exit_status(job_execution, ExitStatus("ABANDONED", "Abandoned by operator"))
        job_execution.end_time = job_execution.end_time or utcnow()
        await self.repository.update_job_execution(job_execution, force=True)
        await self.repository.fail_running_step_executions(job_execution_id, "Abandoned by operator")
        
        logger.warning(f"Job execution {job_execution_id} abandoned")
        return await self._get(job_execution_id)
