"""
Launch jobs and track the executions running in this process
"""

from typing import Any, Dict, Optional
import asyncio
import logging

from batch.job import Job
from batch.repository import JobRepository
from models.job_execution import JobExecution

logger = logging.getLogger(__name__)


class JobLauncher:
    """
    Creates job executions and runs them.
    
    The duplicate check and execution creation are serialized on a lock,
    so two concurrent launches of the same parameters cannot both pass the
    check. Executions running in this process are tracked so the operator
    can tell a live execution from one left behind by a crash.
    """
    
    def __init__(self, repository: JobRepository, jobs: Dict[str, Job]):
        self.repository = repository
        self.jobs = dict(jobs)
        self._lock = asyncio.Lock()
        self._running: Dict[int, asyncio.Task] = {}
    
    def register(self, job: Job):
        self.jobs[job.name] = job
    
    def get_job(self, job_name: str) -> Job:
        try:
            return self.jobs[job_name]
        except KeyError:
            raise ValueError(f"Unknown job: {job_name}")
    
    async def _create_execution(self, job_name: str, parameters: Dict[str, Any]) -> JobExecution:
        async with self._lock:
            return await self.repository.create_job_execution(job_name, parameters)
    
    async def launch(self, job_name: str, parameters: Optional[Dict[str, Any]] = None) -> JobExecution:
        """
        Create an execution and run it to the end.
        
        Raises:
            DuplicateExecutionError: the parameters' instance is already running
        """
        job = self.get_job(job_name)
        job_execution = await self._create_execution(job_name, parameters or {})
        
        self._running[job_execution.id] = asyncio.current_task()
        try:
            return await job.execute(job_execution)
        finally:
            self._running.pop(job_execution.id, None)
    
    async def start(self, job_name: str, parameters: Optional[Dict[str, Any]] = None) -> JobExecution:
        """Create an execution and run it in the background; returns immediately"""
        job = self.get_job(job_name)
        job_execution = await self._create_execution(job_name, parameters or {})
        
        task = asyncio.create_task(self._run(job, job_execution))
        self._running[job_execution.id] = task
        return job_execution
    
    async def _run(self, job: Job, job_execution: JobExecution) -> JobExecution:
        try:
            return await job.execute(job_execution)
        except Exception:
            logger.exception(f"Background execution {job_execution.id} of {job.name} failed")
            return job_execution
    
    def is_running(self, job_execution_id: int) -> bool:
        task = self._running.get(job_execution_id)
        return job_execution_id in self._running and (task is None or not task.done())
    
    async def wait(self, job_execution_id: int) -> Optional[JobExecution]:
        """
        Wait for a background execution started by this launcher.
        
        Finished background tasks are kept until waited for, so this also
        returns executions that ended before the call.
        """
        task = self._running.get(job_execution_id)
        if task is None:
            return None
        try:
            return await task
        finally:
            if task.done():
                self._running.pop(job_execution_id, None)
