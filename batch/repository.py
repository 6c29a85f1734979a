"""
Metadata store for job instances, executions, steps and execution contexts
"""

from typing import Any, Dict, List, Optional
from functools import wraps
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import OperationalError, InterfaceError
import logging

from core.exceptions import (
    DuplicateExecutionError,
    JobInstanceAlreadyCompleteError,
    JobRestartError,
    JobExecutionStateError,
    NoSuchJobExecutionError,
    StoreUnavailableError,
)
from models.base import BatchStatus, ACTIVE_STATUSES, utcnow
from models.job_execution import JobInstance, JobExecution, compute_job_key
from models.step_execution import StepExecution
from models.execution_context import ExecutionContext

logger = logging.getLogger(__name__)


def translate_store_errors(func_):
    """Turn connectivity failures from the driver into StoreUnavailableError"""
    
    @wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except (OperationalError, InterfaceError) as e:
            raise StoreUnavailableError(
                "Metadata store unavailable",
                context={"operation": func_.__name__},
                original_exception=e,
            )
    
    return wrapper


class JobRepository:
    """
    Persists and queries batch execution metadata.
    
    Responsibilities:
    - Launch checks (one active execution per instance, no rerun of a
      completed instance, no restart of an abandoned one)
    - Status and counter updates that never overwrite a terminal status
    - Execution contexts used for restart
    - Queries for the trigger/query surface
    
    Every public method uses its own short transaction unless a session is
    passed in, in which case the caller owns the commit.
    """
    
    def __init__(self, session_factory):
        self.session_factory = session_factory
    
    # ------------------------------------------------------------------
    # Job executions
    # ------------------------------------------------------------------
    
    @translate_store_errors
    async def create_job_execution(self, job_name: str, parameters: Dict[str, Any]) -> JobExecution:
        """
        Create a new execution for (job_name, parameters).
        
        Raises:
            DuplicateExecutionError: the instance already has an active execution
            JobInstanceAlreadyCompleteError: the instance already completed
            JobRestartError: the last execution of the instance was abandoned
        """
        parameters = dict(parameters or {})
        job_key = compute_job_key(parameters)
        
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(JobInstance).where(
                        JobInstance.job_name == job_name,
                        JobInstance.job_key == job_key,
                    )
                )
                instance = result.scalar_one_or_none()
                
                if instance is None:
                    instance = JobInstance(job_name=job_name, job_key=job_key, created_at=utcnow())
                    session.add(instance)
                    await session.flush()
                else:
                    await self._check_restartable(session, instance)
                
                now = utcnow()
                job_execution = JobExecution(
                    job_instance_id=instance.id,
                    job_name=job_name,
                    status=BatchStatus.STARTING,
                    exit_code="UNKNOWN",
                    create_time=now,
                    last_updated=now,
                    parameters=parameters,
                    step_executions=[],
                )
                session.add(job_execution)
        
        logger.info(
            f"Created job execution {job_execution.id} for {job_name} "
            f"(instance {job_execution.job_instance_id})"
        )
        return job_execution
    
    async def _check_restartable(self, session: AsyncSession, instance: JobInstance):
        result = await session.execute(
            select(JobExecution)
            .where(JobExecution.job_instance_id == instance.id)
            .order_by(JobExecution.id.desc())
        )
        executions = list(result.scalars().all())
        context = {"job_name": instance.job_name, "job_instance_id": instance.id}
        
        for execution in executions:
            if execution.status in ACTIVE_STATUSES:
                raise DuplicateExecutionError(
                    "A job execution for these parameters is already running",
                    context={**context, "job_execution_id": execution.id},
                )
        
        for execution in executions:
            if execution.status == BatchStatus.COMPLETED:
                raise JobInstanceAlreadyCompleteError(
                    "A job instance for these parameters already completed",
                    context={**context, "job_execution_id": execution.id},
                )
        
        if executions and executions[0].status == BatchStatus.ABANDONED:
            raise JobRestartError(
                "The last execution of this job instance was abandoned",
                context={**context, "job_execution_id": executions[0].id},
            )
    
    @translate_store_errors
    async def update_job_execution(self, job_execution: JobExecution, force: bool = False):
        """
        Persist status, exit status and times of a job execution.
        
        A STOPPING status stored by an operator is copied onto the in-memory
        execution instead of being overwritten by STARTING/STARTED.
        
        Raises:
            JobExecutionStateError: the stored status is terminal and force is False
        """
        async with self.session_factory() as session:
            async with session.begin():
                stored = await session.scalar(
                    select(JobExecution.status).where(JobExecution.id == job_execution.id)
                )
                if stored is None:
                    raise NoSuchJobExecutionError(
                        "Job execution not found",
                        context={"job_execution_id": job_execution.id},
                    )
                if stored.is_terminal and not force:
                    raise JobExecutionStateError(
                        "Job execution already finished",
                        context={
                            "job_execution_id": job_execution.id,
                            "stored_status": stored.value,
                            "requested_status": BatchStatus(job_execution.status).value,
                        },
                    )
                if stored == BatchStatus.STOPPING and job_execution.status in (
                    BatchStatus.STARTING,
                    BatchStatus.STARTED,
                ):
                    job_execution.status = BatchStatus.STOPPING
                
                job_execution.last_updated = utcnow()
                await session.execute(
                    update(JobExecution)
                    .where(JobExecution.id == job_execution.id)
                    .values(
                        status=job_execution.status,
                        exit_code=job_execution.exit_code,
                        exit_description=job_execution.exit_description,
                        start_time=job_execution.start_time,
                        end_time=job_execution.end_time,
                        last_updated=job_execution.last_updated,
                    )
                )
    
    @translate_store_errors
    async def request_stop(self, job_execution_id: int) -> bool:
        """Mark a running execution STOPPING; returns False if it was not running"""
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(JobExecution)
                    .where(
                        JobExecution.id == job_execution_id,
                        JobExecution.status.in_([BatchStatus.STARTING, BatchStatus.STARTED]),
                    )
                    .values(status=BatchStatus.STOPPING, last_updated=utcnow())
                )
                return result.rowcount > 0
    
    @translate_store_errors
    async def is_stop_requested(self, job_execution_id: int) -> bool:
        async with self.session_factory() as session:
            status = await session.scalar(
                select(JobExecution.status).where(JobExecution.id == job_execution_id)
            )
        return status == BatchStatus.STOPPING
    
    @translate_store_errors
    async def get_job_execution(self, job_execution_id: int) -> Optional[JobExecution]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobExecution).where(JobExecution.id == job_execution_id)
            )
            return result.scalar_one_or_none()
    
    @translate_store_errors
    async def find_job_executions(
        self,
        job_name: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> List[JobExecution]:
        """Executions newest first, optionally for one job name"""
        query = select(JobExecution)
        if job_name:
            query = query.where(JobExecution.job_name == job_name)
        query = query.order_by(JobExecution.id.desc()).offset((page - 1) * page_size).limit(page_size)
        
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
    
    @translate_store_errors
    async def find_running_job_executions(self, job_name: Optional[str] = None) -> List[JobExecution]:
        query = select(JobExecution).where(JobExecution.status.in_(ACTIVE_STATUSES))
        if job_name:
            query = query.where(JobExecution.job_name == job_name)
        
        async with self.session_factory() as session:
            result = await session.execute(query.order_by(JobExecution.id))
            return list(result.scalars().all())
    
    # ------------------------------------------------------------------
    # Step executions
    # ------------------------------------------------------------------
    
    @translate_store_errors
    async def create_step_execution(self, job_execution: JobExecution, step_name: str) -> StepExecution:
        now = utcnow()
        step_execution = StepExecution(
            job_execution_id=job_execution.id,
            step_name=step_name,
            status=BatchStatus.STARTING,
            exit_code="EXECUTING",
            read_count=0,
            write_count=0,
            filter_count=0,
            read_skip_count=0,
            process_skip_count=0,
            write_skip_count=0,
            commit_count=0,
            rollback_count=0,
            start_time=now,
            last_updated=now,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(step_execution)
        
        job_execution.step_executions.append(step_execution)
        return step_execution
    
    @translate_store_errors
    async def update_step_execution(
        self,
        step_execution: StepExecution,
        session: Optional[AsyncSession] = None,
    ):
        """Persist status and counters; joins `session` when one is given"""
        step_execution.last_updated = utcnow()
        stmt = (
            update(StepExecution)
            .where(StepExecution.id == step_execution.id)
            .values(
                status=step_execution.status,
                exit_code=step_execution.exit_code,
                exit_description=step_execution.exit_description,
                end_time=step_execution.end_time,
                last_updated=step_execution.last_updated,
                **step_execution.counters(),
            )
        )
        if session is not None:
            await session.execute(stmt)
            return
        
        async with self.session_factory() as own_session:
            async with own_session.begin():
                await own_session.execute(stmt)
    
    @translate_store_errors
    async def get_last_step_execution(
        self,
        job_instance_id: int,
        step_name: str,
        before_execution_id: Optional[int] = None,
    ) -> Optional[StepExecution]:
        """Latest execution of `step_name` in earlier executions of the instance"""
        query = (
            select(StepExecution)
            .join(JobExecution, JobExecution.id == StepExecution.job_execution_id)
            .where(
                JobExecution.job_instance_id == job_instance_id,
                StepExecution.step_name == step_name,
            )
        )
        if before_execution_id is not None:
            query = query.where(JobExecution.id < before_execution_id)
        query = query.order_by(StepExecution.id.desc()).limit(1)
        
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()
    
    @translate_store_errors
    async def fail_running_step_executions(self, job_execution_id: int, description: str) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                now = utcnow()
                result = await session.execute(
                    update(StepExecution)
                    .where(
                        StepExecution.job_execution_id == job_execution_id,
                        StepExecution.status.in_(ACTIVE_STATUSES),
                    )
                    .values(
                        status=BatchStatus.FAILED,
                        exit_code="FAILED",
                        exit_description=description,
                        end_time=now,
                        last_updated=now,
                    )
                )
                return result.rowcount
    
    # ------------------------------------------------------------------
    # Execution contexts
    # ------------------------------------------------------------------
    
    @translate_store_errors
    async def save_execution_context(
        self,
        scope: str,
        execution_id: int,
        context: Dict[str, Any],
        session: Optional[AsyncSession] = None,
    ):
        if session is not None:
            await self._upsert_context(session, scope, execution_id, context)
            return
        
        async with self.session_factory() as own_session:
            async with own_session.begin():
                await self._upsert_context(own_session, scope, execution_id, context)
    
    async def _upsert_context(self, session: AsyncSession, scope: str, execution_id: int, context: Dict[str, Any]):
        existing = await session.scalar(
            select(ExecutionContext.id).where(
                ExecutionContext.scope == scope,
                ExecutionContext.execution_id == execution_id,
            )
        )
        if existing is None:
            session.add(
                ExecutionContext(
                    scope=scope,
                    execution_id=execution_id,
                    context=dict(context),
                    updated_at=utcnow(),
                )
            )
            await session.flush()
        else:
            await session.execute(
                update(ExecutionContext)
                .where(ExecutionContext.id == existing)
                .values(context=dict(context), updated_at=utcnow())
            )
    
    @translate_store_errors
    async def get_execution_context(self, scope: str, execution_id: int) -> Dict[str, Any]:
        async with self.session_factory() as session:
            context = await session.scalar(
                select(ExecutionContext.context).where(
                    ExecutionContext.scope == scope,
                    ExecutionContext.execution_id == execution_id,
                )
            )
        return dict(context or {})
    
    async def get_restart_context(self, job_execution: JobExecution, step_name: str) -> Dict[str, Any]:
        """Step context left by the previous, unfinished execution of the same instance"""
        previous = await self.get_last_step_execution(
            job_execution.job_instance_id, step_name, before_execution_id=job_execution.id
        )
        if previous is None or previous.status == BatchStatus.COMPLETED:
            return {}
        context = await self.get_execution_context(ExecutionContext.SCOPE_STEP, previous.id)
        if context:
            logger.info(
                f"Restarting step {step_name} from step execution {previous.id} "
                f"({previous.status.value})"
            )
        return context
    
    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------
    
    @translate_store_errors
    async def count_by_status(self, job_name: Optional[str] = None) -> Dict[BatchStatus, int]:
        query = select(JobExecution.status, func.count(JobExecution.id)).group_by(JobExecution.status)
        if job_name:
            query = query.where(JobExecution.job_name == job_name)
        
        async with self.session_factory() as session:
            result = await session.execute(query)
            return {BatchStatus(status): count for status, count in result.all()}
    
    @translate_store_errors
    async def count_job_instances(self, job_name: Optional[str] = None) -> int:
        query = select(func.count(JobInstance.id))
        if job_name:
            query = query.where(JobInstance.job_name == job_name)
        async with self.session_factory() as session:
            return (await session.scalar(query)) or 0
    
    @translate_store_errors
    async def total_write_count(self, job_name: Optional[str] = None) -> int:
        query = select(func.coalesce(func.sum(StepExecution.write_count), 0))
        if job_name:
            query = query.join(
                JobExecution, JobExecution.id == StepExecution.job_execution_id
            ).where(JobExecution.job_name == job_name)
        async with self.session_factory() as session:
            return int((await session.scalar(query)) or 0)
    
    @translate_store_errors
    async def next_run_token(self, job_name: str) -> int:
        """A run.id larger than any instance id, so each launch gets a fresh instance"""
        async with self.session_factory() as session:
            last_id = await session.scalar(select(func.max(JobInstance.id)))
        return (last_id or 0) + 1
