"""
Unit tests for the job repository
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError
from batch.repository import JobRepository
from core.exceptions import (
    DuplicateExecutionError,
    JobExecutionStateError,
    JobInstanceAlreadyCompleteError,
    JobRestartError,
    StoreUnavailableError,
)
from models.base import BatchStatus
from models.execution_context import ExecutionContext
from models.job_execution import compute_job_key

JOB = "test_job"


async def finish(repository, job_execution, status):
    job_execution.status = status
    await repository.update_job_execution(job_execution, force=True)


class TestJobKey:
    
    def test_key_ignores_parameter_order(self):
        assert compute_job_key({"a": 1, "b": "x"}) == compute_job_key({"b": "x", "a": 1})
    
    def test_key_depends_on_values(self):
        assert compute_job_key({"run.id": 1}) != compute_job_key({"run.id": 2})


class TestJobExecutions:
    
    @pytest.mark.asyncio
    async def test_create_job_execution(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        
        assert execution.id is not None
        assert execution.status == BatchStatus.STARTING
        assert execution.step_executions == []
        stored = await repository.get_job_execution(execution.id)
        assert stored.parameters == {"run.id": 1}
    
    @pytest.mark.asyncio
    async def test_duplicate_active_execution_is_rejected(self, repository):
        await repository.create_job_execution(JOB, {"run.id": 1})
        
        with pytest.raises(DuplicateExecutionError):
            await repository.create_job_execution(JOB, {"run.id": 1})
        
        assert len(await repository.find_job_executions(JOB)) == 1
    
    @pytest.mark.asyncio
    async def test_different_parameters_make_a_new_instance(self, repository):
        first = await repository.create_job_execution(JOB, {"run.id": 1})
        second = await repository.create_job_execution(JOB, {"run.id": 2})
        
        assert first.job_instance_id != second.job_instance_id
    
    @pytest.mark.asyncio
    async def test_completed_instance_cannot_run_again(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        await finish(repository, execution, BatchStatus.COMPLETED)
        
        with pytest.raises(JobInstanceAlreadyCompleteError):
            await repository.create_job_execution(JOB, {"run.id": 1})
    
    @pytest.mark.asyncio
    async def test_failed_instance_can_restart(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        await finish(repository, execution, BatchStatus.FAILED)
        
        restart = await repository.create_job_execution(JOB, {"run.id": 1})
        
        assert restart.job_instance_id == execution.job_instance_id
        assert restart.id != execution.id
    
    @pytest.mark.asyncio
    async def test_abandoned_instance_cannot_restart(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        await finish(repository, execution, BatchStatus.ABANDONED)
        
        with pytest.raises(JobRestartError):
            await repository.create_job_execution(JOB, {"run.id": 1})
    
    @pytest.mark.asyncio
    async def test_terminal_status_is_not_overwritten(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        await finish(repository, execution, BatchStatus.COMPLETED)
        
        execution.status = BatchStatus.STARTED
        with pytest.raises(JobExecutionStateError):
            await repository.update_job_execution(execution)
        
        stored = await repository.get_job_execution(execution.id)
        assert stored.status == BatchStatus.COMPLETED
    
    @pytest.mark.asyncio
    async def test_stopping_is_not_downgraded(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        execution.status = BatchStatus.STARTED
        await repository.update_job_execution(execution)
        
        assert await repository.request_stop(execution.id)
        execution.status = BatchStatus.STARTED
        await repository.update_job_execution(execution)
        
        assert execution.status == BatchStatus.STOPPING
        assert await repository.is_stop_requested(execution.id)
    
    @pytest.mark.asyncio
    async def test_request_stop_on_finished_execution(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        await finish(repository, execution, BatchStatus.FAILED)
        
        assert await repository.request_stop(execution.id) is False
    
    @pytest.mark.asyncio
    async def test_find_job_executions_newest_first_with_paging(self, repository):
        created = []
        for run_id in range(1, 6):
            created.append(await repository.create_job_execution(JOB, {"run.id": run_id}))
        
        first_page = await repository.find_job_executions(JOB, page=1, page_size=2)
        second_page = await repository.find_job_executions(JOB, page=2, page_size=2)
        
        assert [e.id for e in first_page] == [created[4].id, created[3].id]
        assert [e.id for e in second_page] == [created[2].id, created[1].id]
    
    @pytest.mark.asyncio
    async def test_next_run_token_increases(self, repository):
        assert await repository.next_run_token(JOB) == 1
        await repository.create_job_execution(JOB, {"run.id": 1})
        assert await repository.next_run_token(JOB) == 2


class TestStepExecutionsAndContexts:
    
    @pytest.mark.asyncio
    async def test_step_counters_are_persisted(self, repository):
        execution = await repository.create_job_execution(JOB, {"run.id": 1})
        step = await repository.create_step_execution(execution, "step")
        
        step.read_count = 7
        step.write_count = 5
        step.filter_count = 2
        step.commit_count = 2
        await repository.update_step_execution(step)
        
        stored = await repository.get_job_execution(execution.id)
        assert len(stored.step_executions) == 1
        assert stored.step_executions[0].counters()["read_count"] == 7
        assert stored.step_executions[0].write_count == 5
        assert execution.step_executions == [step]
    
    @pytest.mark.asyncio
    async def test_execution_context_upsert(self, repository):
        await repository.save_execution_context(ExecutionContext.SCOPE_STEP, 10, {"a": 1})
        await repository.save_execution_context(ExecutionContext.SCOPE_STEP, 10, {"a": 2, "b": 3})
        
        assert await repository.get_execution_context(ExecutionContext.SCOPE_STEP, 10) == {"a": 2, "b": 3}
        assert await repository.get_execution_context(ExecutionContext.SCOPE_JOB, 10) == {}
    
    @pytest.mark.asyncio
    async def test_restart_context_comes_from_previous_failed_step(self, repository):
        first = await repository.create_job_execution(JOB, {"run.id": 1})
        step = await repository.create_step_execution(first, "step")
        await repository.save_execution_context(ExecutionContext.SCOPE_STEP, step.id, {"pos": 4})
        step.status = BatchStatus.FAILED
        await repository.update_step_execution(step)
        await finish(repository, first, BatchStatus.FAILED)
        
        second = await repository.create_job_execution(JOB, {"run.id": 1})
        
        assert await repository.get_restart_context(second, "step") == {"pos": 4}
        assert await repository.get_restart_context(first, "step") == {}
    
    @pytest.mark.asyncio
    async def test_aggregates(self, repository):
        done = await repository.create_job_execution(JOB, {"run.id": 1})
        step = await repository.create_step_execution(done, "step")
        step.write_count = 8
        await repository.update_step_execution(step)
        await finish(repository, done, BatchStatus.COMPLETED)
        await repository.create_job_execution(JOB, {"run.id": 2})
        
        counts = await repository.count_by_status(JOB)
        
        assert counts == {BatchStatus.COMPLETED: 1, BatchStatus.STARTING: 1}
        assert await repository.count_job_instances(JOB) == 2
        assert await repository.total_write_count(JOB) == 8


class TestStoreUnavailable:
    
    @pytest.mark.asyncio
    async def test_connection_errors_are_translated(self):
        session = MagicMock()
        session.__aenter__ = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")))
        session.__aexit__ = AsyncMock(return_value=False)
        repository = JobRepository(MagicMock(return_value=session))
        
        with pytest.raises(StoreUnavailableError) as exc_info:
            await repository.get_job_execution(1)
        
        assert exc_info.value.context["operation"] == "get_job_execution"
