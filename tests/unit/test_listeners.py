"""
Unit tests for the reporting listeners
"""

import logging
import pytest
from batch.base import NO_DATA
from batch.listeners import JobCompletionListener, StepReportListener
from models.base import BatchStatus, utcnow
from models.job_execution import JobExecution
from models.step_execution import StepExecution


def make_step(status=BatchStatus.COMPLETED, read_count=0, **counters):
    values = {name: 0 for name in StepExecution.COUNTER_FIELDS}
    values.update(counters)
    values["read_count"] = read_count
    return StepExecution(id=1, job_execution_id=1, step_name="process_records_step", status=status, **values)


def make_job_execution(status=BatchStatus.COMPLETED, steps=None):
    return JobExecution(
        id=1,
        job_instance_id=1,
        job_name="process_pending_records",
        status=status,
        exit_code=status.value,
        exit_description=None,
        start_time=utcnow(),
        parameters={"run.id": 1},
        step_executions=steps or [],
    )


class TestStepReportListener:
    
    @pytest.mark.asyncio
    async def test_no_data_when_nothing_was_read(self):
        result = await StepReportListener().after_step(make_step(read_count=0))
        assert result == NO_DATA
    
    @pytest.mark.asyncio
    async def test_exit_status_unchanged_when_records_were_read(self):
        result = await StepReportListener().after_step(make_step(read_count=3, write_count=3))
        assert result is None
    
    @pytest.mark.asyncio
    async def test_failed_step_is_not_marked_no_data(self):
        result = await StepReportListener().after_step(make_step(status=BatchStatus.FAILED))
        assert result is None


class TestJobCompletionListener:
    
    @pytest.mark.asyncio
    async def test_logs_summary_with_step_counters(self, caplog):
        listener = JobCompletionListener()
        job_execution = make_job_execution(steps=[make_step(read_count=10, write_count=9, filter_count=1)])
        
        with caplog.at_level(logging.INFO, logger="batch.listeners"):
            await listener.before_job(job_execution)
            await listener.after_job(job_execution)
        
        assert "Starting job: process_pending_records" in caplog.text
        assert "read=10 written=9 filtered=1" in caplog.text
        assert "Job completed successfully" in caplog.text
    
    @pytest.mark.asyncio
    async def test_logs_failure_details(self, caplog):
        failed_step = make_step(status=BatchStatus.FAILED, read_count=2)
        failed_step.exit_description = "TransactionFailure: Chunk transaction rolled back"
        job_execution = make_job_execution(status=BatchStatus.FAILED, steps=[failed_step])
        job_execution.exit_description = "TransactionFailure"
        
        with caplog.at_level(logging.INFO, logger="batch.listeners"):
            await JobCompletionListener().after_job(job_execution)
        
        assert "Job failed" in caplog.text
        assert "Chunk transaction rolled back" in caplog.text
