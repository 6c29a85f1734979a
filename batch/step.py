"""
Chunk-oriented step: read -> process -> write with one transaction per chunk.

Each chunk commit writes the items, updates the step counters and saves
the step execution context in a single transaction. A failed commit is
rolled back as a whole, the in-memory counters are restored, and the chunk
is retried while the error is transient and attempts remain.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type
from sqlalchemy.exc import OperationalError, IntegrityError
import asyncio
import logging

from batch.base import (
    Chunk,
    ItemProcessor,
    ItemReader,
    ItemWriter,
    WriteResult,
    ExitStatus,
    COMPLETED,
    FAILED,
    STOPPED,
    apply_exit_status,
    exit_status_of,
)
from batch.listeners import StepExecutionListener
from batch.repository import JobRepository
from core.exceptions import (
    FatalItemError,
    RetryableError,
    SkipLimitExceededError,
    StoreUnavailableError,
    TransactionFailure,
)
from models.base import BatchStatus, utcnow
from models.execution_context import ExecutionContext
from models.job_execution import JobExecution
from models.step_execution import StepExecution

logger = logging.getLogger(__name__)

MISSING_SOURCES_KEY = "writer.missing_source_ids"
CONFLICT_SOURCES_KEY = "writer.conflict_source_ids"

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (RetryableError, OperationalError, IntegrityError)


class ChunkOrientedStep:
    """
    A single step of a job that processes items in chunks.
    
    Args:
        name: Step name stored on the step execution
        reader_factory: Callable returning a fresh ItemReader; one reader is
            created per job execution so concurrent executions never share a cursor
        processor: ItemProcessor; returning None filters the item
        writer: ItemWriter called inside the chunk transaction
        repository: JobRepository for step metadata and contexts
        session_factory: async_sessionmaker used for chunk transactions
        chunk_size: Number of output items per commit (>= 1)
        skip_limit: Total read/process errors tolerated before the step fails
        retry_limit: Extra attempts for a chunk whose commit failed transiently
        retry_backoff: Seconds to wait per attempt before retrying a chunk
        skippable_exceptions: Error types the skip policy applies to
        listeners: StepExecutionListeners
    """
    
    def __init__(
        self,
        name: str,
        reader_factory: Callable[[], ItemReader],
        processor: ItemProcessor,
        writer: ItemWriter,
        repository: JobRepository,
        session_factory,
        chunk_size: int = 100,
        skip_limit: int = 0,
        retry_limit: int = 0,
        retry_backoff: float = 0.0,
        skippable_exceptions: Sequence[Type[BaseException]] = (Exception,),
        listeners: Optional[List[StepExecutionListener]] = None,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        if skip_limit < 0 or retry_limit < 0:
            raise ValueError("skip_limit and retry_limit cannot be negative")
        
        self.name = name
        self.reader_factory = reader_factory
        self.processor = processor
        self.writer = writer
        self.repository = repository
        self.session_factory = session_factory
        self.chunk_size = chunk_size
        self.skip_limit = skip_limit
        self.retry_limit = retry_limit
        self.retry_backoff = retry_backoff
        self.skippable_exceptions = tuple(skippable_exceptions)
        self.listeners = list(listeners or [])
        self._readers: Dict[int, ItemReader] = {}
    
    def get_reader(self, job_execution_id: int) -> ItemReader:
        """Reader bound to one job execution, created on first use"""
        reader = self._readers.get(job_execution_id)
        if reader is None:
            reader = self.reader_factory()
            self._readers[job_execution_id] = reader
        return reader
    
    async def execute(self, job_execution: JobExecution) -> StepExecution:
        step_execution = await self.repository.create_step_execution(job_execution, self.name)
        step_execution.status = BatchStatus.STARTED
        await self.repository.update_step_execution(step_execution)
        
        logger.info(
            f"Executing step {self.name} (step execution {step_execution.id}, "
            f"chunk size {self.chunk_size})"
        )
        await self._before_step(step_execution)
        
        reader = self.get_reader(job_execution.id)
        try:
            context = await self.repository.get_restart_context(job_execution, self.name)
            await reader.open(context)
            await self.repository.save_execution_context(
                ExecutionContext.SCOPE_STEP, step_execution.id, context
            )
            
            stopped = await self._run_chunks(job_execution, step_execution, reader, context)
            
            if stopped:
                step_execution.status = BatchStatus.STOPPED
                apply_exit_status(step_execution, STOPPED.with_description("Stop requested"))
                logger.info(f"Step {self.name} stopped at a chunk boundary")
            else:
                step_execution.status = BatchStatus.COMPLETED
                apply_exit_status(step_execution, COMPLETED)
        
        except StoreUnavailableError:
            step_execution.status = BatchStatus.FAILED
            apply_exit_status(step_execution, FAILED.with_description("Metadata store unavailable"))
            raise
        
        except Exception as e:
            logger.exception(f"Step {self.name} failed: {e}")
            step_execution.status = BatchStatus.FAILED
            apply_exit_status(step_execution, FAILED.with_description(f"{type(e).__name__}: {e}"))
        
        finally:
            self._readers.pop(job_execution.id, None)
            await reader.close()
        
        await self._after_step(step_execution)
        step_execution.end_time = utcnow()
        await self.repository.update_step_execution(step_execution)
        
        logger.info(
            f"Step {self.name} finished with {step_execution.status.value} "
            f"({step_execution.exit_code}): {step_execution.counters()}"
        )
        return step_execution
    
    async def _run_chunks(
        self,
        job_execution: JobExecution,
        step_execution: StepExecution,
        reader: ItemReader,
        context: Dict[str, Any],
    ) -> bool:
        """Process chunks until the input is exhausted; returns True if stopped"""
        while True:
            if await self.repository.is_stop_requested(job_execution.id):
                return True
            
            chunk = await self._read_chunk(reader, step_execution)
            if chunk.is_empty:
                return False
            
            await self._commit_chunk(job_execution, step_execution, reader, chunk, context)
            
            if chunk.end_of_input:
                return False
    
    async def _read_chunk(self, reader: ItemReader, step_execution: StepExecution) -> Chunk:
        chunk = Chunk()
        
        while len(chunk.items) < self.chunk_size:
            try:
                item = await reader.read()
            except Exception as e:
                self._skip_or_raise(e, step_execution, chunk, "read")
                chunk.read_skip_count += 1
                continue
            
            if item is None:
                chunk.end_of_input = True
                break
            chunk.read_count += 1
            
            try:
                output = await self.processor.process(item)
            except Exception as e:
                self._skip_or_raise(e, step_execution, chunk, "process", getattr(item, "id", None))
                chunk.process_skip_count += 1
                continue
            
            if output is None:
                chunk.filter_count += 1
            else:
                chunk.items.append(output)
        
        return chunk
    
    def _skip_or_raise(
        self,
        error: Exception,
        step_execution: StepExecution,
        chunk: Chunk,
        phase: str,
        record_id: Optional[int] = None,
    ):
        """Return if `error` may be skipped, otherwise raise"""
        if isinstance(error, (FatalItemError, StoreUnavailableError)):
            raise error
        if not isinstance(error, self.skippable_exceptions):
            raise error
        
        skipped = step_execution.skip_count + chunk.read_skip_count + chunk.process_skip_count
        if skipped >= self.skip_limit:
            raise SkipLimitExceededError(
                f"Skip limit of {self.skip_limit} exceeded",
                context={"skip_limit": self.skip_limit, "phase": phase, "record_id": record_id},
                original_exception=error,
            )
        
        logger.warning(f"Skipping item on {phase} (record {record_id}): {error}")
    
    async def _commit_chunk(
        self,
        job_execution: JobExecution,
        step_execution: StepExecution,
        reader: ItemReader,
        chunk: Chunk,
        context: Dict[str, Any],
    ) -> WriteResult:
        counters_before = step_execution.counters()
        context_before = dict(context)
        attempt = 0
        
        while True:
            attempt += 1
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        result = await self.writer.write(session, chunk.items, job_execution.id)
                        
                        self._apply_chunk(step_execution, chunk, result)
                        await reader.update(context)
                        self._record_anomalies(context, result)
                        
                        await self.repository.update_step_execution(step_execution, session=session)
                        await self.repository.save_execution_context(
                            ExecutionContext.SCOPE_STEP, step_execution.id, context, session=session
                        )
                
                logger.info(
                    f"Committed chunk {step_execution.commit_count} of step {self.name}: "
                    f"read={chunk.read_count} written={result.written} conflicts={len(result.conflicts)} "
                    f"filtered={chunk.filter_count}"
                )
                return result
            
            except StoreUnavailableError:
                self._restore(step_execution, counters_before, context, context_before)
                raise
            
            except Exception as e:
                self._restore(step_execution, counters_before, context, context_before)
                step_execution.rollback_count += 1
                counters_before["rollback_count"] = step_execution.rollback_count
                await self.repository.update_step_execution(step_execution)
                
                if isinstance(e, TRANSIENT_ERRORS) and attempt <= self.retry_limit:
                    delay = self.retry_backoff * attempt
                    logger.warning(
                        f"Chunk commit failed (attempt {attempt}/{self.retry_limit + 1}), "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    if delay > 0:
                        await asyncio.sleep(delay)
                    continue
                
                raise TransactionFailure(
                    "Chunk transaction rolled back",
                    context={
                        "step_name": self.name,
                        "chunk_size": len(chunk.items),
                        "attempts": attempt,
                    },
                    original_exception=e,
                )
    
    @staticmethod
    def _apply_chunk(step_execution: StepExecution, chunk: Chunk, result: WriteResult):
        step_execution.read_count += chunk.read_count
        step_execution.write_count += result.written
        step_execution.filter_count += chunk.filter_count
        step_execution.read_skip_count += chunk.read_skip_count
        step_execution.process_skip_count += chunk.process_skip_count
        step_execution.commit_count += 1
    
    @staticmethod
    def _record_anomalies(context: Dict[str, Any], result: WriteResult):
        """Source ids the writer could not insert or flag, kept in the step context"""
        if result.conflicts:
            context[CONFLICT_SOURCES_KEY] = list(context.get(CONFLICT_SOURCES_KEY, [])) + result.conflicts
        if result.missing_source_ids:
            context[MISSING_SOURCES_KEY] = (
                list(context.get(MISSING_SOURCES_KEY, [])) + result.missing_source_ids
            )
    
    @staticmethod
    def _restore(
        step_execution: StepExecution,
        counters: Dict[str, int],
        context: Dict[str, Any],
        context_before: Dict[str, Any],
    ):
        for name, value in counters.items():
            setattr(step_execution, name, value)
        context.clear()
        context.update(context_before)
    
    async def _before_step(self, step_execution: StepExecution):
        for listener in self.listeners:
            try:
                await listener.before_step(step_execution)
            except Exception:
                logger.exception(f"before_step listener {type(listener).__name__} failed")
    
    async def _after_step(self, step_execution: StepExecution):
        for listener in self.listeners:
            try:
                exit_status: Optional[ExitStatus] = await listener.after_step(step_execution)
            except Exception:
                logger.exception(f"after_step listener {type(listener).__name__} failed")
                continue
            if exit_status is not None:
                apply_exit_status(step_execution, exit_status_of(step_execution).and_(exit_status))
