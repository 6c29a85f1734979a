"""
Custom exceptions for the batch engine with structured error context.

Every exception carries a context dictionary so that failures can be logged
and stored on the execution metadata without losing the details of where
they happened (execution id, step name, record id, ...).

Exception Hierarchy:
    BatchException (base)
    ├── ItemError
    │   ├── TransientItemError (retryable)
    │   ├── FatalItemError (never skipped, never retried)
    │   └── SkipLimitExceededError
    ├── TransactionFailure
    ├── JobExecutionError
    │   ├── DuplicateExecutionError
    │   ├── JobInstanceAlreadyCompleteError
    │   ├── JobRestartError
    │   ├── JobExecutionStateError
    │   ├── NoSuchJobExecutionError
    │   └── RecoveryError
    ├── InfrastructureError
    │   └── StoreUnavailableError
    └── RetryableError / NonRetryableError (mixins)

A record rejected by validation is not an exception: the processor returns
None and the engine counts it as filtered.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class BatchException(Exception):
    """
    Base exception for all batch-related errors.
    
    Attributes:
        message: Human-readable error message
        context: Additional context information (execution id, step, record, ...)
        original_exception: The original exception that was caught (if any)
    """
    
    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = dict(context or {})
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)
        
        self.context["error_timestamp"] = self.timestamp.isoformat()
        
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception
    
    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"
        
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"
        
        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"
        
        return base_msg
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(BatchException):
    """
    Mixin for errors that should trigger retry logic.
    
    A chunk that fails with a retryable error is rolled back and attempted
    again, up to the step's retry limit.
    """
    
    pass


class NonRetryableError(BatchException):
    """
    Mixin for errors that should NOT trigger retry or skip logic.
    """
    pass


# ============================================================================
# Item Errors
# ============================================================================

class ItemError(BatchException):
    """
    Base exception for failures while reading, processing or writing one item.
    
    Context should include:
        - record_id: ID of the record being handled (if known)
        - phase: read, process or write
    """
    pass


class TransientItemError(RetryableError, ItemError):
    """Temporary failure on an item (lock timeout, flaky dependency)."""
    pass


class FatalItemError(NonRetryableError, ItemError):
    """Failure that aborts the step regardless of skip and retry policy."""
    pass


class SkipLimitExceededError(NonRetryableError, ItemError):
    """
    Exception raised when one more skippable item error would exceed the skip limit.
    
    Context should include:
        - skip_limit: Configured limit
        - phase: read or process
    """
    pass


# ============================================================================
# Chunk Errors
# ============================================================================

class TransactionFailure(BatchException):
    """
    Exception raised when a chunk transaction cannot be committed.
    
    Context should include:
        - step_name: Step that owns the chunk
        - chunk_size: Number of items in the chunk
        - attempts: Number of commit attempts made
    """
    pass


# ============================================================================
# Job Execution Errors
# ============================================================================

class JobExecutionError(BatchException):
    """Base exception for launch, restart and recovery failures."""
    pass


class DuplicateExecutionError(JobExecutionError):
    """
    Exception raised when a job instance already has an active execution.
    
    Context should include:
        - job_name: Name of the job
        - job_instance_id: The instance that is already running
        - job_execution_id: The active execution
    """
    pass


class JobInstanceAlreadyCompleteError(JobExecutionError):
    """The job instance for these parameters already completed successfully."""
    pass


class JobRestartError(JobExecutionError):
    """The job instance cannot be restarted (its last execution was abandoned)."""
    pass


class JobExecutionStateError(JobExecutionError):
    """
    Exception raised when an update would overwrite a terminal status.
    
    Context should include:
        - job_execution_id: The execution being updated
        - stored_status: Status currently persisted
        - requested_status: Status the caller tried to write
    """
    pass


class NoSuchJobExecutionError(JobExecutionError):
    """No execution exists with the requested id."""
    pass


class RecoveryError(JobExecutionError):
    """
    Exception raised when an execution cannot be recovered.
    
    Recovery only applies to executions left in STARTING, STARTED or
    STOPPING that are not running in this process.
    """
    pass


# ============================================================================
# Infrastructure Errors
# ============================================================================

class InfrastructureError(BatchException):
    """Base exception for failures outside the batch logic itself."""
    pass


class StoreUnavailableError(InfrastructureError):
    """
    Exception raised when the metadata or domain store cannot be reached.
    
    Context should include:
        - operation: Repository operation that failed
    """
    pass
