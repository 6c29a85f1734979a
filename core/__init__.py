"""
Core utilities and configuration for the record batch system.

This package provides foundational components used throughout the batch engine:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory
    exceptions: Exception hierarchy for item, chunk, job and store failures
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import DuplicateExecutionError, TransientItemError
    from core.logging import setup_logging

Example:
    setup_logging()
    
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "BatchException",
    "RetryableError",
    "NonRetryableError",
    "ItemError",
    "TransientItemError",
    "FatalItemError",
    "SkipLimitExceededError",
    "TransactionFailure",
    "JobExecutionError",
    "DuplicateExecutionError",
    "JobInstanceAlreadyCompleteError",
    "JobRestartError",
    "JobExecutionStateError",
    "NoSuchJobExecutionError",
    "RecoveryError",
    "InfrastructureError",
    "StoreUnavailableError",
]
