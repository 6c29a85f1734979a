"""
Script to run the record processing job once
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from batch.runner import JobService
from core.database import engine, async_session_maker
from core.exceptions import StoreUnavailableError
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def run_batch() -> int:
    """Run the processing job; returns a process exit code"""
    service = JobService(async_session_maker)
    
    try:
        result = await service.run_processing_job(triggered_by="cli")
    except StoreUnavailableError as e:
        logger.error(f"Cannot reach the database: {e}")
        return 2
    finally:
        await engine.dispose()
    
    logger.info(
        f"Execution {result.execution_id}: {result.status} ({result.exit_code}) - "
        f"read={result.read_count} written={result.write_count} "
        f"filtered={result.filter_count} skipped={result.skip_count}"
    )
    if not result.successful:
        logger.error(result.message)
        return 1
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_batch()))
